from typing import Any, Literal

from agent_chat.agents.tools.toolbox import Tool, define_tool

DetailLevel = Literal["basic", "intermediate", "advanced"]


def generate_text(user_input: str, context: str | None = None) -> dict[str, Any]:
    """Draft a response outline for a user request.

    Args:
        user_input: The user's question or request.
        context: Additional context for the response.
    """

    response = f'I\'ll help you with that. Let me think about your request: "{user_input}"'
    if context:
        response += f" (context: {context})"
    return {"response": response, "type": "text_response"}


def explain(topic: str, detail_level: DetailLevel = "intermediate") -> dict[str, Any]:
    """Introduce an explanation of a topic.

    Args:
        topic: The topic to explain.
        detail_level: Level of detail (basic, intermediate, advanced).
    """

    return {
        "explanation": f"Here's a {detail_level} explanation of {topic}:",
        "detail_level": detail_level,
        "type": "explanation",
    }


def build_assistance_tools() -> list[Tool]:
    return [
        define_tool(
            generate_text,
            tool_id="text_generation",
            name="Text Generation",
            description="Generates helpful responses to user questions and requests",
        ),
        define_tool(
            explain,
            tool_id="explanation",
            name="Explanation",
            description="Provides detailed explanations on various topics",
        ),
    ]
