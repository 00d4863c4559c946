from __future__ import annotations

from collections.abc import AsyncIterator, Mapping, Sequence
import logging
import re
from typing import Any

from agent_chat.agents.base import AgentContext, AgentResult, ToolCallRequest, ToolDescriptor, stream_invoke_result
from agent_chat.agents.tools import Toolbox, build_math_tools

logger = logging.getLogger(__name__)

_EXPRESSION_CANDIDATES = re.compile(r"[\d+\-*/%^().\s]+")
_BINARY_OPERATION = re.compile(r"[\d)]\s*(?:\*\*|[-+*/%^])\s*[-+(\s]*[\d(]")
_EQUATION_TOKEN = r"(?:\d+(?:\.\d+)?|(?<![A-Za-z])[A-Za-z](?![A-Za-z])|[-+*/^().\s])"
_EQUATION = re.compile(rf"{_EQUATION_TOKEN}+={_EQUATION_TOKEN}+")
_VARIABLE = re.compile(r"(?<![A-Za-z])[A-Za-z](?![A-Za-z])")

_CALCULATION_KEYWORDS = ("calculate", "compute", "what is", "solve", "evaluate")
_TOPIC_KEYWORDS = ("math", "equation", "formula")

_CALCULATION_HELP = (
    "I'd be happy to help with calculations! You can give me expressions like '2+2' or '5*6-3', "
    "or ask me to solve equations like '2x + 5 = 13'. What would you like me to calculate?"
)
_CAPABILITIES = (
    "I'm here to help with all your mathematical needs! I can perform calculations and solve linear "
    "equations. Just send me an expression like '2+2' or an equation like '2x + 5 = 13', and I'll "
    "solve it for you. What can I help you calculate today?"
)
_GREETING = (
    "Hello! I'm your Math Assistant. I can help you with calculations and solve equations. You can send "
    "me math expressions like '2+2' or equations like '2x + 5 = 13', and I'll solve them for you. What "
    "mathematical problem can I help you with today?"
)


def find_equation(message: str) -> tuple[str, str] | None:
    """Return ``(equation, variable)`` for the first one-variable equation in ``message``."""

    match = _EQUATION.search(message)
    if match is None:
        return None
    equation = match.group(0).strip()
    variable = _VARIABLE.search(equation)
    if variable is None or not re.search(r"\d", equation):
        return None
    return equation, variable.group(0)


def find_expressions(message: str) -> list[str]:
    """Return arithmetic sub-expressions of ``message`` in order of appearance."""

    candidates = (candidate.strip() for candidate in _EXPRESSION_CANDIDATES.findall(message))
    return [candidate for candidate in candidates if _BINARY_OPERATION.search(candidate)]


class MathAssistantAgent:
    """Answers arithmetic and linear-equation questions without a language model."""

    id = "math-assistant"
    name = "Math Assistant"
    description = "A helpful assistant that can perform mathematical calculations and solve problems"

    def __init__(self, toolbox: Toolbox | None = None) -> None:
        self._toolbox = toolbox or Toolbox(build_math_tools())

    @property
    def tools(self) -> Sequence[ToolDescriptor]:
        return self._toolbox.descriptors

    async def invoke(self, message: str, context: AgentContext | None = None) -> AgentResult:
        text = message.strip()
        lowered = text.lower()

        equation = find_equation(text)
        if equation is not None:
            return await self._solve(*equation)

        failed: ToolCallRequest | None = None
        for expression in find_expressions(text):
            request = await self._toolbox.call("calculator", {"expression": expression})
            if "error" not in request.output:
                logger.debug("calculated expression", extra={"expression": expression})
                return AgentResult(
                    content=f"The answer to {expression} is {request.output['result']}.",
                    tool_calls=[request],
                )
            failed = failed or request

        if failed is not None:
            return AgentResult(
                content=(
                    f'I tried to calculate "{failed.input["expression"]}" but encountered an error: '
                    f'{failed.output["message"]}. Could you check the expression and try again?'
                ),
                tool_calls=[failed],
            )

        if any(keyword in lowered for keyword in _CALCULATION_KEYWORDS):
            return AgentResult(content=_CALCULATION_HELP)
        if any(keyword in lowered for keyword in _TOPIC_KEYWORDS):
            return AgentResult(content=_CAPABILITIES)
        return AgentResult(content=_GREETING)

    def stream(self, message: str, context: AgentContext | None = None) -> AsyncIterator[str]:
        return stream_invoke_result(self, message, context)

    async def execute_tool(self, tool_id: str, tool_input: Mapping[str, Any]) -> Any:
        return await self._toolbox.execute(tool_id, tool_input)

    async def _solve(self, equation: str, variable: str) -> AgentResult:
        request = await self._toolbox.call("equation_solver", {"equation": equation, "variable": variable})
        if "error" in request.output:
            return AgentResult(
                content=(
                    f"I see you have an equation there! Unfortunately, I ran into an issue: "
                    f"{request.output['message']}. Could you try rephrasing it? For example, "
                    '"2x + 5 = 13" works well.'
                ),
                tool_calls=[request],
            )
        return AgentResult(
            content=f"Let me solve that equation for you! The solution is {variable} = {request.output['solution']}.",
            tool_calls=[request],
        )
