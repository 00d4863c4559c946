from agent_chat.agents.tools.arithmetic import build_math_tools, calculate, solve_equation
from agent_chat.agents.tools.assistance import build_assistance_tools
from agent_chat.agents.tools.toolbox import Tool, Toolbox, define_tool
from agent_chat.agents.tools.web import build_web_tools, fetch_url, web_search

__all__ = [
    "Tool",
    "Toolbox",
    "build_assistance_tools",
    "build_math_tools",
    "build_web_tools",
    "calculate",
    "define_tool",
    "fetch_url",
    "solve_equation",
    "web_search",
]
