from __future__ import annotations

from collections.abc import AsyncIterator, Mapping, Sequence
import logging
import re
from typing import Any

from agent_chat.agents.base import AgentContext, AgentResult, ToolDescriptor, stream_invoke_result
from agent_chat.agents.tools import Toolbox, build_web_tools

logger = logging.getLogger(__name__)

_URL = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)
_SEARCH_PREFIX = re.compile(
    r"^(?:please\s+)?(?:search\s+for|search|find|look\s+up|research|what\s+is|who\s+is|how\s+to|latest|news\s+about)\s*",
    re.IGNORECASE,
)
_SEARCH_KEYWORDS = ("search", "find", "look up", "research", "what is", "who is", "how to", "latest", "news about")
_WEB_KEYWORDS = ("web", "internet", "online", "website")
_SEARCH_RESULTS = 5
_PREVIEW_CHARS = 500

_CAPABILITIES = (
    "I'm here to help you research information on the web! I can search for topics, fetch content from "
    "specific URLs, and find the latest information online. What would you like me to research for you?"
)
_GREETING = (
    "Hello! I'm your Web Researcher. I can search the web for information, fetch content from URLs, and "
    "help you find answers to your questions online. Just tell me what you'd like to research, or paste a "
    "URL you'd like me to analyze!"
)


def search_query_from(message: str) -> str:
    """Strip the leading request phrase from a search-style message."""

    query = _SEARCH_PREFIX.sub("", message.strip()).strip().rstrip("?").strip()
    return query or message.strip()


class WebResearcherAgent:
    """Answers research requests using simulated web search and page fetch tools."""

    id = "web-researcher"
    name = "Web Researcher"
    description = "An assistant that can search the web and fetch information from URLs"

    def __init__(self, toolbox: Toolbox | None = None) -> None:
        self._toolbox = toolbox or Toolbox(build_web_tools())

    @property
    def tools(self) -> Sequence[ToolDescriptor]:
        return self._toolbox.descriptors

    async def invoke(self, message: str, context: AgentContext | None = None) -> AgentResult:
        text = message.strip()
        lowered = text.lower()

        url_match = _URL.search(text)
        if url_match is not None:
            url = url_match.group(0).rstrip(".,;:!?)")
            request = await self._toolbox.call("url_fetcher", {"url": url})
            if "error" in request.output:
                content = (
                    f"I tried to fetch information from {url}, but encountered an issue: "
                    f"{request.output['message']}. Could you check if the URL is accessible?"
                )
            else:
                preview = request.output["content"][:_PREVIEW_CHARS]
                content = f"I've fetched the content from the URL you provided. Here's what I found: {preview}"
            return AgentResult(content=content, tool_calls=[request])

        if any(keyword in lowered for keyword in _SEARCH_KEYWORDS):
            query = search_query_from(text)
            logger.debug("searching the web", extra={"query": query})
            request = await self._toolbox.call("web_search", {"query": query, "num_results": _SEARCH_RESULTS})
            if "error" in request.output:
                content = (
                    f'I tried to search for "{query}" but encountered an issue: {request.output["message"]}. '
                    "Could you rephrase your query?"
                )
            else:
                titles = "; ".join(result["title"] for result in request.output["results"])
                content = f'I found some information about "{query}". Here are the search results I discovered: {titles}'
            return AgentResult(content=content, tool_calls=[request])

        if any(keyword in lowered for keyword in _WEB_KEYWORDS):
            return AgentResult(content=_CAPABILITIES)
        return AgentResult(content=_GREETING)

    def stream(self, message: str, context: AgentContext | None = None) -> AsyncIterator[str]:
        return stream_invoke_result(self, message, context)

    async def execute_tool(self, tool_id: str, tool_input: Mapping[str, Any]) -> Any:
        return await self._toolbox.execute(tool_id, tool_input)
