"""Simulated web research tools.

No network traffic is issued: search returns deterministic placeholder
results and fetch returns placeholder page content for any well-formed
http(s) URL.
"""

from typing import Any
from urllib.parse import quote_plus, urlsplit, urlunsplit

from agent_chat.agents.tools.toolbox import Tool, define_tool

_DEFAULT_NUM_RESULTS = 5
_MAX_NUM_RESULTS = 10
_SIMULATED_NOTE = "These are simulated results; no search provider is configured."


def normalize_url(url: str) -> str:
    parsed = urlsplit(url.strip())
    normalized = parsed._replace(scheme=parsed.scheme.lower(), netloc=parsed.netloc.lower(), fragment="")
    return urlunsplit(normalized)


def _bounded_results(num_results: int) -> int:
    return max(1, min(num_results, _MAX_NUM_RESULTS))


def web_search(query: str, num_results: int = _DEFAULT_NUM_RESULTS) -> dict[str, Any]:
    """Search the web for information.

    Args:
        query: Search query to find information about.
        num_results: Number of results to return.
    """

    query = query.strip()
    if not query:
        return {"error": "Search failed", "message": "Query must not be empty", "results": []}

    encoded = quote_plus(query)
    snippets = [
        f"Overview of {query} with background and key facts.",
        f"Recent coverage and discussion about {query}.",
        f"Reference material and further reading on {query}.",
    ]
    results = [
        {
            "title": f'Search Result {index} for "{query}"',
            "url": f"https://example.com/result{index}?q={encoded}",
            "snippet": snippet,
        }
        for index, snippet in enumerate(snippets, start=1)
    ]
    limit = _bounded_results(num_results)
    return {
        "query": query,
        "num_results": limit,
        "results": results[:limit],
        "note": _SIMULATED_NOTE,
    }


def fetch_url(url: str) -> dict[str, Any]:
    """Fetch the readable content of a web page.

    Args:
        url: URL to fetch content from.
    """

    parsed = urlsplit(url.strip())
    if parsed.scheme.lower() not in {"http", "https"} or not parsed.netloc:
        return {"error": "Fetch failed", "message": "Invalid URL format", "url": url, "status": "failed"}

    normalized = normalize_url(url)
    content = (
        f"Simulated content retrieved from {normalized}. The page discusses the topic referenced by the "
        "link and would normally be reduced to readable plaintext before being summarised."
    )
    return {
        "url": normalized,
        "status": "success",
        "content_type": "text/html",
        "title": f"Content from {parsed.netloc.lower()}",
        "content": content,
        "word_count": len(content.split()),
        "note": "This is simulated page content; no HTTP request was made.",
    }


def build_web_tools() -> list[Tool]:
    return [
        define_tool(
            web_search,
            tool_id="web_search",
            name="Web Search",
            description="Searches the web for information",
        ),
        define_tool(
            fetch_url,
            tool_id="url_fetcher",
            name="URL Fetcher",
            description="Fetches content from a given URL",
        ),
    ]
