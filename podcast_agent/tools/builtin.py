"""
Builtin tools for the dialogue agent.

All tools follow the same pattern: a top-level
``register_builtin_tools(registry, context)`` function registers closures with
the ToolRegistry.

Context dict keys consumed by builtin tools:

    tavily_key      callable() -> str       Current Tavily API key ("" if unset)
    http_client     httpx.AsyncClient|None  Shared client (created per call if None)
    search_url      str                     Override for the Tavily endpoint
"""

import logging
from datetime import datetime
from typing import Annotated

import httpx

from podcast_agent.tools.calculator import CalculatorError, evaluate
from podcast_agent.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

TAVILY_SEARCH_URL = "https://api.tavily.com/search"
SEARCH_TIMEOUT_S = 15.0
MAX_RESULT_CONTENT = 300

WEB_SEARCH = "web_search"
DATETIME = "get_current_datetime"
CALCULATOR = "calculator"


def register_builtin_tools(registry: ToolRegistry, context: dict) -> None:
    """Register all builtin tools with the given registry.

    Args:
        registry: ToolRegistry instance to register tools on.
        context: Dict of helpers that tools need.
    """
    _register_web_search(registry, context)
    _register_datetime(registry)
    _register_calculator(registry)


# ---------------------------------------------------------------------------
# Web search (Tavily)
# ---------------------------------------------------------------------------

def _format_search_results(query: str, data: dict) -> dict:
    results = []
    for r in data.get("results") or []:
        content = r.get("content") or ""
        results.append({
            "title": r.get("title"),
            "content": content[:MAX_RESULT_CONTENT],
            "url": r.get("url"),
        })
    return {
        "query": query,
        "results": results,
        "answer": data.get("answer") or None,
    }


def _register_web_search(registry: ToolRegistry, context: dict) -> None:
    get_key = context.get("tavily_key", lambda: "")
    client = context.get("http_client")
    search_url = context.get("search_url", TAVILY_SEARCH_URL)

    @registry.register(
        "Search for information on the internet. Use when you need to find "
        "current information, news, facts.",
        name=WEB_SEARCH,
    )
    async def web_search(
        query: Annotated[str, "Search query"],
    ) -> dict:
        api_key = get_key()
        if not api_key:
            return {"error": "Tavily API key not configured"}

        payload = {
            "api_key": api_key,
            "query": query,
            "search_depth": "basic",
            "max_results": 5,
        }

        try:
            if client is not None:
                response = await client.post(search_url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=SEARCH_TIMEOUT_S) as own_client:
                    response = await own_client.post(search_url, json=payload)

            if response.status_code != 200:
                return {"error": f"Tavily API error: {response.status_code}"}

            return _format_search_results(query, response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Web search failed for '%s': %s", query, e)
            return {"error": str(e) or type(e).__name__}


# ---------------------------------------------------------------------------
# Date and time
# ---------------------------------------------------------------------------

def _register_datetime(registry: ToolRegistry) -> None:

    @registry.register(
        "Get current date and time. Use when asked what time it is, what day "
        "it is, the date.",
        name=DATETIME,
    )
    def get_current_datetime() -> dict:
        now = datetime.now().astimezone()
        zone = now.tzname() or ""
        formatted = now.strftime("%A, %B %d, %Y at %I:%M %p")
        return {
            "datetime": now.isoformat(),
            "formatted": f"{formatted} {zone}".strip(),
            "timestamp": int(now.timestamp() * 1000),
        }


# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------

def _register_calculator(registry: ToolRegistry) -> None:

    @registry.register(
        "Perform mathematical calculations. Use for complex calculations.",
        name=CALCULATOR,
    )
    def calculator(
        expression: Annotated[str, (
            'Mathematical expression to calculate (e.g.: "2 + 2 * 3", '
            '"sqrt(16)", "sin(45)")'
        )],
    ) -> dict:
        try:
            result = evaluate(expression)
        except CalculatorError as e:
            return {"expression": expression, "error": str(e)}

        # Whole numbers read better as ints when spoken
        if result.is_integer() and abs(result) < 2**53:
            result = int(result)
        return {"expression": expression, "result": result}
