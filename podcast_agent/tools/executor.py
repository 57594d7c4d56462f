"""
Tool executor: the registry plus the policy for which tools are active.
"""

import logging
from typing import TYPE_CHECKING, Any, Optional

from podcast_agent.tools.builtin import CALCULATOR, DATETIME, WEB_SEARCH, register_builtin_tools
from podcast_agent.tools.registry import ToolRegistry

if TYPE_CHECKING:
    import httpx

    from podcast_agent.config import AgentSettings

logger = logging.getLogger(__name__)


class ToolExecutor:
    """
    Runs tool calls for one session.

    Usage:
        executor = ToolExecutor(settings)
        schemas = executor.active_definitions()
        result = await executor.execute("calculator", {"expression": "2 + 2"})
    """

    def __init__(
        self,
        settings: "AgentSettings",
        http_client: Optional["httpx.AsyncClient"] = None,
        registry: Optional[ToolRegistry] = None,
    ):
        """
        Initialize executor.

        Args:
            settings: Session settings (tool toggles, Tavily key)
            http_client: Shared HTTP client for the search tool
            registry: Pre-populated registry (builtin tools registered if None)
        """
        self.settings = settings
        if registry is None:
            registry = ToolRegistry()
            context = {
                "tavily_key": lambda: self.settings.tavily_key,
                "http_client": http_client,
            }
            register_builtin_tools(registry, context)
        self.registry = registry

    def active_tool_names(self) -> list[str]:
        """Enabled tools; search additionally needs its API key."""
        toggles = self.settings.tools
        names = []
        if toggles.web_search and self.settings.tavily_key:
            names.append(WEB_SEARCH)
        if toggles.date_time:
            names.append(DATETIME)
        if toggles.calculator:
            names.append(CALCULATOR)
        return [n for n in names if n in self.registry]

    def active_definitions(self) -> list[dict]:
        return self.registry.definitions(self.active_tool_names())

    async def execute(self, name: str, arguments: Optional[dict] = None) -> dict[str, Any]:
        """Run a tool. Always returns a dict, possibly with an ``error`` field."""
        logger.info("Tool call: %s", name)
        result = await self.registry.execute(name, arguments)
        if "error" in result:
            logger.warning("Tool %s returned error: %s", name, result["error"])
        return result
