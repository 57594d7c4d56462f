"""
Model-callable tools: web search, date/time and calculator.
"""

from podcast_agent.tools.executor import ToolExecutor
from podcast_agent.tools.registry import ToolRegistry

__all__ = ["ToolExecutor", "ToolRegistry"]
