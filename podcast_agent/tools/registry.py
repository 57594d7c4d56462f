"""
ToolRegistry: builds Realtime-API tool schemas from Python type hints.

Handlers are plain (or async) functions; their results are returned as
JSON-serializable dicts so they can be sent back as function_call_output.
"""

import inspect
import logging
import re
from typing import Annotated, Any, Callable, Iterable, Optional, get_args, get_origin

logger = logging.getLogger(__name__)


# Python type → JSON Schema type
_TYPE_MAP: dict[type, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
}


def _parse_google_docstring_args(fn: Callable) -> dict[str, str]:
    """Extract parameter descriptions from Google-style docstring Args: section."""
    doc = inspect.getdoc(fn)
    if not doc:
        return {}

    descriptions: dict[str, str] = {}
    in_args = False
    for line in doc.splitlines():
        stripped = line.strip()
        if stripped.lower().startswith("args:"):
            in_args = True
            continue
        if in_args:
            if not stripped:
                break
            # "param_name: description" or "param_name (type): description"
            m = re.match(r"(\w+)(?:\s*\([^)]*\))?\s*:\s*(.+)", stripped)
            if m:
                descriptions[m.group(1)] = m.group(2).strip()
    return descriptions


class ToolRegistry:
    """Registry that turns decorated functions into callable Realtime tools."""

    def __init__(self) -> None:
        self._tools: dict[str, dict] = {}  # name → {"fn": callable, "schema": dict}

    def register(self, description: str, name: Optional[str] = None) -> Callable:
        """Decorator that registers a function as a model-callable tool.

        Parameter descriptions come from ``Annotated[type, "desc"]`` (priority)
        or from the Google-style docstring ``Args:`` section. Parameters
        without a default are required.

        Args:
            description: Human-readable description of what the tool does.
            name: Tool name override (defaults to the function name).
        """
        def decorator(fn: Callable) -> Callable:
            sig = inspect.signature(fn)
            hints = getattr(fn, "__annotations__", {})
            docstring_args = _parse_google_docstring_args(fn)

            properties: dict = {}
            required: list[str] = []

            for pname, param in sig.parameters.items():
                hint = hints.get(pname)
                if hint is None:
                    continue

                param_desc: Optional[str] = None
                actual_type = hint
                if get_origin(hint) is Annotated:
                    args = get_args(hint)
                    actual_type = args[0]
                    for a in args[1:]:
                        if isinstance(a, str):
                            param_desc = a
                            break

                if param_desc is None:
                    param_desc = docstring_args.get(pname)

                prop: dict = {"type": _TYPE_MAP.get(actual_type, "string")}
                if param_desc:
                    prop["description"] = param_desc
                properties[pname] = prop

                if param.default is inspect.Parameter.empty:
                    required.append(pname)

            tool_name = name or fn.__name__
            schema: dict = {
                "type": "function",
                "name": tool_name,
                "description": description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": required,
                },
            }

            self._tools[tool_name] = {"fn": fn, "schema": schema}
            return fn

        return decorator

    def definitions(self, names: Optional[Iterable[str]] = None) -> list[dict]:
        """Return tool schemas, optionally restricted to ``names`` (registry order)."""
        if names is None:
            return [entry["schema"] for entry in self._tools.values()]
        wanted = set(names)
        return [entry["schema"] for n, entry in self._tools.items() if n in wanted]

    def names(self) -> list[str]:
        return list(self._tools)

    async def execute(self, name: str, arguments: Optional[dict] = None) -> dict[str, Any]:
        """Route and execute a tool call.

        Never raises: unknown tools, bad arguments and handler failures all
        come back as ``{"error": "..."}``.

        Args:
            name: Registered tool name.
            arguments: Keyword arguments for the handler.

        Returns:
            Handler result as a dict (non-dict results wrapped in ``result``).
        """
        entry = self._tools.get(name)
        if entry is None:
            logger.warning("Unknown tool requested: %s", name)
            return {"error": f"Unknown tool: {name}"}

        fn = entry["fn"]
        args = arguments or {}

        try:
            inspect.signature(fn).bind(**args)
        except TypeError as e:
            logger.warning("Bad arguments for %s: %s", name, e)
            return {"error": f"Invalid arguments for {name}: {e}"}

        try:
            result = fn(**args)
            if inspect.isawaitable(result):
                result = await result
            logger.debug("Tool: %s(%s)", name, args)
        except Exception as e:
            logger.error("Tool error: %s: %s", name, e)
            return {"error": str(e) or type(e).__name__}

        if isinstance(result, dict):
            return result
        return {"result": result}

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __bool__(self) -> bool:
        return len(self._tools) > 0

    def __len__(self) -> int:
        return len(self._tools)
