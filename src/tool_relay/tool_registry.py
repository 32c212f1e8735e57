"""
Simple tool registry for automatic schema generation and tool execution.

Maps callables to Chat Completions tool declarations and executes them by name.
"""

import inspect
import json
import logging
import re
from typing import Any, Callable, Dict, List, Literal, Optional, get_args, get_origin, get_type_hints

logger = logging.getLogger(__name__)

_JSON_TYPES = {str: "string", int: "integer", float: "number", bool: "boolean"}

_PARAM_LINE = re.compile(r"^(\w+)\s*:")


class ToolResult:
    """Outcome of a tool invocation: a success payload or a failure description."""

    def __init__(self, payload: Any = None, error: Optional[str] = None):
        self.payload = payload
        self.error = error

    @classmethod
    def success(cls, payload: Any) -> "ToolResult":
        return cls(payload=payload)

    @classmethod
    def failure(cls, error: str) -> "ToolResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_value(self) -> Any:
        """Value shown to the client in a tool_call event."""
        if self.ok:
            return self.payload
        return {"error": self.error}

    def to_text(self) -> str:
        """Serialized form used as tool message content."""
        return json.dumps(self.to_value(), default=str)

    def __str__(self):
        return self.to_text()

    def __repr__(self):
        if self.ok:
            return f"ToolResult.success({self.payload!r})"
        return f"ToolResult.failure({self.error!r})"


def _parse_param_descriptions(doc: str) -> Dict[str, str]:
    """Extract parameter descriptions from a numpy-style ``Parameters`` section."""
    descriptions: Dict[str, str] = {}
    lines = doc.splitlines()
    try:
        start = next(i for i, line in enumerate(lines) if line.strip() == "Parameters")
    except StopIteration:
        return descriptions

    current = None
    for line in lines[start + 2 :]:
        if not line.strip():
            current = None
            continue
        # Next section header ends the block
        if set(line.strip()) == {"-"}:
            break
        if not line.startswith((" ", "\t")):
            match = _PARAM_LINE.match(line)
            if match:
                current = match.group(1)
                descriptions[current] = ""
                continue
            break
        if current:
            text = line.strip()
            descriptions[current] = f"{descriptions[current]} {text}".strip()
    return descriptions


def _summary(doc: str) -> str:
    """Docstring text before the first numpy section."""
    summary = []
    for line in doc.splitlines():
        if line.strip() in ("Parameters", "Returns", "Raises"):
            break
        summary.append(line)
    return "\n".join(summary).strip()


def _param_schema(param_type: Any) -> Dict[str, Any]:
    if get_origin(param_type) is Literal:
        choices = list(get_args(param_type))
        schema = {"type": _JSON_TYPES.get(type(choices[0]), "string")}
        schema["enum"] = choices
        return schema
    # Optional[X] collapses to X
    args = [a for a in get_args(param_type) if a is not type(None)]
    if args and len(args) == 1:
        return _param_schema(args[0])
    return {"type": _JSON_TYPES.get(param_type, "string")}


def callable_to_tool_schema(
    callable_func: Callable, name: str, description: Optional[str] = None
) -> Dict[str, Any]:
    """
    Convert a Python callable (function or method) to a Chat Completions tool declaration.

    Args:
        callable_func: The callable to convert
        name: Tool name
        description: Optional description

    Returns:
        Tool declaration dictionary
    """
    sig = inspect.signature(callable_func)
    type_hints = get_type_hints(callable_func)
    doc = inspect.getdoc(callable_func) or ""

    # Get description from docstring if not provided
    if description is None:
        description = _summary(doc) or f"Execute {name}"

    param_docs = _parse_param_descriptions(doc)
    parameters = {"type": "object", "properties": {}, "required": []}

    for param_name, param in sig.parameters.items():
        if param_name == "self":
            continue

        param_schema = _param_schema(type_hints.get(param_name, str))
        param_schema["description"] = param_docs.get(
            param_name, f"The {param_name} parameter"
        )
        parameters["properties"][param_name] = param_schema

        # Add to required if no default value
        if param.default is inspect.Parameter.empty:
            parameters["required"].append(param_name)

    return {
        "type": "function",
        "function": {"name": name, "description": description, "parameters": parameters},
    }


class ToolRegistry:
    """Registry for managing tools and their schemas."""

    def __init__(self):
        self.tools: Dict[str, Callable] = {}  # name -> callable
        self.schemas: List[Dict[str, Any]] = []

    @classmethod
    def from_plugins(cls, plugins: list) -> "ToolRegistry":
        """Build a registry from every plugin exposing ``hook_provide_tools``."""
        registry = cls()
        for plugin in plugins:
            if hasattr(plugin, "hook_provide_tools"):
                for method in plugin.hook_provide_tools():
                    registry.register_callable(method)
        return registry

    def register_callable(
        self,
        callable_func: Callable,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        """
        Register a callable (function or method) and auto-generate its tool declaration.

        Args:
            callable_func: The callable to register
            name: Optional name override (defaults to callable name)
            description: Optional description

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        tool_name = name or callable_func.__name__
        if tool_name in self.tools:
            raise ValueError(f"Tool '{tool_name}' is already registered")
        schema = callable_to_tool_schema(callable_func, tool_name, description)

        self.tools[tool_name] = callable_func
        self.schemas.append(schema)
        logger.debug(f"Registered tool {tool_name}")

    def get_schemas(self) -> List[Dict[str, Any]]:
        """Get all tool declarations for the chat completions API."""
        return self.schemas

    def get_tool_names(self) -> List[str]:
        """Get list of registered tool names."""
        return list(self.tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self.tools

    async def execute_tool(self, name: str, args: Dict[str, Any]) -> Any:
        """
        Execute a registered tool by name.

        Args:
            name: Tool name
            args: Tool arguments

        Returns:
            Tool execution result

        Raises:
            KeyError: If tool is not registered
        """
        if name not in self.tools:
            raise KeyError(f"Tool '{name}' not found in registry")

        callable_func = self.tools[name]

        # Execute the callable (handle both sync and async)
        if inspect.iscoroutinefunction(callable_func):
            return await callable_func(**args)
        else:
            return callable_func(**args)

    def __len__(self) -> int:
        """Get number of registered tools."""
        return len(self.tools)
