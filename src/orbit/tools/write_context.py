"""
The write_context tool.

Stores a value in the run's variable store so later rounds can refer to
it, and so callers can read it from the context after the run.
"""

from typing import Any

from orbit.context import ExecutionContext
from orbit.errors import ToolInvalidArgsError
from orbit.tools.base import Tool


class WriteContextTool(Tool):
    """
    Write a key/value pair into the execution context.

    Keys starting with ``__`` are reserved for Orbit itself and are
    rejected.
    """

    @property
    def name(self) -> str:
        return "write_context"

    @property
    def description(self) -> str:
        return (
            "Write a value to the shared context so it can be used later. "
            "Use this to remember intermediate results such as extracted "
            "URLs, names or counts."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "key": {
                    "type": "string",
                    "description": "The key under which the value is stored.",
                },
                "value": {
                    "type": "string",
                    "description": "The value to store.",
                },
            },
            "required": ["key", "value"],
        }

    def validate_args(self, args: Any) -> list[str]:
        errors = super().validate_args(args)
        if errors:
            return errors
        key = args["key"]
        if not isinstance(key, str) or not key:
            return ["'key' must be a non-empty string"]
        if key.startswith("__"):
            return [f"'{key}' is a reserved key"]
        return []

    async def execute(self, context: ExecutionContext, args: Any) -> dict[str, Any]:
        errors = self.validate_args(args)
        if errors:
            raise ToolInvalidArgsError(tool=self.name, tool_args=args, validation_errors=errors)

        context.variables[args["key"]] = args["value"]
        return {"success": True, "key": args["key"]}
