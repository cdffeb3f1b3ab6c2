"""
The synthetic finish tool.

Every run gets a ``return_output`` tool built from the caller's declared
output description and schema. Calling it is the model's only way to
declare the run's final output. Its execution is a pure side effect: it
stores the payload in the run's variable store and does nothing else.
"""

from typing import Any

from orbit.context import ExecutionContext
from orbit.tools.base import Tool

RETURN_OUTPUT_TOOL_NAME = "return_output"

# Default value schema when the caller declares no output schema
ANY_VALUE_SCHEMA: dict[str, Any] = {
    "type": ["string", "number", "boolean", "object", "null"],
    "description": (
        "The output value. Only provide a value if the previous tool result "
        "is not suitable for the output description. Otherwise, leave this as null."
    ),
}


def output_variable_key(run_name: str) -> str:
    """Variable-store key holding the finish payload of a run."""
    return f"__run_{run_name}_output"


class ReturnOutputTool(Tool):
    """
    Finish tool declaring the final output of a run.

    Input:
        isSuccessful: Whether the task ultimately succeeded
        use_tool_result: Reuse the latest tool result as the output
        value: The output value (ignored when use_tool_result is true)

    Attributes:
        run_name: Name of the run this tool finishes
        output_description: What the final output should contain
        output_schema: JSON schema for ``value``, if declared
    """

    def __init__(
        self,
        run_name: str,
        output_description: str,
        output_schema: dict[str, Any] | None = None,
    ) -> None:
        self.run_name = run_name
        self.output_description = output_description
        self.output_schema = output_schema

    @property
    def name(self) -> str:
        return RETURN_OUTPUT_TOOL_NAME

    @property
    def output_key(self) -> str:
        """Variable-store key the payload is written to."""
        return output_variable_key(self.run_name)

    @property
    def description(self) -> str:
        return (
            "Return the final output of this task. Use this to return a value "
            "matching the required output schema (if specified) and the following "
            f"description:\n{self.output_description}\n\n"
            "You can either set 'use_tool_result=true' to return the result of a "
            "previous tool call, or explicitly specify 'value' with "
            "'use_tool_result=false' to return a value according to your own "
            "understanding. Whenever possible, reuse tool results to avoid redundancy."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "isSuccessful": {
                    "type": "boolean",
                    "description": (
                        "`true` if the task ultimately succeeded, `false` if it "
                        "ultimately failed, regardless of errors along the way."
                    ),
                },
                "use_tool_result": {
                    "type": "boolean",
                    "description": (
                        "Whether to use the latest tool result as output. "
                        "When set to true, the 'value' parameter is ignored."
                    ),
                },
                "value": self.output_schema or ANY_VALUE_SCHEMA,
            },
            "required": ["isSuccessful", "use_tool_result", "value"],
        }

    async def execute(self, context: ExecutionContext, args: Any) -> dict[str, Any]:
        """Store the finish payload under the run-scoped key."""
        context.variables[self.output_key] = {
            "isSuccessful": args.get("isSuccessful"),
            "value": args.get("value"),
            "use_tool_result": bool(args.get("use_tool_result")),
        }
        return {"success": True}
