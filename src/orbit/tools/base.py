"""
Base classes for the tool interface.

This module defines the core abstractions for tools in Orbit:
- Tool: Abstract base class that all capabilities must implement
- ToolOutput: Convenience result carrying text and/or an image

Design Principles:
    - Tools are stateless - all run state comes from the ExecutionContext
    - Tools are agnostic of the model-facing envelope; they receive the
      unwrapped input only
    - Tools may raise; the round executor turns any exception into an
      error tool result the model can read
    - Tools are registered per run - the registry handles lookup
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from orbit.schema import ToolDefinition

if TYPE_CHECKING:
    from orbit.context import ExecutionContext


@dataclass(frozen=True)
class ToolOutput:
    """
    Convenience result for tools that return text and/or an image.

    Tools may also return any JSON-serializable value directly. A
    ToolOutput is flattened with ``to_result()`` before it reaches the
    after-hook and the conversation.

    Attributes:
        text: Text result
        image: Image source (e.g. {"type": "base64", "media_type": ..., "data": ...})
        metadata: Additional JSON-serializable fields
    """

    text: str | None = None
    image: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, text: str, **metadata: Any) -> "ToolOutput":
        """Create a text output."""
        return cls(text=text, metadata=metadata)

    @classmethod
    def screenshot(cls, image: dict[str, Any], text: str | None = None) -> "ToolOutput":
        """Create an output carrying an image."""
        return cls(text=text, image=image)

    def to_result(self) -> dict[str, Any]:
        """Flatten to the plain mapping the round executor serializes."""
        result: dict[str, Any] = dict(self.metadata)
        if self.text is not None:
            result["text"] = self.text
        if self.image is not None:
            result["image"] = self.image
        return result


class Tool(ABC):
    """
    Abstract base class for all Orbit tools.

    Tools are the capabilities the model may invoke. Each tool:
    - Has a unique name (e.g., "write_context", "return_output")
    - Declares a JSON input schema
    - Implements the async execute() method
    - Optionally releases resources in destroy()

    Subclasses must implement:
    - name property: Returns the tool's unique identifier
    - execute(): Performs the tool's action

    Example:
        class EchoTool(Tool):
            @property
            def name(self) -> str:
                return "echo"

            async def execute(self, context, args):
                return args.get("message", "")
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The unique identifier for this tool."""
        ...

    @property
    def description(self) -> str:
        """
        Human-readable description of what the tool does.

        This text is shown to the model; override it in subclasses.
        """
        return f"Tool: {self.name}"

    @property
    def input_schema(self) -> dict[str, Any]:
        """JSON schema of the tool input. Defaults to an empty object."""
        return {"type": "object", "properties": {}}

    @abstractmethod
    async def execute(self, context: "ExecutionContext", args: Any) -> Any:
        """
        Execute the tool with the given input.

        Args:
            context: The run's execution context
            args: The unwrapped input produced by the model

        Returns:
            Any JSON-serializable value, or a ToolOutput. A mapping with
            an ``image`` key is sent back to the model as an image.

        Raises:
            Exception: Any failure; the message is reported to the model
        """
        ...

    def destroy(self, context: "ExecutionContext") -> None:
        """
        Release resources held for a run.

        Called by the owning orchestrator at teardown, never by the loop.
        The default implementation does nothing.
        """
        return None

    def validate_args(self, args: Any) -> list[str]:
        """
        Validate the input for this tool.

        The default implementation checks that the input is an object and
        that every ``required`` property of the input schema is present.

        Args:
            args: The input to validate

        Returns:
            List of validation error messages (empty if valid)
        """
        schema = self.input_schema
        if schema.get("type") != "object":
            return []
        if not isinstance(args, dict):
            return [f"expected an object, got {type(args).__name__}"]
        return [
            f"missing required field '{name}'"
            for name in schema.get("required", [])
            if name not in args
        ]

    def definition(self) -> ToolDefinition:
        """Describe this tool for the model."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema,
        )

    def __repr__(self) -> str:
        """String representation of the tool."""
        return f"<Tool: {self.name}>"
