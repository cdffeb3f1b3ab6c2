"""
Schema definitions for Orbit.

This module defines the Pydantic models used throughout Orbit:
- Message/ContentBlock: The conversation history exchanged with the model
- ToolDefinition/ToolInvocation: Advertised capabilities and model requests
- ModelParameters/ModelResponse: What goes to and comes back from the model
- RunConfig: What a caller declares about a task

Design Decisions:
    - Content blocks are a discriminated union on ``type``
    - Messages are mutable so history compaction can rewrite older turns
    - Configuration models are frozen and reject unknown fields
    - ``to_wire()`` produces the exact JSON shape a model transport sends
"""

from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class Role(str, Enum):
    """Author of a message in the conversation."""

    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"


class CompactionStrategy(str, Enum):
    """
    History compaction strategy applied before every model request.

    NONE leaves the request history as-is, IMAGE_PRUNE drops stale images
    from the request copy, SIMPLE_QA summarises older turns into short
    question/answer text.
    """

    NONE = "none"
    IMAGE_PRUNE = "image-prune"
    SIMPLE_QA = "simple-qa"


# =============================================================================
# Content Blocks
# =============================================================================


class TextBlock(BaseModel):
    """Plain text content."""

    type: Literal["text"] = "text"
    text: str


class ImageBlock(BaseModel):
    """
    Image content.

    Attributes:
        source: Transport-specific image source, e.g.
            {"type": "base64", "media_type": "image/png", "data": "..."}
    """

    type: Literal["image"] = "image"
    source: dict[str, Any]


class ToolUseBlock(BaseModel):
    """
    A capability invocation issued by the model.

    The ``id`` is generated by the model transport and correlates this
    block with exactly one ToolResultBlock.
    """

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: Any = Field(default_factory=dict)


ResultPart = Annotated[TextBlock | ImageBlock, Field(discriminator="type")]


class ToolResultBlock(BaseModel):
    """
    The outcome of a capability invocation, sent back to the model.

    Attributes:
        tool_use_id: ID of the ToolUseBlock this result answers
        content: A string or an ordered list of text/image parts
        is_error: True when the invocation failed
    """

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str | list[ResultPart]
    is_error: bool | None = None


ContentBlock = Annotated[
    TextBlock | ImageBlock | ToolUseBlock | ToolResultBlock,
    Field(discriminator="type"),
]


# =============================================================================
# Messages
# =============================================================================


class Message(BaseModel):
    """
    One turn of the conversation.

    The ordered list of messages is the only memory the model has.
    Messages are treated as immutable once appended to history, except
    for compaction rewrites of turns that are not the latest.

    Attributes:
        role: Who authored the message
        content: Plain text or an ordered list of content blocks
    """

    model_config = ConfigDict(extra="forbid")

    role: Role
    content: str | list[ContentBlock]

    @classmethod
    def system(cls, text: str) -> "Message":
        """Create a system message."""
        return cls(role=Role.SYSTEM, content=text)

    @classmethod
    def user(cls, content: str | list[Any]) -> "Message":
        """Create a user message."""
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str | list[Any]) -> "Message":
        """Create an assistant message."""
        return cls(role=Role.ASSISTANT, content=content)

    @property
    def blocks(self) -> list[Any]:
        """Content blocks of this message (empty for plain-text messages)."""
        if isinstance(self.content, str):
            return []
        return list(self.content)

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON shape sent over the model transport."""
        return self.model_dump(mode="json", exclude_none=True)


# =============================================================================
# Model Interface
# =============================================================================


class ToolDefinition(BaseModel):
    """
    A capability as advertised to the model.

    Attributes:
        name: Unique capability name
        description: What the capability does
        input_schema: JSON schema of the capability input
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    description: str = ""
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


class ToolInvocation(BaseModel):
    """
    One model-issued request to call a capability.

    Attributes:
        id: Correlation ID generated by the model transport
        name: Name of the requested capability
        input: Input exactly as the model produced it
    """

    id: str
    name: str
    input: Any = Field(default_factory=dict)


class ModelResponse(BaseModel):
    """
    Summary of one completed model response.

    Attributes:
        text: All text the model produced
        tool_calls: Every capability invocation in the response
        stop_reason: Why the model stopped (transport-specific)
        usage: Token accounting reported by the transport
    """

    text: str = ""
    tool_calls: list[ToolInvocation] = Field(default_factory=list)
    stop_reason: str | None = None
    usage: dict[str, int] = Field(default_factory=dict)


class ModelParameters(BaseModel):
    """
    Parameters for a model request.

    ``tools`` carries the serialized capability list. The round executor
    fills it per round from the registry it is handed.

    Attributes:
        model: Model identifier (provider default when None)
        temperature: Sampling temperature (provider default when None)
        max_tokens: Maximum tokens to generate per response
        tools: Capabilities advertised for this request
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    model: str | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4096, gt=0)
    tools: list[ToolDefinition] = Field(default_factory=list)


# =============================================================================
# Run Configuration
# =============================================================================


class RunConfig(BaseModel):
    """
    Everything a caller declares about one agent run.

    Attributes:
        name: Short task name
        description: What the task should accomplish
        tools: Names of catalog tools to enable for this run
        output_description: What the final output should contain
        output_schema: Optional JSON schema the final value must match
        max_rounds: Maximum number of full rounds before a forced finish
        model: Model parameters for every request
        compaction: Compaction strategy applied to request history
        background: Extra background material for the task prompt
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Short task name")
    description: str = Field(default="", description="What the task should do")
    tools: list[str] = Field(
        default_factory=list,
        description="Names of catalog tools to enable for this run",
    )
    output_description: str = Field(
        default="The final result of the task.",
        description="What the final output should contain",
    )
    output_schema: dict[str, Any] | None = Field(
        default=None,
        description="Optional JSON schema the final value must match",
    )
    max_rounds: int = Field(
        default=100,
        description="Maximum number of full rounds",
        gt=0,
    )
    model: ModelParameters = Field(
        default_factory=ModelParameters,
        description="Model parameters for every request",
    )
    compaction: CompactionStrategy = Field(
        default=CompactionStrategy.NONE,
        description="History compaction strategy",
    )
    background: list[str] = Field(
        default_factory=list,
        description="Background materials included in the task prompt",
    )

    @field_validator("tools")
    @classmethod
    def validate_unique_tools(cls, v: list[str]) -> list[str]:
        """Tool names may only be listed once."""
        duplicates = sorted({name for name in v if v.count(name) > 1})
        if duplicates:
            msg = f"Duplicate tool names: {', '.join(duplicates)}"
            raise ValueError(msg)
        return v


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_run_config(path: Path | str) -> RunConfig:
    """
    Load a run configuration from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated RunConfig object

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return RunConfig.model_validate(data)


def load_run_config_from_string(content: str) -> RunConfig:
    """Load a run configuration from a YAML string."""
    data = yaml.safe_load(content)
    return RunConfig.model_validate(data)
