"""
Exception hierarchy for Orbit.

All Orbit exceptions inherit from OrbitError, allowing callers to catch
all Orbit-specific exceptions with a single except clause.

Exception Categories:
    - RunError: Run-level failures (cancellation, missing provider, bad config)
    - ToolError: A capability could not be found or failed during execution
    - TransportError: The model stream failed (connection, timeout, bad response)

Only RunCancelledError ever escapes a run. Tool errors are folded back into
the conversation as error tool results, and transport errors cause the
round to be retried.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Run errors: 1xxx
ERROR_RUN_CANCELLED = 1001
ERROR_PROVIDER_NOT_SET = 1002
ERROR_RUN_CONFIG_INVALID = 1003

# Tool errors: 2xxx
ERROR_TOOL_NOT_FOUND = 2001
ERROR_TOOL_INVALID_ARGS = 2002
ERROR_TOOL_EXECUTION_FAILED = 2003
ERROR_TOOL_SKIPPED = 2004

# Transport errors: 3xxx
ERROR_TRANSPORT = 3001
ERROR_TRANSPORT_CONNECTION = 3002
ERROR_TRANSPORT_TIMEOUT = 3003
ERROR_TRANSPORT_RESPONSE = 3004
ERROR_TRANSPORT_PARSE = 3005


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class OrbitError(Exception):
    """
    Base exception for all Orbit errors.

    All Orbit exceptions inherit from this class, providing:
    - Consistent error code for programmatic handling
    - Human-readable message
    - Optional suggestion for resolution
    - Optional context dict for debugging

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Run Errors
# =============================================================================


@dataclass
class RunError(OrbitError):
    """
    Base class for run-level errors.

    Attributes:
        run_id: ID of the run that failed
    """

    run_id: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["run_id"] = self.run_id


@dataclass
class RunCancelledError(RunError):
    """
    Raised when a run observes its cancellation signal.

    This is the only error that propagates out of a run. It is raised
    before a new round starts or after the in-flight tool call settles.
    """

    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Run cancelled"
            if self.reason:
                self.message += f": {self.reason}"
        if self.code == 0:
            self.code = ERROR_RUN_CANCELLED
        super().__post_init__()
        self.context["reason"] = self.reason


@dataclass
class ProviderNotSetError(RunError):
    """Raised when a run starts without a model provider."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Model provider not set"
        if self.code == 0:
            self.code = ERROR_PROVIDER_NOT_SET
        if not self.suggestion:
            self.suggestion = "Pass a ModelProvider to the AgentLoop or Engine"
        super().__post_init__()


@dataclass
class RunConfigError(RunError):
    """Raised when a run configuration cannot be used."""

    field_name: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid run configuration: {self.field_name}"
        if self.code == 0:
            self.code = ERROR_RUN_CONFIG_INVALID
        super().__post_init__()
        self.context["field"] = self.field_name


# =============================================================================
# Tool Errors
# =============================================================================


@dataclass
class ToolError(OrbitError):
    """
    Base class for tool errors.

    These errors occur while resolving or executing a capability
    requested by the model.

    Attributes:
        tool: Name of the tool that failed
        tool_args: Arguments that were provided
    """

    tool: str = ""
    tool_args: Any = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "tool": self.tool,
            "tool_args": self.tool_args,
        })


@dataclass
class ToolNotFoundError(ToolError):
    """Raised when a tool is not registered."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"`{self.tool}` tool not found."
        if self.code == 0:
            self.code = ERROR_TOOL_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Check tool name spelling or register the tool"
        super().__post_init__()


@dataclass
class ToolInvalidArgsError(ToolError):
    """Raised when tool arguments are invalid."""

    validation_errors: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            details = "; ".join(self.validation_errors) or "invalid input"
            self.message = f"Invalid arguments for {self.tool}: {details}"
        if self.code == 0:
            self.code = ERROR_TOOL_INVALID_ARGS
        super().__post_init__()
        self.context["validation_errors"] = self.validation_errors


@dataclass
class ToolExecutionError(ToolError):
    """Raised by a tool that fails during execution."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Tool {self.tool} failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_TOOL_EXECUTION_FAILED
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class ToolSkippedError(ToolError):
    """
    Raised when a tool call is skipped before it runs.

    A before-hook skip request and a cancellation observed before the
    call both end up here; the model sees the result ``"skip"``.
    """

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "skip"
        if self.code == 0:
            self.code = ERROR_TOOL_SKIPPED
        super().__post_init__()


# =============================================================================
# Transport Errors
# =============================================================================


@dataclass
class TransportError(OrbitError):
    """
    Base class for model transport errors.

    A transport error discards the partial round; the round executor
    waits and retries the same round from scratch.

    Attributes:
        provider: Name of the provider backend
        model: Model identifier that was requested
    """

    provider: str = ""
    model: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Model stream failed ({self.provider})"
        if self.code == 0:
            self.code = ERROR_TRANSPORT
        self.context.update({
            "provider": self.provider,
            "model": self.model,
        })


@dataclass
class TransportConnectionError(TransportError):
    """Raised when the provider endpoint cannot be reached."""

    url: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cannot connect to {self.provider} at {self.url}"
            if self.underlying_error:
                self.message += f": {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_TRANSPORT_CONNECTION
        if not self.suggestion:
            self.suggestion = "Check the base URL and network connectivity"
        super().__post_init__()
        self.context["url"] = self.url


@dataclass
class TransportTimeoutError(TransportError):
    """Raised when the model stream stalls past the configured timeout."""

    timeout_seconds: float = 0.0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"{self.provider} stream timed out after {self.timeout_seconds}s"
            )
        if self.code == 0:
            self.code = ERROR_TRANSPORT_TIMEOUT
        super().__post_init__()
        self.context["timeout_seconds"] = self.timeout_seconds


@dataclass
class TransportResponseError(TransportError):
    """Raised on a non-success HTTP status or an in-stream error event."""

    status_code: int | None = None
    body: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            status = f"HTTP {self.status_code}" if self.status_code else "error event"
            self.message = f"{self.provider} returned {status}: {self.body[:200]}"
        if self.code == 0:
            self.code = ERROR_TRANSPORT_RESPONSE
        super().__post_init__()
        self.context["status_code"] = self.status_code


@dataclass
class TransportParseError(TransportError):
    """Raised when a stream event cannot be decoded."""

    raw_data: str = ""
    parse_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cannot parse {self.provider} stream event: {self.parse_error}"
        if self.code == 0:
            self.code = ERROR_TRANSPORT_PARSE
        super().__post_init__()
        self.context["raw_data"] = self.raw_data[:500]
