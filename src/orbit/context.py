"""
Execution context for Orbit runs.

The ExecutionContext is the per-run mutable state handed explicitly to
every component that needs it: the round executor, the tools and the
lifecycle hooks. It is owned by exactly one run and never shared between
concurrent runs.

It carries:
    - variables: Key/value store tools and the finish capability write to
    - cancel_token: Cooperative cancellation signal for the whole run
    - hooks: Optional lifecycle callbacks around tool invocation
    - environment: Handles to whatever host environment the tools drive
    - skip/abort flags: Side-channel requests the hooks may raise
"""

import inspect
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from orbit.tools.base import Tool


class CancelToken:
    """
    Cooperative cancellation signal.

    Cancelling never interrupts a tool that is already running; the run
    observes the signal before starting a new round and after the
    in-flight tool call settles.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._cancelled

    def cancel(self, reason: str = "") -> None:
        """Request cancellation. Idempotent; the first reason wins."""
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"<CancelToken: {state}>"


BeforeToolUseHook = Callable[["Tool", "ExecutionContext", Any], Any]
AfterToolUseHook = Callable[["Tool", "ExecutionContext", Any], Any]
ModelMessageHook = Callable[[str], Any]
ModelCaptionHook = Callable[[str, str], Any]


@dataclass
class LifecycleHooks:
    """
    Optional callbacks invoked around each tool call.

    Every hook may be a plain function or a coroutine function.

    Attributes:
        before_tool_use: (tool, context, input) -> new input or None.
            May call ``context.request_skip()`` to skip the tool.
        after_tool_use: (tool, context, result) -> new result or None
        on_model_message: Receives the model's thinking text
        on_model_message_caption: Receives (caption, tool_name)
    """

    before_tool_use: BeforeToolUseHook | None = None
    after_tool_use: AfterToolUseHook | None = None
    on_model_message: ModelMessageHook | None = None
    on_model_message_caption: ModelCaptionHook | None = None


async def call_hook(hook: Callable[..., Any] | None, *args: Any) -> Any:
    """Invoke a sync or async hook, returning None when the hook is unset."""
    if hook is None:
        return None
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


@dataclass
class ExecutionContext:
    """
    Per-run mutable state passed to every tool execution.

    Attributes:
        run_id: Unique identifier for the run
        variables: Key/value store shared by tools within the run
        cancel_token: Cancellation signal for the run
        hooks: Lifecycle hooks around tool invocation
        environment: Host environment handles needed by tools
        skip_requested: Set by a before-hook to skip the pending tool
        abort_requested: Set by a hook to abort the run
    """

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    variables: dict[str, Any] = field(default_factory=dict)
    cancel_token: CancelToken = field(default_factory=CancelToken)
    hooks: LifecycleHooks = field(default_factory=LifecycleHooks)
    environment: dict[str, Any] = field(default_factory=dict)
    skip_requested: bool = False
    abort_requested: bool = False

    @property
    def aborted(self) -> bool:
        """True once a hook aborted the run or cancellation was requested."""
        return self.abort_requested or self.cancel_token.cancelled

    def request_skip(self) -> None:
        """Skip the tool call currently being prepared."""
        self.skip_requested = True

    def abort(self) -> None:
        """Abort the run once the in-flight tool call settles."""
        self.abort_requested = True

    def public_variables(self) -> dict[str, Any]:
        """Variables without the internal ``__``-prefixed keys."""
        return {k: v for k, v in self.variables.items() if not k.startswith("__")}

