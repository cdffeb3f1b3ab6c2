"""
Round execution for Orbit.

One round is one full request/response cycle with the model:

1. Prune stale images from the history and compact a request copy
2. Stream the response: collect text, the capability invocation and
   the completion summary
3. Execute the invocation (before-hook, envelope unwrap, tool, after-hook)
4. Assemble the round's messages in fixed order: text, tool_use, tool_result

Tool execution is deferred until the stream has ended. A transport
failure therefore discards the partial round without having caused any
side effect, and the whole round is retried from the top.

Only transport errors are retried. Unknown tools, tool errors and hook
errors become ``is_error`` tool results the model can read. Cancellation
and any other exception escape the round.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from orbit.compaction import compact, prune_history_images
from orbit.context import ExecutionContext, call_hook
from orbit.errors import (
    OrbitError,
    RunCancelledError,
    ToolExecutionError,
    ToolInvalidArgsError,
    ToolNotFoundError,
    ToolSkippedError,
    TransportError,
)
from orbit.provider.base import CompletionEvent, ModelProvider, TextDelta, ToolUseEvent
from orbit.schema import (
    CompactionStrategy,
    ImageBlock,
    Message,
    ModelParameters,
    ModelResponse,
    TextBlock,
    ToolInvocation,
    ToolResultBlock,
    ToolUseBlock,
)
from orbit.tools.base import Tool, ToolOutput
from orbit.tools.envelope import unwrap_invocation, wrap_input_schema
from orbit.tools.finish import RETURN_OUTPUT_TOOL_NAME
from orbit.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

TRUNCATION_SUFFIX = "...(truncated)"
SKIP_RESULT = "skip"
IMAGE_MARKER = "[Image]"


def serialize_result(result: Any) -> str:
    """JSON text of a tool result, as sent to the model."""
    return json.dumps(result, ensure_ascii=False, default=str)


def error_text(error: BaseException) -> str:
    """The text reported to the model for a failed tool call."""
    message = error.message if isinstance(error, OrbitError) else str(error)
    return f"Error: {message or type(error).__name__}"


def _image_source(image: Any) -> dict[str, Any]:
    if isinstance(image, dict):
        return image
    # Bare base64 payload
    return {"type": "base64", "media_type": "image/png", "data": str(image)}


def _has_image(result: Any) -> bool:
    return isinstance(result, dict) and bool(result.get("image"))


def _select_invocation(calls: list[ToolInvocation]) -> ToolInvocation | None:
    for call in calls:
        if call.name == RETURN_OUTPUT_TOOL_NAME:
            return call
    return calls[0] if calls else None


class ToolResultCache:
    """
    Textual results of the run's tool calls, keyed by invocation id.

    Only used to resolve ``use_tool_result`` in the finish payload.
    Entries are kept in invocation order across the whole run and are
    truncated to ``max_chars`` characters.
    """

    def __init__(self, max_chars: int = 1000) -> None:
        self.max_chars = max_chars
        self._entries: dict[str, str] = {}

    def record(self, invocation_id: str, result: Any) -> str:
        """Store the textual form of a result and return it."""
        if _has_image(result):
            text = result.get("text")
            entry = f"{text} {IMAGE_MARKER}" if text else IMAGE_MARKER
        elif isinstance(result, str):
            entry = result
        else:
            entry = serialize_result(result)

        if len(entry) > self.max_chars:
            entry = entry[: self.max_chars] + TRUNCATION_SUFFIX
        # A reused id counts as the newest result
        self._entries.pop(invocation_id, None)
        self._entries[invocation_id] = entry
        return entry

    def last(self) -> str | None:
        """The most recently recorded result, or None when empty."""
        if not self._entries:
            return None
        return next(reversed(self._entries.values()))

    def get(self, invocation_id: str) -> str | None:
        return self._entries.get(invocation_id)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, invocation_id: str) -> bool:
        return invocation_id in self._entries


@dataclass
class RoundResult:
    """
    Outcome of one round.

    Attributes:
        response: The model's completion summary (None if the stream ended
            without one)
        has_tool_use: Whether the model invoked a capability
        round_messages: Messages to append to history, in order
        attempts: Number of stream attempts the round took
    """

    response: ModelResponse | None
    has_tool_use: bool = False
    round_messages: list[Message] = field(default_factory=list)
    attempts: int = 1

    def invoked(self, tool_name: str) -> bool:
        """Whether this round invoked the named capability."""
        if self.response is not None and any(
            call.name == tool_name for call in self.response.tool_calls
        ):
            return True
        return self.executed(tool_name)

    def executed(self, tool_name: str) -> bool:
        """Whether the round's committed tool_use is for the named capability."""
        return any(
            isinstance(block, ToolUseBlock) and block.name == tool_name
            for message in self.round_messages
            for block in message.blocks
        )


@dataclass
class _StreamOutcome:
    text: str
    invocation: ToolInvocation | None
    response: ModelResponse | None


class StreamRoundExecutor:
    """
    Runs single rounds against a model provider.

    The executor is created per run; its ToolResultCache accumulates the
    results of every round of that run.

    Attributes:
        provider: Model transport
        cache: Tool result cache of the run
        compaction: Strategy applied to the request copy of the history
        prune_images: Prune stale images from the history before each attempt
        retry_delay_seconds: Pause before retrying a failed stream
    """

    def __init__(
        self,
        provider: ModelProvider,
        cache: ToolResultCache | None = None,
        compaction: CompactionStrategy = CompactionStrategy.NONE,
        prune_images: bool = True,
        retry_delay_seconds: float = 1.0,
    ) -> None:
        self.provider = provider
        self.cache = cache if cache is not None else ToolResultCache()
        self.compaction = compaction
        self.prune_images = prune_images
        self.retry_delay_seconds = retry_delay_seconds

    async def run_round(
        self,
        history: list[Message],
        params: ModelParameters,
        registry: ToolRegistry,
        context: ExecutionContext,
    ) -> RoundResult:
        """
        Run one round.

        ``history`` is only modified by image pruning; the round's messages
        are returned for the caller to append.

        Args:
            history: Conversation history
            params: Model parameters; ``tools`` is replaced by the registry's
                enveloped definitions
            registry: Capabilities available this round
            context: The run's execution context

        Returns:
            RoundResult with the messages of this round

        Raises:
            RunCancelledError: Cancellation was observed
        """
        request_params = params.model_copy(
            update={"tools": [wrap_input_schema(d) for d in registry.definitions()]}
        )

        attempt = 0
        while True:
            attempt += 1
            self._check_cancelled(context)

            if self.prune_images:
                prune_history_images(history)
            request = compact(history, self.compaction)

            try:
                outcome = await self._consume_stream(request, request_params)
                break
            except TransportError as e:
                logger.warning(
                    "Model stream failed on attempt %d (%s); retrying in %.1fs",
                    attempt,
                    e,
                    self.retry_delay_seconds,
                )
                await asyncio.sleep(self.retry_delay_seconds)

        messages: list[Message] = []
        if outcome.text.strip():
            messages.append(Message.assistant([TextBlock(text=outcome.text)]))

        invocation = outcome.invocation
        if invocation is not None:
            messages.append(
                Message.assistant([
                    ToolUseBlock(id=invocation.id, name=invocation.name, input=invocation.input)
                ])
            )
            result_block = await self._execute(invocation, registry, context)
            messages.append(Message.user([result_block]))
            self._check_cancelled(context)

        return RoundResult(
            response=outcome.response,
            has_tool_use=invocation is not None,
            round_messages=messages,
            attempts=attempt,
        )

    async def _consume_stream(
        self,
        request: list[Message],
        params: ModelParameters,
    ) -> _StreamOutcome:
        """
        Drain one stream into text, one invocation and the summary.

        Only one invocation runs per round. A call to the finish tool wins
        over any other call of the response, otherwise the first call
        wins. The calls that lose are logged and dropped.
        """
        text_parts: list[str] = []
        calls: list[ToolInvocation] = []
        response: ModelResponse | None = None

        async for event in self.provider.stream(request, params):
            if isinstance(event, TextDelta):
                if event.text:
                    text_parts.append(event.text)
            elif isinstance(event, ToolUseEvent):
                calls.append(event.invocation)
            elif isinstance(event, CompletionEvent):
                response = event.response

        if response is None:
            logger.debug("Stream ended without a completion event")
        else:
            seen = {call.id for call in calls}
            calls.extend(call for call in response.tool_calls if call.id not in seen)

        invocation = _select_invocation(calls)
        for call in calls:
            if call is not invocation:
                logger.warning(
                    "Dropping extra tool call %s (%s); one call per round",
                    call.name,
                    call.id,
                )

        return _StreamOutcome("".join(text_parts), invocation, response)

    async def _execute(
        self,
        invocation: ToolInvocation,
        registry: ToolRegistry,
        context: ExecutionContext,
    ) -> ToolResultBlock:
        """Execute an invocation and build its tool_result block."""
        tool = registry.get_optional(invocation.name)
        if tool is None:
            error = ToolNotFoundError(tool=invocation.name, tool_args=invocation.input)
            logger.warning("Model called unknown tool %s", invocation.name)
            return ToolResultBlock(
                tool_use_id=invocation.id, content=error_text(error), is_error=True
            )

        try:
            result = await self._invoke(tool, invocation, context)
        except ToolSkippedError:
            logger.info("Skipped tool %s", tool.name)
            return ToolResultBlock(tool_use_id=invocation.id, content=SKIP_RESULT)
        except Exception as e:
            logger.warning("Tool %s failed: %s", tool.name, e)
            return ToolResultBlock(
                tool_use_id=invocation.id, content=error_text(e), is_error=True
            )

        if tool.name != RETURN_OUTPUT_TOOL_NAME:
            entry = self.cache.record(invocation.id, result)
            logger.info("Tool %s done: %s", tool.name, entry)
        return self._result_block(invocation.id, result)

    async def _invoke(
        self,
        tool: Tool,
        invocation: ToolInvocation,
        context: ExecutionContext,
    ) -> Any:
        hooks = context.hooks
        context.skip_requested = False

        tool_input = invocation.input
        rewritten = await call_hook(hooks.before_tool_use, tool, context, tool_input)
        if rewritten is not None:
            tool_input = rewritten

        if context.skip_requested or context.aborted:
            raise ToolSkippedError(tool=tool.name, tool_args=tool_input)

        unwrapped = unwrap_invocation(invocation.model_copy(update={"input": tool_input}))
        if unwrapped.caption:
            await call_hook(hooks.on_model_message_caption, unwrapped.caption, tool.name)
        else:
            logger.warning("Tool call %s carries no caption", tool.name)
        if unwrapped.thinking:
            await call_hook(hooks.on_model_message, unwrapped.thinking)

        args = unwrapped.invocation.input
        validation_errors = tool.validate_args(args)
        if validation_errors:
            raise ToolInvalidArgsError(
                tool=tool.name, tool_args=args, validation_errors=validation_errors
            )

        logger.info("Calling tool %s", tool.name)
        try:
            result = await tool.execute(context, args)
        except OrbitError:
            raise
        except Exception as e:
            raise ToolExecutionError(
                message=str(e) or type(e).__name__,
                tool=tool.name,
                tool_args=args,
                underlying_error=f"{type(e).__name__}: {e}",
            ) from e

        if isinstance(result, ToolOutput):
            result = result.to_result()

        replaced = await call_hook(hooks.after_tool_use, tool, context, result)
        if replaced is not None:
            result = replaced
        return result

    def _result_block(self, invocation_id: str, result: Any) -> ToolResultBlock:
        if _has_image(result):
            parts: list[Any] = [ImageBlock(source=_image_source(result["image"]))]
            if result.get("text"):
                parts.append(TextBlock(text=str(result["text"])))
            return ToolResultBlock(tool_use_id=invocation_id, content=parts)
        return ToolResultBlock(tool_use_id=invocation_id, content=serialize_result(result))

    def _check_cancelled(self, context: ExecutionContext) -> None:
        if context.aborted:
            raise RunCancelledError(
                run_id=context.run_id,
                reason=context.cancel_token.reason or "aborted",
            )
