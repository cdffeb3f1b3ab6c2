"""
Unit tests for round execution.

Tests cover:
- ToolResultCache ordering and truncation
- Text, tool_use and tool_result assembly
- Unknown tools, tool failures and invalid input
- Lifecycle hooks: rewrite, skip, abort, captions
- Transport retry and cancellation
- Image pruning and compaction of the request
"""

import json
from typing import Any

import pytest
from fakes import (
    PNG_SOURCE,
    CancellingTool,
    EchoTool,
    FailingTool,
    ScreenshotTool,
    ScriptedProvider,
    call_finish,
    call_tool,
    enveloped,
    respond,
)

from orbit.agent.round import (
    RoundResult,
    StreamRoundExecutor,
    ToolResultCache,
    error_text,
    serialize_result,
)
from orbit.context import ExecutionContext, LifecycleHooks
from orbit.errors import (
    RunCancelledError,
    ToolExecutionError,
    TransportConnectionError,
    TransportResponseError,
)
from orbit.provider.base import CompletionEvent, TextDelta, ToolUseEvent
from orbit.schema import (
    CompactionStrategy,
    ImageBlock,
    Message,
    ModelParameters,
    ModelResponse,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from orbit.tools.finish import ReturnOutputTool
from orbit.tools.registry import ToolRegistry


# =============================================================================
# Helpers
# =============================================================================


def make_executor(provider: ScriptedProvider, **kwargs: Any) -> StreamRoundExecutor:
    kwargs.setdefault("retry_delay_seconds", 0.0)
    return StreamRoundExecutor(provider, **kwargs)


def seed() -> list[Message]:
    return [Message.system("rules"), Message.user("task")]


def result_block(result: RoundResult) -> ToolResultBlock:
    block = result.round_messages[-1].content[0]
    assert isinstance(block, ToolResultBlock)
    return block


# =============================================================================
# ToolResultCache Tests
# =============================================================================


class TestToolResultCache:
    """Tests for ToolResultCache."""

    def test_empty(self) -> None:
        cache = ToolResultCache()
        assert cache.last() is None
        assert len(cache) == 0

    def test_last_is_most_recent(self) -> None:
        cache = ToolResultCache()
        cache.record("t1", "A")
        cache.record("t2", "B")
        assert cache.last() == "B"
        assert cache.get("t1") == "A"
        assert "t2" in cache

    def test_reused_id_becomes_most_recent(self) -> None:
        cache = ToolResultCache()
        cache.record("t1", "A")
        cache.record("t2", "B")
        cache.record("t1", "C")
        assert cache.last() == "C"
        assert len(cache) == 2

    def test_strings_stored_plain(self) -> None:
        cache = ToolResultCache()
        assert cache.record("t1", "plain") == "plain"

    def test_other_values_stored_as_json(self) -> None:
        cache = ToolResultCache()
        assert cache.record("t1", {"price": 3}) == '{"price": 3}'

    def test_truncation(self) -> None:
        cache = ToolResultCache(max_chars=1000)
        entry = cache.record("t1", "x" * 1500)
        assert entry == "x" * 1000 + "...(truncated)"

    def test_no_truncation_at_limit(self) -> None:
        cache = ToolResultCache(max_chars=10)
        assert cache.record("t1", "x" * 10) == "x" * 10

    def test_image_marker(self) -> None:
        cache = ToolResultCache()
        assert cache.record("t1", {"image": PNG_SOURCE, "text": "Page"}) == "Page [Image]"
        assert cache.record("t2", {"image": PNG_SOURCE}) == "[Image]"

    def test_clear(self) -> None:
        cache = ToolResultCache()
        cache.record("t1", "A")
        cache.clear()
        assert cache.last() is None


class TestHelpers:
    """Tests for result and error formatting."""

    def test_serialize_result(self) -> None:
        assert serialize_result("hi") == '"hi"'
        assert serialize_result({"a": "é"}) == '{"a": "é"}'
        assert serialize_result(None) == "null"

    def test_error_text_plain_exception(self) -> None:
        assert error_text(RuntimeError("disk full")) == "Error: disk full"

    def test_error_text_orbit_error_uses_message(self) -> None:
        err = TransportResponseError(provider="p", status_code=500, body="x")
        assert error_text(err) == f"Error: {err.message}"

    def test_error_text_empty_message(self) -> None:
        assert error_text(ValueError()) == "Error: ValueError"


# =============================================================================
# Round Assembly Tests
# =============================================================================


class TestRoundAssembly:
    """Tests for the messages a round produces."""

    @pytest.mark.asyncio
    async def test_text_only(self, context: ExecutionContext) -> None:
        provider = ScriptedProvider([respond(text="I think the answer is 4.")])
        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry(), context
        )

        assert result.has_tool_use is False
        assert result.round_messages == [
            Message.assistant([TextBlock(text="I think the answer is 4.")])
        ]
        assert result.response is not None
        assert result.response.text == "I think the answer is 4."

    @pytest.mark.asyncio
    async def test_text_deltas_accumulate(self, context: ExecutionContext) -> None:
        provider = ScriptedProvider([[TextDelta("Hel"), TextDelta("lo"), *respond()]])
        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry(), context
        )
        assert result.round_messages[0].content[0].text == "Hello"

    @pytest.mark.asyncio
    async def test_whitespace_text_dropped(self, context: ExecutionContext) -> None:
        provider = ScriptedProvider([respond(text="  \n ")])
        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry(), context
        )
        assert result.round_messages == []
        assert result.has_tool_use is False

    @pytest.mark.asyncio
    async def test_successful_call(self, context: ExecutionContext) -> None:
        echo = EchoTool()
        invocation = enveloped("echo", {"message": "hi"}, "t1")
        provider = ScriptedProvider([respond(call=invocation)])
        executor = make_executor(provider)

        result = await executor.run_round(seed(), ModelParameters(), ToolRegistry([echo]), context)

        assert result.has_tool_use is True
        assert echo.calls == [{"message": "hi"}]
        tool_use, tool_result = result.round_messages
        assert tool_use == Message.assistant([
            ToolUseBlock(id="t1", name="echo", input=invocation.input)
        ])
        assert tool_result == Message.user([ToolResultBlock(tool_use_id="t1", content='"hi"')])
        assert executor.cache.last() == "hi"

    @pytest.mark.asyncio
    async def test_fixed_message_order(self, context: ExecutionContext) -> None:
        """Text, then tool_use, then tool_result, whatever the stream order."""
        invocation = enveloped("echo", {"message": "hi"}, "t1")
        script = [ToolUseEvent(invocation), TextDelta("Calling echo."), *respond()]
        provider = ScriptedProvider([script])

        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry([EchoTool()]), context
        )

        kinds = [type(m.content[0]).__name__ for m in result.round_messages]
        assert kinds == ["TextBlock", "ToolUseBlock", "ToolResultBlock"]

    @pytest.mark.asyncio
    async def test_dict_result_serialized(self, context: ExecutionContext) -> None:
        def after(tool, ctx, result):
            return {"city": "Zürich", "temp": 21}

        context.hooks = LifecycleHooks(after_tool_use=after)
        provider = ScriptedProvider([call_tool("echo", {"message": "hi"}, "t1")])

        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry([EchoTool()]), context
        )

        assert result_block(result).content == '{"city": "Zürich", "temp": 21}'

    @pytest.mark.asyncio
    async def test_only_first_call_executed(self, context: ExecutionContext) -> None:
        echo = EchoTool()
        first = enveloped("echo", {"message": "one"}, "t1")
        second = enveloped("echo", {"message": "two"}, "t2")
        provider = ScriptedProvider([[ToolUseEvent(first), ToolUseEvent(second), *respond()]])

        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry([echo]), context
        )

        assert echo.calls == [{"message": "one"}]
        ids = [m.content[0].id for m in result.round_messages if isinstance(m.content[0], ToolUseBlock)]
        assert ids == ["t1"]

    @pytest.mark.asyncio
    async def test_finish_call_preferred_over_earlier_call(self, context: ExecutionContext) -> None:
        """A finish call after another call runs instead of being dropped."""
        echo = EchoTool()
        finish = ReturnOutputTool("task", "anything")
        first = enveloped("echo", {"message": "one"}, "t1")
        answer = enveloped(
            "return_output",
            {"isSuccessful": True, "use_tool_result": False, "value": "ANSWER"},
            "f1",
        )
        provider = ScriptedProvider([[ToolUseEvent(first), ToolUseEvent(answer), *respond()]])

        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry([echo, finish]), context
        )

        assert echo.calls == []
        assert result.executed("return_output")
        assert result.round_messages[0].content[0].id == "f1"
        assert context.variables[finish.output_key]["value"] == "ANSWER"

    @pytest.mark.asyncio
    async def test_finish_call_listed_in_completion_preferred(
        self, context: ExecutionContext
    ) -> None:
        echo = EchoTool()
        finish = ReturnOutputTool("task", "anything")
        first = enveloped("echo", {"message": "one"}, "t1")
        answer = enveloped(
            "return_output",
            {"isSuccessful": True, "use_tool_result": False, "value": "ANSWER"},
            "f1",
        )
        provider = ScriptedProvider([[
            ToolUseEvent(first),
            CompletionEvent(ModelResponse(tool_calls=[first, answer], stop_reason="tool_use")),
        ]])

        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry([echo, finish]), context
        )

        assert echo.calls == []
        assert result.invoked("return_output") and result.executed("return_output")

    @pytest.mark.asyncio
    async def test_call_only_in_completion(
self, context: ExecutionContext) -> None:
        """A call reported only in the completion summary still runs."""
        echo = EchoTool()
        invocation = enveloped("echo", {"message": "late"}, "t1")
        provider = ScriptedProvider([[CompletionEvent(ModelResponse(tool_calls=[invocation]))]])
        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry([echo]), context
        )
        assert result.has_tool_use is True
        assert echo.calls == [{"message": "late"}]

    @pytest.mark.asyncio
    async def test_image_result(self, context: ExecutionContext) -> None:
        provider = ScriptedProvider([call_tool("screenshot", {}, "t1")])
        executor = make_executor(provider)

        result = await executor.run_round(
            seed(), ModelParameters(), ToolRegistry([ScreenshotTool()]), context
        )

        block = result_block(result)
        assert block.content == [ImageBlock(source=PNG_SOURCE), TextBlock(text="Page loaded")]
        assert executor.cache.last() == "Page loaded [Image]"

    @pytest.mark.asyncio
    async def test_image_result_without_text(self, context: ExecutionContext) -> None:
        provider = ScriptedProvider([call_tool("screenshot", {}, "t1")])
        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry([ScreenshotTool(text=None)]), context
        )
        assert result_block(result).content == [ImageBlock(source=PNG_SOURCE)]

    @pytest.mark.asyncio
    async def test_finish_tool_not_cached(self, context: ExecutionContext) -> None:
        finish = ReturnOutputTool("task", "anything")
        provider = ScriptedProvider([call_finish(value="done")])
        executor = make_executor(provider)

        result = await executor.run_round(seed(), ModelParameters(), ToolRegistry([finish]), context)

        assert result.invoked("return_output")
        assert len(executor.cache) == 0
        assert context.variables[finish.output_key]["value"] == "done"

    @pytest.mark.asyncio
    async def test_params_carry_enveloped_registry_tools(self, context: ExecutionContext) -> None:
        provider = ScriptedProvider([respond(text="hi")])
        params = ModelParameters(model="m")
        registry = ToolRegistry([EchoTool(), ReturnOutputTool("t", "d")])

        await make_executor(provider).run_round(seed(), params, registry, context)

        sent = provider.params[0]
        assert sent.model == "m"
        assert [t.name for t in sent.tools] == ["echo", "return_output"]
        assert "toolCall" in sent.tools[0].input_schema["properties"]
        assert params.tools == []

    @pytest.mark.asyncio
    async def test_history_not_extended(self, context: ExecutionContext) -> None:
        history = seed()
        provider = ScriptedProvider([call_tool("echo", {"message": "hi"}, "t1")])
        await make_executor(provider).run_round(
            history, ModelParameters(), ToolRegistry([EchoTool()]), context
        )
        assert len(history) == 2


# =============================================================================
# Error Path Tests
# =============================================================================


class TestToolErrors:
    """Tests for recoverable per-invocation errors."""

    @pytest.mark.asyncio
    async def test_unknown_tool(self, context: ExecutionContext) -> None:
        provider = ScriptedProvider([call_tool("browser", {"url": "x"}, "t1")])
        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry([EchoTool()]), context
        )

        assert result.has_tool_use is True
        assert result.round_messages[0].content[0].name == "browser"
        block = result_block(result)
        assert block.is_error is True
        assert block.content == "Error: `browser` tool not found."

    @pytest.mark.asyncio
    async def test_tool_raises(self, context: ExecutionContext) -> None:
        """A tool raising "disk full" yields an error result, not an exception."""
        provider = ScriptedProvider([call_tool("failing", {}, "t1")])
        executor = make_executor(provider)

        result = await executor.run_round(
            seed(), ModelParameters(), ToolRegistry([FailingTool("disk full")]), context
        )

        block = result_block(result)
        assert block.tool_use_id == "t1"
        assert block.is_error is True
        assert block.content == "Error: disk full"
        assert len(executor.cache) == 0

    @pytest.mark.asyncio
    async def test_tool_failure_wrapped(self, context: ExecutionContext) -> None:
        """Plain tool exceptions surface as ToolExecutionError with the cause kept."""
        executor = make_executor(ScriptedProvider([]))
        invocation = enveloped("failing", {}, "t1")

        with pytest.raises(ToolExecutionError) as exc_info:
            await executor._invoke(FailingTool("disk full"), invocation, context)

        assert exc_info.value.message == "disk full"
        assert exc_info.value.tool == "failing"
        assert exc_info.value.underlying_error == "RuntimeError: disk full"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert error_text(exc_info.value) == "Error: disk full"

    @pytest.mark.asyncio
    async def test_invalid_input(
self, context: ExecutionContext) -> None:
        echo = EchoTool()
        provider = ScriptedProvider([call_tool("echo", {"text": "wrong key"}, "t1")])

        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry([echo]), context
        )

        block = result_block(result)
        assert block.is_error is True
        assert "missing required field 'message'" in block.content
        assert echo.calls == []

    @pytest.mark.asyncio
    async def test_every_tool_use_paired(self, context: ExecutionContext) -> None:
        provider = ScriptedProvider([call_tool("failing", {}, "t7")])
        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry([FailingTool()]), context
        )
        uses = [b.id for m in result.round_messages for b in m.blocks if isinstance(b, ToolUseBlock)]
        results = [
            b.tool_use_id for m in result.round_messages for b in m.blocks if isinstance(b, ToolResultBlock)
        ]
        assert uses == results == ["t7"]


# =============================================================================
# Hook Tests
# =============================================================================


class TestHooks:
    """Tests for lifecycle hooks around a tool call."""

    @pytest.mark.asyncio
    async def test_before_hook_rewrites_input(self) -> None:
        echo = EchoTool()
        invocation = enveloped("echo", {"message": "original"}, "t1")

        def before(tool, ctx, tool_input):
            return {**tool_input, "toolCall": {"message": "rewritten"}}

        context = ExecutionContext(hooks=LifecycleHooks(before_tool_use=before))
        provider = ScriptedProvider([respond(call=invocation)])

        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry([echo]), context
        )

        assert echo.calls == [{"message": "rewritten"}]
        assert result.round_messages[0].content[0].input == invocation.input
        assert result_block(result).content == '"rewritten"'

    @pytest.mark.asyncio
    async def test_before_hook_skip(self) -> None:
        echo = EchoTool()
        context = ExecutionContext(
            hooks=LifecycleHooks(before_tool_use=lambda tool, ctx, inp: ctx.request_skip())
        )
        provider = ScriptedProvider([call_tool("echo", {"message": "hi"}, "t1")])
        executor = make_executor(provider)

        result = await executor.run_round(seed(), ModelParameters(), ToolRegistry([echo]), context)

        assert echo.calls == []
        block = result_block(result)
        assert block.content == "skip"
        assert block.is_error is None
        assert len(executor.cache) == 0

    @pytest.mark.asyncio
    async def test_skip_flag_reset_per_call(self) -> None:
        echo = EchoTool()
        context = ExecutionContext()
        context.skip_requested = True
        provider = ScriptedProvider([call_tool("echo", {"message": "hi"}, "t1")])

        await make_executor(provider).run_round(seed(), ModelParameters(), ToolRegistry([echo]), context)

        assert echo.calls == [{"message": "hi"}]

    @pytest.mark.asyncio
    async def test_before_hook_abort_cancels_round(self) -> None:
        echo = EchoTool()
        context = ExecutionContext(
            hooks=LifecycleHooks(before_tool_use=lambda tool, ctx, inp: ctx.abort())
        )
        provider = ScriptedProvider([call_tool("echo", {"message": "hi"}, "t1")])

        with pytest.raises(RunCancelledError):
            await make_executor(provider).run_round(
                seed(), ModelParameters(), ToolRegistry([echo]), context
            )
        assert echo.calls == []

    @pytest.mark.asyncio
    async def test_after_hook_rewrites_result(self) -> None:
        async def after(tool, ctx, result):
            return {"wrapped": result}

        context = ExecutionContext(hooks=LifecycleHooks(after_tool_use=after))
        provider = ScriptedProvider([call_tool("echo", {"message": "hi"}, "t1")])
        executor = make_executor(provider)

        result = await executor.run_round(
            seed(), ModelParameters(), ToolRegistry([EchoTool()]), context
        )

        assert json.loads(result_block(result).content) == {"wrapped": "hi"}
        assert executor.cache.last() == '{"wrapped": "hi"}'

    @pytest.mark.asyncio
    async def test_hook_error_becomes_error_result(self) -> None:
        def after(tool, ctx, result):
            raise ValueError("hook broke")

        context = ExecutionContext(hooks=LifecycleHooks(after_tool_use=after))
        provider = ScriptedProvider([call_tool("echo", {"message": "hi"}, "t1")])

        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry([EchoTool()]), context
        )

        block = result_block(result)
        assert block.is_error is True
        assert block.content == "Error: hook broke"

    @pytest.mark.asyncio
    async def test_caption_and_thinking_surfaced(self) -> None:
        captions: list[tuple[str, str]] = []
        thoughts: list[str] = []

        async def on_caption(caption, tool_name):
            captions.append((caption, tool_name))

        context = ExecutionContext(
            hooks=LifecycleHooks(
                on_model_message=thoughts.append,
                on_model_message_caption=on_caption,
            )
        )
        provider = ScriptedProvider([
            call_tool("echo", {"message": "hi"}, "t1", caption="Echoing.", thinking="Say hi.")
        ])

        await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry([EchoTool()]), context
        )

        assert captions == [("Echoing.", "echo")]
        assert thoughts == ["Say hi."]

    @pytest.mark.asyncio
    async def test_missing_caption_not_fatal(self) -> None:
        captions: list[Any] = []
        echo = EchoTool()
        context = ExecutionContext(
            hooks=LifecycleHooks(on_model_message_caption=lambda c, n: captions.append(c))
        )
        provider = ScriptedProvider([call_tool("echo", {"message": "hi"}, "t1", caption=None)])

        await make_executor(provider).run_round(seed(), ModelParameters(), ToolRegistry([echo]), context)

        assert captions == []
        assert echo.calls == [{"message": "hi"}]


# =============================================================================
# Retry and Cancellation Tests
# =============================================================================


class TestRetryAndCancellation:
    """Tests for transport retry and cooperative cancellation."""

    @pytest.mark.asyncio
    async def test_transport_error_retried(self, context: ExecutionContext) -> None:
        echo = EchoTool()
        provider = ScriptedProvider([
            TransportConnectionError(provider="fake", url="http://x"),
            call_tool("echo", {"message": "hi"}, "t1"),
        ])

        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry([echo]), context
        )

        assert provider.call_count == 2
        assert result.attempts == 2
        assert echo.calls == [{"message": "hi"}]

    @pytest.mark.asyncio
    async def test_partial_round_discarded(self, context: ExecutionContext) -> None:
        """A stream failing mid-way leaves no trace and runs no tool."""
        echo = EchoTool()
        broken = [
            TextDelta("Partial text"),
            ToolUseEvent(enveloped("echo", {"message": "lost"}, "t0")),
            TransportConnectionError(provider="fake", message="connection reset"),
        ]
        provider = ScriptedProvider([broken, call_tool("echo", {"message": "kept"}, "t1")])

        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry([echo]), context
        )

        assert echo.calls == [{"message": "kept"}]
        texts = [b for m in result.round_messages for b in m.blocks if isinstance(b, TextBlock)]
        assert texts == []
        assert result.round_messages[0].content[0].id == "t1"

    @pytest.mark.asyncio
    async def test_non_transport_error_not_retried(self, context: ExecutionContext) -> None:
        """Only transport errors are retried; anything else escapes the round."""
        provider = ScriptedProvider([
            AttributeError("'list' object has no attribute 'get'"),
            respond(text="never"),
        ])

        with pytest.raises(AttributeError):
            await make_executor(provider).run_round(
                seed(), ModelParameters(), ToolRegistry(), context
            )

        assert provider.call_count == 1

    @pytest.mark.asyncio
    async def test_retry_unbounded(
self, context: ExecutionContext) -> None:
        failures = [TransportConnectionError(provider="fake") for _ in range(5)]
        provider = ScriptedProvider([*failures, respond(text="finally")])

        result = await make_executor(provider).run_round(
            seed(), ModelParameters(), ToolRegistry(), context
        )

        assert result.attempts == 6

    @pytest.mark.asyncio
    async def test_cancelled_before_round(self, context: ExecutionContext) -> None:
        context.cancel_token.cancel("stop")
        provider = ScriptedProvider([respond(text="never")])

        with pytest.raises(RunCancelledError) as exc_info:
            await make_executor(provider).run_round(
                seed(), ModelParameters(), ToolRegistry(), context
            )

        assert provider.call_count == 0
        assert exc_info.value.reason == "stop"

    @pytest.mark.asyncio
    async def test_cancellation_checked_between_retries(self, context: ExecutionContext) -> None:
        class CancelOnFailure(ScriptedProvider):
            async def stream(self, messages, params):
                context.cancel_token.cancel("gave up")
                raise TransportConnectionError(provider="fake")
                yield  # pragma: no cover

        provider = CancelOnFailure([])
        with pytest.raises(RunCancelledError):
            await make_executor(provider).run_round(
                seed(), ModelParameters(), ToolRegistry(), context
            )

    @pytest.mark.asyncio
    async def test_cancelled_during_tool(self, context: ExecutionContext) -> None:
        """The in-flight tool completes, then the round fails."""
        provider = ScriptedProvider([call_tool("cancelling", {}, "t1")])
        executor = make_executor(provider)

        with pytest.raises(RunCancelledError) as exc_info:
            await executor.run_round(
                seed(), ModelParameters(), ToolRegistry([CancellingTool()]), context
            )

        assert exc_info.value.reason == "user stopped the run"
        assert executor.cache.last() == '{"done": true}'


# =============================================================================
# Compaction Tests
# =============================================================================


class TestRequestCompaction:
    """Tests for history handling before each request."""

    def image_history(self) -> list[Message]:
        image = [ImageBlock(source=PNG_SOURCE)]
        return [
            Message.system("rules"),
            Message.user("task"),
            Message.assistant([ToolUseBlock(id="t1", name="screenshot", input={})]),
            Message.user([ToolResultBlock(tool_use_id="t1", content=list(image))]),
            Message.assistant([ToolUseBlock(id="t2", name="screenshot", input={})]),
            Message.user([ToolResultBlock(tool_use_id="t2", content=list(image))]),
        ]

    @pytest.mark.asyncio
    async def test_images_pruned_in_place(self, context: ExecutionContext) -> None:
        history = self.image_history()
        provider = ScriptedProvider([respond(text="ok")])

        await make_executor(provider).run_round(history, ModelParameters(), ToolRegistry(), context)

        assert history[3].content[0].content == [TextBlock(text="ok")]
        assert isinstance(history[5].content[0].content[0], ImageBlock)
        assert provider.requests[0] == history

    @pytest.mark.asyncio
    async def test_pruning_disabled(self, context: ExecutionContext) -> None:
        history = self.image_history()
        provider = ScriptedProvider([respond(text="ok")])

        await make_executor(provider, prune_images=False).run_round(
            history, ModelParameters(), ToolRegistry(), context
        )

        assert isinstance(history[3].content[0].content[0], ImageBlock)

    @pytest.mark.asyncio
    async def test_strategy_applies_to_request_only(self, context: ExecutionContext) -> None:
        history = self.image_history()
        history[2] = Message.assistant([
            ToolUseBlock(
                id="t1",
                name="screenshot",
                input={"userSidePrompt": "Look", "thinking": "t", "toolCall": {}},
            )
        ])
        history[4] = Message.assistant([
            ToolUseBlock(id="t2", name="screenshot", input={"observation": "Seen", "toolCall": {}})
        ])
        provider = ScriptedProvider([respond(text="ok")])

        await make_executor(provider, compaction=CompactionStrategy.SIMPLE_QA).run_round(
            history, ModelParameters(), ToolRegistry(), context
        )

        sent = provider.requests[0]
        assert sent[2].content == "<task>Look</task><details>t</details>"
        assert sent[3].content == "<result>Seen</result>"
        assert isinstance(history[2].content[0], ToolUseBlock)
