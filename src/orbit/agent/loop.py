"""
Agent loop for Orbit.

This module implements the round-based controller that drives a run to a
final result. Each iteration runs one round (see ``orbit.agent.round``)
and then evaluates termination in this order:

1. The model produced no tool call: demand a finish, run one round
   restricted to the finish tool, then stop
2. The model called the finish tool: stop. When a response holds several
   calls, the round runs the finish call, so it is never dropped
3. The round budget is spent: demand a best-effort finish, run one round
   restricted to the finish tool, then stop
4. Otherwise: continue

States:
    RUNNING -> AWAITING_FORCED_FINISH -> DONE
    RUNNING -> DONE
    any -> CANCELLED (cancellation observed or the task cancelled; re-raised)
    any -> FAILED (unexpected error; re-raised)

A run never commits more than ``max_rounds + 1`` rounds. The full
transcript is always returned, even when the model never finished.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from orbit.agent.prompts import (
    FINISH_INSTRUCTION,
    MAX_ROUNDS_INSTRUCTION,
    build_system_prompt,
    build_task_prompt,
)
from orbit.agent.round import RoundResult, StreamRoundExecutor, ToolResultCache
from orbit.context import ExecutionContext
from orbit.errors import ProviderNotSetError, RunCancelledError
from orbit.provider.base import ModelProvider
from orbit.schema import Message, RunConfig
from orbit.tools import default_tools
from orbit.tools.base import Tool
from orbit.tools.finish import ReturnOutputTool
from orbit.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    """State of an agent run."""

    RUNNING = "running"
    AWAITING_FORCED_FINISH = "awaiting_forced_finish"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class AgentConfig:
    """
    Configuration for the agent loop.

    Round budget and compaction are per task and live on RunConfig.

    Attributes:
        retry_delay_seconds: Pause before retrying a failed model stream
        prune_images: Strip images from all but the latest user turn
        result_cache_chars: Characters kept per cached tool result
    """

    retry_delay_seconds: float = 1.0
    prune_images: bool = True
    result_cache_chars: int = 1000


@dataclass
class AgentResult:
    """
    Final result of an agent run.

    Attributes:
        run_id: Unique identifier for this run
        task: Name of the task
        final_value: The declared output (None when the model never
            provided one)
        messages: The complete transcript
        state: Final loop state
        rounds: Number of committed rounds, forced finish included
        is_successful: The model's own verdict from the finish payload
        forced_finish: Whether a finish-only round was forced
        total_duration_seconds: Total time taken
        provider_name: Name of the model provider used
    """

    run_id: str
    task: str
    final_value: Any = None
    messages: list[Message] = field(default_factory=list)
    state: LoopState = LoopState.DONE
    rounds: int = 0
    is_successful: bool | None = None
    forced_finish: bool = False
    total_duration_seconds: float = 0.0
    provider_name: str = ""


class AgentLoop:
    """
    Round-based controller for one agent run at a time.

    Usage:
        loop = AgentLoop(provider)
        result = await loop.run(RunConfig(name="search", description="..."), tools=[...])

    Attributes:
        provider: Model transport
        config: Loop configuration
        state: State of the most recent run
    """

    def __init__(
        self,
        provider: ModelProvider | None,
        config: AgentConfig | None = None,
    ) -> None:
        """
        Initialize the agent loop.

        Args:
            provider: The model provider (required before ``run``)
            config: Optional configuration (uses defaults if not provided)
        """
        self.provider = provider
        self.config = config or AgentConfig()
        self.state = LoopState.RUNNING

    async def run(
        self,
        task: RunConfig,
        tools: Iterable[Tool] = (),
        ambient_tools: Iterable[Tool] | None = None,
        context: ExecutionContext | None = None,
    ) -> AgentResult:
        """
        Drive a task to completion.

        Args:
            task: The run configuration
            tools: Caller tools for this run
            ambient_tools: Default tools; ``default_tools()`` when None
            context: Execution context (a fresh one when None)

        Returns:
            AgentResult with the final value and the full transcript

        Raises:
            ProviderNotSetError: No provider was configured
            RunCancelledError: Cancellation was observed
        """
        if self.provider is None:
            raise ProviderNotSetError()

        context = context or ExecutionContext()
        start_time = time.time()

        finish_tool = ReturnOutputTool(task.name, task.output_description, task.output_schema)
        if ambient_tools is None:
            ambient_tools = default_tools()
        registry = ToolRegistry.compose(tools, ambient_tools, finish_tool)
        finish_registry = ToolRegistry([finish_tool])

        cache = ToolResultCache(self.config.result_cache_chars)
        executor = StreamRoundExecutor(
            self.provider,
            cache,
            compaction=task.compaction,
            prune_images=self.config.prune_images,
            retry_delay_seconds=self.config.retry_delay_seconds,
        )

        history = [
            Message.system(build_system_prompt()),
            Message.user(build_task_prompt(task, context.public_variables())),
        ]

        logger.info(
            "Starting run %s for task %r with tools: %s",
            context.run_id,
            task.name,
            ", ".join(registry.list_tools()),
        )

        self.state = LoopState.RUNNING
        rounds = 0
        forced_finish = False

        try:
            while self.state == LoopState.RUNNING:
                self._check_cancelled(context)
                rounds += 1
                logger.info("Starting round %d of %d", rounds, task.max_rounds)

                result = await executor.run_round(history, task.model, registry, context)
                history.extend(result.round_messages)

                instruction = self._next_instruction(result, finish_tool, rounds, task.max_rounds)
                if instruction is not None:
                    self._check_cancelled(context)
                    history.append(Message.user(instruction))
                    rounds += 1
                    forced_finish = True
                    logger.info("Forcing a finish in round %d", rounds)
                    final_round = await executor.run_round(
                        history, task.model, finish_registry, context
                    )
                    history.extend(final_round.round_messages)
                    self.state = LoopState.DONE

        except (RunCancelledError, asyncio.CancelledError):
            self.state = LoopState.CANCELLED
            logger.info("Run %s cancelled after %d rounds", context.run_id, rounds)
            raise
        except Exception:
            self.state = LoopState.FAILED
            logger.exception("Run %s failed in round %d", context.run_id, rounds)
            raise
        finally:
            # One-shot: a reused context never carries the payload into another run
            payload = context.variables.pop(finish_tool.output_key, None)

        final_value, is_successful = self._finalize(context, finish_tool, payload, cache)
        cache.clear()

        duration = time.time() - start_time
        logger.info("Run %s done after %d rounds in %.2fs", context.run_id, rounds, duration)

        return AgentResult(
            run_id=context.run_id,
            task=task.name,
            final_value=final_value,
            messages=history,
            state=self.state,
            rounds=rounds,
            is_successful=is_successful,
            forced_finish=forced_finish,
            total_duration_seconds=duration,
            provider_name=self.provider.get_name(),
        )

    def _next_instruction(
        self,
        result: RoundResult,
        finish_tool: ReturnOutputTool,
        rounds: int,
        max_rounds: int,
    ) -> str | None:
        """
        Evaluate termination after a round.

        Updates the state and returns the instruction for a forced finish
        round, or None when no such round is due.
        """
        if not result.has_tool_use:
            logger.info("Model replied without a tool call; requesting a finish")
            self.state = LoopState.AWAITING_FORCED_FINISH
            return FINISH_INSTRUCTION
        if result.invoked(finish_tool.name):
            self.state = LoopState.DONE
            return None
        if rounds >= max_rounds:
            logger.warning("Reached the maximum of %d rounds", max_rounds)
            self.state = LoopState.AWAITING_FORCED_FINISH
            return MAX_ROUNDS_INSTRUCTION
        return None

    def _finalize(
        self,
        context: ExecutionContext,
        finish_tool: ReturnOutputTool,
        payload: dict[str, Any] | None,
        cache: ToolResultCache,
    ) -> tuple[Any, bool | None]:
        """Resolve the final value from the consumed finish payload."""
        if payload is None:
            logger.warning("Run %s ended without a call to %s", context.run_id, finish_tool.name)
            return None, None

        is_successful = payload.get("isSuccessful")
        if payload.get("use_tool_result"):
            value = cache.last()
        else:
            value = payload.get("value")

        if value is None:
            logger.warning("Run %s finished without a final value", context.run_id)
        return value, is_successful

    def _check_cancelled(self, context: ExecutionContext) -> None:
        if context.aborted:
            raise RunCancelledError(
                run_id=context.run_id,
                reason=context.cancel_token.reason or "aborted",
            )
