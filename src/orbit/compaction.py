"""
History compaction for Orbit.

Conversation history grows every round, and screenshots dominate its
size. This module bounds that growth.

Image pruning (``prune_history_images``) runs in place on the real
history before every round: only the most recent user turn keeps its
images.

The pluggable strategies below are pure ``history -> history`` functions
selected by CompactionStrategy. They always work on a deep copy and are
applied to the full history each round, never to a previous compacted
output, so their loss never compounds:

    - NONE: Deep copy, no change
    - IMAGE_PRUNE: Deep copy with stale images pruned
    - SIMPLE_QA: Older turns summarised as <task>/<details>/<result> text
"""

import logging
from typing import Callable

from orbit.schema import (
    CompactionStrategy,
    ImageBlock,
    Message,
    Role,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from orbit.tools.envelope import CAPTION_FIELD, OBSERVATION_FIELD, THINKING_FIELD

logger = logging.getLogger(__name__)

# Replaces a tool result whose content was nothing but images
PRUNED_PLACEHOLDER = "ok"


def count_images(messages: list[Message]) -> int:
    """Count image parts inside tool results across the history."""
    count = 0
    for message in messages:
        for block in message.blocks:
            if isinstance(block, ToolResultBlock) and isinstance(block.content, list):
                count += sum(1 for part in block.content if isinstance(part, ImageBlock))
    return count


def prune_history_images(messages: list[Message]) -> int:
    """
    Strip images from tool results of all but the latest user turn.

    Works in place. A tool result left empty by pruning gets a single
    "ok" text part so it still pairs with its tool_use. Running it twice
    has the same effect as running it once.

    Args:
        messages: History to prune

    Returns:
        Number of images removed
    """
    before = count_images(messages)
    found_latest_user = False

    for message in reversed(messages):
        if message.role != Role.USER:
            continue
        if not found_latest_user:
            found_latest_user = True
            continue
        if isinstance(message.content, str):
            continue

        for block in message.content:
            if not isinstance(block, ToolResultBlock) or not isinstance(block.content, list):
                continue
            if not block.content:
                continue
            kept = [part for part in block.content if not isinstance(part, ImageBlock)]
            block.content = kept or [TextBlock(text=PRUNED_PLACEHOLDER)]

    removed = before - count_images(messages)
    if removed:
        logger.debug("Removed %d images from history", removed)
    return removed


def no_compaction(messages: list[Message]) -> list[Message]:
    """Return a deep copy of the history, unchanged."""
    return [message.model_copy(deep=True) for message in messages]


def image_prune(messages: list[Message]) -> list[Message]:
    """Return a deep copy of the history with stale images pruned."""
    compacted = no_compaction(messages)
    prune_history_images(compacted)
    return compacted


def _task_summary(message: Message) -> str | None:
    first = message.content[0] if isinstance(message.content, list) and message.content else None
    if not isinstance(first, ToolUseBlock) or not isinstance(first.input, dict):
        return None
    caption = first.input.get(CAPTION_FIELD) or ""
    thinking = first.input.get(THINKING_FIELD) or ""
    return f"<task>{caption}</task><details>{thinking}</details>"


def _following_observation(source: list[Message], idx: int) -> str | None:
    try:
        return source[idx + 1].content[0].input[OBSERVATION_FIELD]
    except (AttributeError, IndexError, KeyError, TypeError):
        return None


def simple_qa(messages: list[Message]) -> list[Message]:
    """
    Summarise older turns into compact question/answer text.

    - System messages pass through.
    - Assistant tool calls, except the second-to-last message, become
      ``<task>caption</task><details>thinking</details>``.
    - User turns, except the last message, become ``<result>observation</result>``
      using the observation the model wrote in the following message.
      When that message has no observation the turn passes through.
    - A tool call and the turn holding its result are summarised together
      or both pass through, so no tool_result loses its tool_use.
    """
    source = no_compaction(messages)
    last = len(source) - 1
    summaries: dict[int, str] = {}

    for idx, message in enumerate(source):
        if message.role == Role.ASSISTANT and idx != last - 1:
            task = _task_summary(message)
            if task is not None:
                summaries[idx] = task
        elif message.role == Role.USER and idx != last:
            observation = _following_observation(source, idx)
            if observation is None:
                logger.debug("No observation follows message %d; keeping it as-is", idx)
                continue
            summaries[idx] = f"<result>{observation}</result>"

    callers: dict[str, int] = {}
    for idx, message in enumerate(source):
        for block in message.blocks:
            if isinstance(block, ToolUseBlock):
                callers[block.id] = idx
            elif isinstance(block, ToolResultBlock) and block.tool_use_id in callers:
                caller = callers[block.tool_use_id]
                if (idx in summaries) != (caller in summaries):
                    summaries.pop(idx, None)
                    summaries.pop(caller, None)

    compacted: list[Message] = []
    for idx, message in enumerate(source):
        summary = summaries.get(idx)
        if summary is None:
            compacted.append(message)
        elif message.role == Role.ASSISTANT:
            compacted.append(Message.assistant(summary))
        else:
            compacted.append(Message.user(summary))
    return compacted


_STRATEGIES: dict[CompactionStrategy, Callable[[list[Message]], list[Message]]] = {
    CompactionStrategy.NONE: no_compaction,
    CompactionStrategy.IMAGE_PRUNE: image_prune,
    CompactionStrategy.SIMPLE_QA: simple_qa,
}


def compact(
    messages: list[Message],
    strategy: CompactionStrategy = CompactionStrategy.NONE,
) -> list[Message]:
    """
    Apply a compaction strategy to the history.

    Args:
        messages: Full history (left untouched)
        strategy: Which strategy to apply

    Returns:
        A new, possibly compacted, list of messages
    """
    logger.debug("Compacting %d messages with %s", len(messages), strategy.value)
    return _STRATEGIES[strategy](messages)
