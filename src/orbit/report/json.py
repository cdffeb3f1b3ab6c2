"""
JSON report generator for Orbit.

Generates structured JSON output for programmatic consumption: run
metadata, the final value, summary counts and the complete transcript in
its wire shape. A report can be loaded back as a transcript with
``load_transcript``.

Design Principles:
    - Complete data: The full transcript is always included
    - Consistent schema: Same structure across all runs
    - Human-readable keys: Use descriptive snake_case names
    - ISO timestamps: Standard datetime format
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from orbit.agent.loop import AgentResult
from orbit.compaction import count_images
from orbit.schema import Message, ToolResultBlock, ToolUseBlock

REPORT_VERSION = "1.0"


def generate_json_report(result: AgentResult, indent: int = 2) -> str:
    """
    Generate a JSON report for a finished run.

    Args:
        result: The run's result
        indent: JSON indentation level (default: 2)

    Returns:
        JSON string with full run report
    """
    report = build_report_dict(result)
    return json.dumps(report, indent=indent, ensure_ascii=False, default=_json_serializer)


def build_report_dict(result: AgentResult) -> dict[str, Any]:
    """
    Build a report dictionary for a finished run.

    Args:
        result: The run's result

    Returns:
        Dictionary with full run report
    """
    return {
        "report_version": REPORT_VERSION,
        "generated_at": datetime.now(UTC).isoformat(),
        "run": {
            "run_id": result.run_id,
            "task": result.task,
            "state": result.state.value,
            "rounds": result.rounds,
            "forced_finish": result.forced_finish,
            "is_successful": result.is_successful,
            "provider": result.provider_name,
            "duration_seconds": result.total_duration_seconds,
        },
        "final_value": result.final_value,
        "summary": _build_summary(result.messages),
        "messages": [message.to_wire() for message in result.messages],
    }


def _build_summary(messages: list[Message]) -> dict[str, Any]:
    """Build summary statistics for the report."""
    tools_used: list[str] = []
    errors = 0
    for message in messages:
        for block in message.blocks:
            if isinstance(block, ToolUseBlock):
                tools_used.append(block.name)
            elif isinstance(block, ToolResultBlock) and block.is_error:
                errors += 1

    return {
        "message_count": len(messages),
        "tool_calls": len(tools_used),
        "tool_errors": errors,
        "images": count_images(messages),
        "tools_used": sorted(set(tools_used)),
    }


def load_transcript(path: Path | str) -> list[Message]:
    """
    Load a transcript from a JSON file.

    Accepts either a report written by ``generate_json_report`` or a
    bare list of messages.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file holds neither shape
        ValidationError: If a message doesn't match the schema
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("messages")
    if not isinstance(data, list):
        raise ValueError(f"No transcript found in {path}")
    return [Message.model_validate(item) for item in data]


def dump_transcript(messages: list[Message], indent: int = 2) -> str:
    """Serialize a transcript as a JSON list of wire-shaped messages."""
    return json.dumps(
        [message.to_wire() for message in messages],
        indent=indent,
        ensure_ascii=False,
    )


def _json_serializer(obj: Any) -> Any:
    """Custom JSON serializer for non-standard types."""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if hasattr(obj, "__dict__"):
        return obj.__dict__
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
