"""
Console report generator for Orbit.

Renders a finished run in the terminal using Rich: a header with the
run's state, a timeline of every tool call with its result, the final
value and summary statistics.

Design Principles:
    - Human-readable first: Optimize for quick scanning
    - Status at a glance: Use icons and colors for status
    - Progressive detail: Summary first, details on request
"""

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from orbit.agent.loop import AgentResult, LoopState
from orbit.schema import (
    ImageBlock,
    Message,
    Role,
    TextBlock,
    ToolInvocation,
    ToolResultBlock,
    ToolUseBlock,
)
from orbit.tools.envelope import CAPTION_FIELD, unwrap_invocation

# Status icons
ICON_SUCCESS = "[green]✓[/green]"
ICON_ERROR = "[red]✗[/red]"
ICON_SKIPPED = "[yellow]⊘[/yellow]"
ICON_PENDING = "[dim]○[/dim]"


def print_transcript(
    result: AgentResult,
    console: Console | None = None,
    verbose: bool = False,
) -> None:
    """
    Print a console report for a finished run.

    Args:
        result: The run's result
        console: Rich Console instance (creates one if not provided)
        verbose: Show tool inputs and full results
    """
    if console is None:
        console = Console()

    _print_header(console, result)
    console.print()

    _print_timeline(console, result.messages, verbose)
    console.print()

    _print_final_value(console, result)
    console.print()

    _print_summary(console, result)


def print_messages(messages: list[Message], console: Console | None = None) -> None:
    """Print a transcript message by message, one panel each."""
    if console is None:
        console = Console()

    styles = {Role.SYSTEM: "dim", Role.USER: "green", Role.ASSISTANT: "cyan"}
    for idx, message in enumerate(messages):
        body = _message_text(message)
        console.print(
            Panel(
                Text(body),
                title=f"#{idx} {message.role.value}",
                title_align="left",
                border_style=styles[message.role],
            )
        )


def _print_header(console: Console, result: AgentResult) -> None:
    """Print the run header with state."""
    if result.state == LoopState.DONE and result.final_value is not None:
        status_style = "green"
        icon = ICON_SUCCESS
    elif result.state == LoopState.DONE:
        status_style = "yellow"
        icon = ICON_PENDING
    else:
        status_style = "red"
        icon = ICON_ERROR

    header = Text()
    header.append(" Run ", style="bold")
    header.append(result.run_id, style="bold cyan")
    header.append(" │ ", style="dim")
    header.append(result.task, style="bold")
    header.append(" │ ", style="dim")
    header.append(result.state.value.upper(), style=f"bold {status_style}")
    header.append(" ")
    header.append_text(Text.from_markup(icon))

    if result.forced_finish:
        header.append(" │ ", style="dim")
        header.append("FORCED FINISH", style="bold magenta")

    console.print(Panel(header, expand=False))
    if result.provider_name:
        console.print(f"  [dim]Provider:[/dim] {result.provider_name}")


def _print_timeline(console: Console, messages: list[Message], verbose: bool) -> None:
    """Print every tool call of the transcript with its result."""
    console.print("[bold]Timeline[/bold]")
    console.print()

    results = {
        block.tool_use_id: block
        for message in messages
        for block in message.blocks
        if isinstance(block, ToolResultBlock)
    }

    table = Table(
        show_header=True,
        header_style="bold",
        show_lines=verbose,
        expand=True,
    )
    table.add_column("#", style="dim", width=3, justify="right")
    table.add_column("Status", width=6, justify="center")
    table.add_column("Tool", style="cyan", width=18)
    table.add_column("Details", overflow="fold")

    step = 0
    for message in messages:
        for block in message.blocks:
            if not isinstance(block, ToolUseBlock):
                continue
            step += 1
            result = results.get(block.id)
            table.add_row(
                str(step),
                _status_icon(result),
                block.name,
                _format_details(block, result, verbose),
            )

    console.print(table)


def _status_icon(result: ToolResultBlock | None) -> str:
    if result is None:
        return ICON_PENDING
    if result.is_error:
        return ICON_ERROR
    if result.content == "skip":
        return ICON_SKIPPED
    return ICON_SUCCESS


def _format_details(block: ToolUseBlock, result: ToolResultBlock | None, verbose: bool) -> str:
    """Format the details column for a tool call."""
    parts = []

    caption = block.input.get(CAPTION_FIELD) if isinstance(block.input, dict) else None
    if caption:
        parts.append(f"[italic]{escape(str(caption))}[/italic]")

    if verbose:
        inner = unwrap_invocation(
            ToolInvocation(id=block.id, name=block.name, input=block.input)
        ).invocation.input
        parts.append(f"[dim]input:[/dim] {escape(_truncate(json.dumps(inner, default=str), 100))}")

    if result is None:
        parts.append("[dim]no result[/dim]")
    else:
        text = _result_text(result)
        limit = 200 if verbose else 60
        if result.is_error:
            parts.append(f"[red]{escape(_truncate(text, limit))}[/red]")
        else:
            parts.append(escape(_truncate(text, limit)))

    return "\n".join(parts)


def _result_text(result: ToolResultBlock) -> str:
    if isinstance(result.content, str):
        return result.content
    pieces = []
    for part in result.content:
        if isinstance(part, ImageBlock):
            pieces.append("(image)")
        else:
            pieces.append(part.text)
    return " ".join(pieces)


def _message_text(message: Message) -> str:
    if isinstance(message.content, str):
        return message.content
    pieces = []
    for block in message.content:
        if isinstance(block, TextBlock):
            pieces.append(block.text)
        elif isinstance(block, ImageBlock):
            pieces.append("(image)")
        elif isinstance(block, ToolUseBlock):
            pieces.append(f"tool_use {block.name} ({block.id}): {json.dumps(block.input, default=str)}")
        elif isinstance(block, ToolResultBlock):
            flag = " error" if block.is_error else ""
            pieces.append(f"tool_result{flag} ({block.tool_use_id}): {_result_text(block)}")
    return "\n".join(pieces)


def _truncate(s: str, max_len: int) -> str:
    """Truncate string with ellipsis."""
    if len(s) <= max_len:
        return s
    return s[: max_len - 3] + "..."


def _print_final_value(console: Console, result: AgentResult) -> None:
    """Print the run's final value."""
    if result.final_value is None:
        console.print(Panel("[dim]No final value[/dim]", title="Result", title_align="left"))
        return

    value: Any = result.final_value
    if not isinstance(value, str):
        value = json.dumps(value, indent=2, ensure_ascii=False, default=str)
    console.print(Panel(Text(value), title="Result", title_align="left", border_style="green"))


def _print_summary(console: Console, result: AgentResult) -> None:
    """Print summary statistics."""
    console.print("[bold]Summary[/bold]")
    console.print()

    tool_calls = 0
    errors = 0
    skipped = 0
    for message in result.messages:
        for block in message.blocks:
            if isinstance(block, ToolUseBlock):
                tool_calls += 1
            elif isinstance(block, ToolResultBlock):
                if block.is_error:
                    errors += 1
                elif block.content == "skip":
                    skipped += 1

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column("Metric", style="dim")
    stats_table.add_column("Value")

    stats_table.add_row("Rounds", str(result.rounds))
    stats_table.add_row("Messages", str(len(result.messages)))
    stats_table.add_row("Tool Calls", str(tool_calls))
    stats_table.add_row("Errors", f"[red]{errors}[/red]" if errors else "0")
    stats_table.add_row("Skipped", f"[yellow]{skipped}[/yellow]" if skipped else "0")
    if result.is_successful is not None:
        verdict = "[green]yes[/green]" if result.is_successful else "[red]no[/red]"
        stats_table.add_row("Successful", verdict)
    stats_table.add_row("Duration", f"{result.total_duration_seconds:.2f}s")

    console.print(stats_table)
