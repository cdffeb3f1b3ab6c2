"""
CLI entry point for Orbit.

This module provides the Typer-based command-line interface for Orbit.

Commands:
    run         Run a task described by a YAML run configuration
    tools       List the built-in tools
    compact     Apply a compaction strategy to a saved transcript

Architecture Note:
    The CLI is intentionally thin - it parses arguments and delegates to
    the Engine for actual execution, so the core can be used
    programmatically without the CLI.
"""

import asyncio
import json
import traceback
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from orbit import __version__
from orbit.agent.loop import AgentConfig, AgentResult
from orbit.compaction import compact as compact_history
from orbit.compaction import count_images
from orbit.engine import Engine
from orbit.errors import OrbitError, RunCancelledError
from orbit.logging_config import setup_logging
from orbit.provider.anthropic import AnthropicProvider, ProviderConfig
from orbit.report import (
    dump_transcript,
    generate_json_report,
    load_transcript,
    print_messages,
    print_transcript,
)
from orbit.schema import CompactionStrategy, RunConfig, load_run_config
from orbit.tools import ReturnOutputTool, default_tools
from orbit.tools.envelope import wrap_input_schema

app = typer.Typer(
    name="orbit",
    help="Drive language-model agents through tool-calling rounds.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]orbit[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    Orbit - round-based agent loop.

    Runs a task by letting a language model call tools round by round
    until it declares a final output.
    """
    pass


@app.command()
def run(
    config_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the run configuration YAML file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    model: Annotated[
        Optional[str],
        typer.Option("--model", "-m", help="Model to use (overrides the configuration)."),
    ] = None,
    max_rounds: Annotated[
        Optional[int],
        typer.Option("--max-rounds", help="Maximum number of rounds (overrides the configuration).", min=1),
    ] = None,
    base_url: Annotated[
        str,
        typer.Option("--base-url", help="API root of the Messages endpoint."),
    ] = "https://api.anthropic.com",
    api_key: Annotated[
        Optional[str],
        typer.Option("--api-key", envvar="ANTHROPIC_API_KEY", help="API key.", show_default=False),
    ] = None,
    timeout: Annotated[
        float,
        typer.Option("--timeout", help="Stream timeout in seconds."),
    ] = 120.0,
    retry_delay: Annotated[
        float,
        typer.Option("--retry-delay", help="Seconds to wait before retrying a failed stream."),
    ] = 1.0,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output the report in JSON format."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Show tool inputs and full results."),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug mode with full error tracebacks."),
    ] = False,
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)."),
    ] = "WARNING",
    log_file: Annotated[
        Optional[Path],
        typer.Option("--log-file", help="Also write logs to this file."),
    ] = None,
) -> None:
    """
    Run a task described by a YAML run configuration.

    Example:
        $ orbit run task.yaml --model claude-sonnet-4-5 --max-rounds 20
    """
    setup_logging(log_level, str(log_file) if log_file else None)

    try:
        config = load_run_config(config_path)
    except Exception as e:
        if json_output:
            _output_json_error("config_load_error", str(e), debug)
        else:
            console.print(f"[red]Error loading run configuration: {e}[/red]")
            if debug:
                console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=1)

    config = _apply_overrides(config, model, max_rounds)
    if verbose and not json_output:
        console.print(f"[dim]Loaded run configuration: {config_path}[/dim]")
        console.print(f"[dim]  Task: {config.name} | Max rounds: {config.max_rounds}[/dim]")

    provider = AnthropicProvider(
        ProviderConfig(
            base_url=base_url,
            api_key=api_key,
            model=config.model.model or ProviderConfig.model,
            timeout_seconds=timeout,
        )
    )
    agent_config = AgentConfig(retry_delay_seconds=retry_delay)

    try:
        result = asyncio.run(_run_task(provider, config, agent_config))
    except KeyboardInterrupt:
        console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit(code=130)
    except RunCancelledError as e:
        if json_output:
            _output_json_error("cancelled", e.message, debug)
        else:
            console.print(f"[yellow]{e.message}[/yellow]")
        raise typer.Exit(code=130)
    except OrbitError as e:
        if json_output:
            _output_json_error("run_error", e.message, debug)
        else:
            console.print(f"[red]{e}[/red]")
            if e.suggestion:
                console.print(f"[dim]{e.suggestion}[/dim]")
            if debug:
                console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=1)
    except Exception as e:
        if json_output:
            _output_json_error("execution_error", str(e), debug)
        else:
            console.print(f"[red]Execution error: {e}[/red]")
            if debug:
                console.print(f"[dim]{traceback.format_exc()}[/dim]")
        raise typer.Exit(code=1)

    if json_output:
        print(generate_json_report(result))
    else:
        print_transcript(result, console, verbose)

    raise typer.Exit(code=0 if result.final_value is not None else 1)


async def _run_task(
    provider: AnthropicProvider,
    config: RunConfig,
    agent_config: AgentConfig,
) -> AgentResult:
    async with Engine(provider, agent_config=agent_config) as engine:
        return await engine.run(config)


def _apply_overrides(
    config: RunConfig,
    model: str | None,
    max_rounds: int | None,
) -> RunConfig:
    """Apply command-line overrides to a frozen run configuration."""
    update: dict = {}
    if model:
        update["model"] = config.model.model_copy(update={"model": model})
    if max_rounds:
        update["max_rounds"] = max_rounds
    return config.model_copy(update=update) if update else config


def _output_json_error(error_type: str, message: str, include_traceback: bool = False) -> None:
    """Output an error in JSON format."""
    output = {
        "error": True,
        "error_type": error_type,
        "message": message,
    }
    if include_traceback:
        output["traceback"] = traceback.format_exc()
    print(json.dumps(output, indent=2))


@app.command()
def tools(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output the list in JSON format."),
    ] = False,
) -> None:
    """
    List the built-in tools every run receives.

    Example:
        $ orbit tools
    """
    builtin = [*default_tools(), ReturnOutputTool("example", "The final result of the task.")]

    if json_output:
        output = [wrap_input_schema(tool.definition()).model_dump() for tool in builtin]
        print(json.dumps(output, indent=2))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Tool", style="cyan")
    table.add_column("Required Input")
    table.add_column("Description", overflow="fold")

    for tool in builtin:
        required = ", ".join(tool.input_schema.get("required", [])) or "-"
        description = tool.description.split("\n")[0]
        table.add_row(tool.name, required, description)

    console.print(table)


@app.command()
def compact(
    transcript_path: Annotated[
        Path,
        typer.Argument(
            help="Path to a JSON report or transcript.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    strategy: Annotated[
        CompactionStrategy,
        typer.Option("--strategy", "-s", help="Compaction strategy to apply."),
    ] = CompactionStrategy.IMAGE_PRUNE,
    output: Annotated[
        Optional[Path],
        typer.Option("--out", "-o", help="Write the compacted transcript to this file."),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print the compacted transcript as JSON."),
    ] = False,
) -> None:
    """
    Apply a compaction strategy to a saved transcript.

    Example:
        $ orbit compact report.json --strategy simple-qa --out compacted.json
    """
    try:
        messages = load_transcript(transcript_path)
    except Exception as e:
        if json_output:
            _output_json_error("transcript_load_error", str(e))
        else:
            console.print(f"[red]Error loading transcript: {e}[/red]")
        raise typer.Exit(code=1)

    compacted = compact_history(messages, strategy)

    if output:
        output.write_text(dump_transcript(compacted), encoding="utf-8")

    if json_output:
        print(dump_transcript(compacted))
        return

    print_messages(compacted, console)
    console.print()
    console.print(
        f"[dim]Strategy: {strategy.value} | "
        f"Images: {count_images(messages)} -> {count_images(compacted)}[/dim]"
    )
    if output:
        console.print(f"[dim]Written to {output}[/dim]")


if __name__ == "__main__":
    app()
