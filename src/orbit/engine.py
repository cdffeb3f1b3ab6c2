"""
Execution Engine for Orbit.

The Engine is the orchestration layer that owns a tool catalog and a
model provider, and runs tasks through the agent loop. It coordinates:
- Catalog: Tools callers can enable by name in a RunConfig
- Agent loop: Drives each run round by round
- Teardown: Calls ``destroy`` on every tool of a run once it ends

Execution Flow:
    1. Resolve the RunConfig's tool names against the catalog
    2. Add fresh ambient tools (write_context)
    3. Run the agent loop
    4. Destroy the run's tools, whatever the outcome

Design Principles:
    - No global state: each Engine has its own catalog
    - Runs never share an ExecutionContext
    - Teardown failures are logged and never mask the run's outcome
"""

import inspect
import logging
from typing import Any, Iterable

from orbit.agent.loop import AgentConfig, AgentLoop, AgentResult
from orbit.context import ExecutionContext, LifecycleHooks
from orbit.errors import ProviderNotSetError, RunConfigError, ToolInvalidArgsError
from orbit.provider.base import ModelProvider
from orbit.schema import RunConfig
from orbit.tools import default_tools
from orbit.tools.base import Tool, ToolOutput
from orbit.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


async def destroy_tool(tool: Tool, context: ExecutionContext) -> None:
    """Call a tool's destroy hook, sync or async, logging any failure."""
    try:
        outcome = tool.destroy(context)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception:
        logger.warning("Failed to destroy tool %s", tool.name, exc_info=True)


class Engine:
    """
    Main execution engine for Orbit.

    Usage:
        async with Engine(provider, tools=[BrowserTool()]) as engine:
            result = await engine.run(load_run_config("task.yaml"))
            print(result.final_value)

    Attributes:
        provider: Model transport shared by all runs
        catalog: Tools callers can enable by name
        agent_config: Configuration passed to every AgentLoop
    """

    def __init__(
        self,
        provider: ModelProvider | None,
        tools: Iterable[Tool] | None = None,
        agent_config: AgentConfig | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            provider: The model provider
            tools: Catalog tools, enabled per run by name
            agent_config: Agent loop configuration (defaults if not provided)
        """
        self.provider = provider
        self.catalog = ToolRegistry(tools or ())
        self.agent_config = agent_config or AgentConfig()

    async def aclose(self) -> None:
        """Close the provider."""
        if self.provider is not None:
            await self.provider.aclose()

    async def __aenter__(self) -> "Engine":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    def register_tool(self, tool: Tool) -> None:
        """Add a tool to the catalog."""
        self.catalog.register(tool)

    def unregister_tool(self, name: str) -> bool:
        """Remove a tool from the catalog."""
        return self.catalog.unregister(name)

    def list_tools(self) -> list[str]:
        """Names of all catalog tools."""
        return self.catalog.list_tools()

    def resolve_tools(self, config: RunConfig) -> list[Tool]:
        """
        Look up the tools a RunConfig enables.

        Raises:
            RunConfigError: A named tool is not in the catalog
        """
        missing = [name for name in config.tools if not self.catalog.has(name)]
        if missing:
            raise RunConfigError(
                message=f"Unknown tools in run configuration: {', '.join(missing)}",
                field_name="tools",
                suggestion=f"Available tools: {', '.join(self.list_tools()) or 'none'}",
            )
        return [self.catalog.get(name) for name in config.tools]

    async def run(
        self,
        config: RunConfig,
        tools: Iterable[Tool] | None = None,
        context: ExecutionContext | None = None,
    ) -> AgentResult:
        """
        Run a task to completion.

        Args:
            config: The run configuration
            tools: Extra tools for this run only, on top of the named ones
            context: Execution context (a fresh one when None)

        Returns:
            AgentResult of the run

        Raises:
            ProviderNotSetError: The engine has no provider
            RunConfigError: The configuration names unknown tools
            RunCancelledError: The run was cancelled
        """
        if self.provider is None:
            raise ProviderNotSetError()

        run_tools = self.resolve_tools(config) + list(tools or ())
        ambient_tools = default_tools()
        context = context or ExecutionContext()

        loop = AgentLoop(self.provider, self.agent_config)
        try:
            return await loop.run(
                config,
                tools=run_tools,
                ambient_tools=ambient_tools,
                context=context,
            )
        finally:
            for tool in [*run_tools, *ambient_tools]:
                await destroy_tool(tool, context)

    async def call_tool(
        self,
        tool: Tool | str,
        args: Any,
        context: ExecutionContext | None = None,
        hooks: LifecycleHooks | None = None,
    ) -> Any:
        """
        Invoke a single tool directly, outside of any run.

        The tool is destroyed afterwards. Unlike calls made by the model,
        failures propagate to the caller.

        Args:
            tool: A tool, or the name of a catalog tool
            args: The tool input (without envelope)
            context: Execution context (a fresh one when None)
            hooks: Lifecycle hooks for a fresh context

        Returns:
            The tool's result, with a ToolOutput flattened to a mapping

        Raises:
            ToolNotFoundError: The named tool is not in the catalog
            ToolInvalidArgsError: The input failed validation
        """
        if isinstance(tool, str):
            tool = self.catalog.get(tool)
        if context is None:
            context = ExecutionContext(hooks=hooks or LifecycleHooks())

        validation_errors = tool.validate_args(args)
        if validation_errors:
            raise ToolInvalidArgsError(
                tool=tool.name, tool_args=args, validation_errors=validation_errors
            )

        logger.info("Calling tool %s directly", tool.name)
        try:
            result = await tool.execute(context, args)
        finally:
            await destroy_tool(tool, context)

        if isinstance(result, ToolOutput):
            result = result.to_result()
        return result
