"""
Tools module for Orbit.

This module provides the capability interface, the per-run registry and
the tools Orbit ships with.

Built-in tools:
    - write_context: Store a value in the run's variable store
    - return_output: Synthetic finish tool, created per run

Architecture:
    - Tool: Abstract base class defining the capability interface
    - ToolRegistry: Per-run mapping from tool names to tools
    - ToolOutput: Convenience result carrying text and/or an image
    - envelope: Adapter wrapping every input in observation/thinking/caption

Concrete environment tools (browsers, documents, human hand-off) are
supplied by callers.
"""

from orbit.tools.base import Tool, ToolOutput
from orbit.tools.finish import RETURN_OUTPUT_TOOL_NAME, ReturnOutputTool
from orbit.tools.registry import ToolRegistry
from orbit.tools.write_context import WriteContextTool


def default_tools() -> list[Tool]:
    """Fresh instances of the ambient tools every run receives."""
    return [WriteContextTool()]


__all__ = [
    "RETURN_OUTPUT_TOOL_NAME",
    "ReturnOutputTool",
    "Tool",
    "ToolOutput",
    "ToolRegistry",
    "WriteContextTool",
    "default_tools",
]
