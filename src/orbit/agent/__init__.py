"""
Agent module for Orbit.

This module provides the round-based agent loop:
- StreamRoundExecutor runs one request/response round against the model
- AgentLoop owns the round budget, termination and final-result extraction

Usage:
    from orbit.agent import AgentLoop

    loop = AgentLoop(provider)
    result = await loop.run(run_config, tools=[...])
"""

from orbit.agent.loop import AgentConfig, AgentLoop, AgentResult, LoopState
from orbit.agent.round import RoundResult, StreamRoundExecutor, ToolResultCache

__all__ = [
    "AgentConfig",
    "AgentLoop",
    "AgentResult",
    "LoopState",
    "RoundResult",
    "StreamRoundExecutor",
    "ToolResultCache",
]
