"""
Orbit - round-based agent loop.

Orbit drives a language model through tool-calling rounds until it
declares a final output. Key features:

- Streaming rounds with one tool call each, retried on transport failure
- A per-run tool registry with a synthetic return_output finish tool
- Envelope fields (observation, thinking, caption) around every tool input
- History compaction that keeps long runs within budget
- Cooperative cancellation and lifecycle hooks around every tool call

Example:
    async with Engine(AnthropicProvider()) as engine:
        result = await engine.run(load_run_config("task.yaml"))
"""

__version__ = "0.1.0"
__author__ = "Orbit Contributors"

__all__ = [
    "__version__",
    "__author__",
]
