"""
Model providers for Orbit.

Providers stream model responses as discriminated events consumed by the
round executor.

Available providers:
    - AnthropicProvider: Anthropic Messages-compatible streaming API
"""

from orbit.provider.anthropic import AnthropicProvider, ProviderConfig
from orbit.provider.base import (
    CompletionEvent,
    ModelProvider,
    StreamEvent,
    TextDelta,
    ToolUseEvent,
)

__all__ = [
    "AnthropicProvider",
    "CompletionEvent",
    "ModelProvider",
    "ProviderConfig",
    "StreamEvent",
    "TextDelta",
    "ToolUseEvent",
]
