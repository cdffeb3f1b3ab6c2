"""
Base classes for Orbit model providers.

A provider is the model transport: it takes the conversation history and
request parameters and streams back the model's response as a sequence
of discriminated events:

    - TextDelta: A fragment of assistant text
    - ToolUseEvent: One complete capability invocation
    - CompletionEvent: The response finished; carries the full summary

The round executor consumes these events in a single cooperative loop.
Transport failures are raised from the stream as exceptions (ideally
TransportError subclasses); the executor retries the whole round.

Implementations:
    - AnthropicProvider: Streams from an Anthropic Messages-compatible API
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator

from orbit.schema import Message, ModelParameters, ModelResponse, ToolInvocation


@dataclass(frozen=True)
class TextDelta:
    """A fragment of streamed assistant text."""

    text: str


@dataclass(frozen=True)
class ToolUseEvent:
    """A complete capability invocation issued by the model."""

    invocation: ToolInvocation


@dataclass(frozen=True)
class CompletionEvent:
    """Terminal event of a response."""

    response: ModelResponse


StreamEvent = TextDelta | ToolUseEvent | CompletionEvent


class ModelProvider(ABC):
    """
    Abstract base class for model transports.

    Example Implementation:
        class CannedProvider(ModelProvider):
            async def stream(self, messages, params):
                yield TextDelta("Hello")
                yield CompletionEvent(ModelResponse(text="Hello"))
    """

    @abstractmethod
    def stream(
        self,
        messages: list[Message],
        params: ModelParameters,
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream one model response.

        Args:
            messages: Conversation history to send
            params: Model parameters, including the advertised tools

        Yields:
            TextDelta, ToolUseEvent and CompletionEvent values

        Raises:
            TransportError: The stream failed and the round should be retried
        """
        ...

    async def aclose(self) -> None:
        """Release transport resources. The default does nothing."""
        return None

    def get_name(self) -> str:
        """Return the provider's name for logging."""
        return self.__class__.__name__

    def get_config(self) -> dict[str, Any]:
        """Return provider configuration for debugging."""
        return {}
