"""
Anthropic Messages provider.

This module implements the ModelProvider interface against an Anthropic
Messages-compatible HTTP endpoint (``POST /v1/messages`` with
``"stream": true``), reading the response as server-sent events.

Event mapping:
    content_block_delta/text_delta        -> TextDelta
    content_block_start/stop (tool_use)   -> ToolUseEvent, input assembled
                                             from input_json_delta fragments
    message_stop                          -> CompletionEvent
    error                                 -> TransportResponseError

Usage:
    from orbit.provider.anthropic import AnthropicProvider, ProviderConfig

    provider = AnthropicProvider(ProviderConfig(model="claude-sonnet-4-5"))
    async for event in provider.stream(messages, params):
        ...
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import httpx

from orbit.errors import (
    TransportConnectionError,
    TransportError,
    TransportParseError,
    TransportResponseError,
    TransportTimeoutError,
)
from orbit.provider.base import (
    CompletionEvent,
    ModelProvider,
    StreamEvent,
    TextDelta,
    ToolUseEvent,
)
from orbit.provider.json_repair import parse_tool_input
from orbit.schema import Message, ModelParameters, ModelResponse, Role, ToolInvocation

logger = logging.getLogger(__name__)

PROVIDER_NAME = "anthropic"
DEFAULT_API_VERSION = "2023-06-01"


@dataclass
class ProviderConfig:
    """
    Configuration for the Anthropic provider.

    Attributes:
        base_url: API root, without the /v1 suffix
        api_key: API key; falls back to the ANTHROPIC_API_KEY variable
        model: Model used when the request parameters name none
        timeout_seconds: Connect/read timeout for the stream
        api_version: Value of the anthropic-version header
        extra_headers: Additional headers sent with every request
    """

    base_url: str = "https://api.anthropic.com"
    api_key: str | None = None
    model: str = "claude-sonnet-4-5"
    timeout_seconds: float = 120.0
    api_version: str = DEFAULT_API_VERSION
    extra_headers: dict[str, str] = field(default_factory=dict)

    def resolved_api_key(self) -> str:
        """The configured API key, or the one from the environment."""
        return self.api_key or os.environ.get("ANTHROPIC_API_KEY", "")


@dataclass
class _BlockState:
    """A content block being assembled from stream fragments."""

    kind: str
    tool_id: str = ""
    tool_name: str = ""
    partial_json: list[str] = field(default_factory=list)


class AnthropicProvider(ModelProvider):
    """
    Streaming provider for Anthropic Messages-compatible endpoints.

    The HTTP client is created lazily and reused across rounds; close it
    with ``aclose()`` or by using the provider as an async context manager.
    """

    def __init__(
        self,
        config: ProviderConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the provider.

        Args:
            config: Provider configuration. If None, uses defaults.
            client: Pre-built HTTP client (e.g. with a mock transport)
        """
        self.config = config or ProviderConfig()
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AnthropicProvider":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    def build_payload(
        self,
        messages: list[Message],
        params: ModelParameters,
    ) -> dict[str, Any]:
        """Build the request body for a streamed completion."""
        system_parts = [
            m.content for m in messages if m.role == Role.SYSTEM and isinstance(m.content, str)
        ]
        payload: dict[str, Any] = {
            "model": params.model or self.config.model,
            "max_tokens": params.max_tokens,
            "stream": True,
            "messages": [m.to_wire() for m in messages if m.role != Role.SYSTEM],
        }
        if system_parts:
            payload["system"] = "\n\n".join(system_parts)
        if params.temperature is not None:
            payload["temperature"] = params.temperature
        if params.tools:
            payload["tools"] = [tool.model_dump() for tool in params.tools]
        return payload

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.config.resolved_api_key(),
            "anthropic-version": self.config.api_version,
            "content-type": "application/json",
            **self.config.extra_headers,
        }

    async def stream(
        self,
        messages: list[Message],
        params: ModelParameters,
    ) -> AsyncIterator[StreamEvent]:
        """Stream one response, translating server-sent events."""
        payload = self.build_payload(messages, params)
        model = payload["model"]
        client = self._get_client()

        try:
            async with client.stream(
                "POST", "/v1/messages", json=payload, headers=self._headers()
            ) as response:
                if response.status_code != 200:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    raise TransportResponseError(
                        provider=PROVIDER_NAME,
                        model=model,
                        status_code=response.status_code,
                        body=body,
                    )

                assembler = _ResponseAssembler(model)
                async for data in _iter_sse_data(response.aiter_lines(), model):
                    for event in assembler.feed(data):
                        yield event
        except TransportError:
            raise
        except httpx.ConnectError as e:
            raise TransportConnectionError(
                provider=PROVIDER_NAME,
                model=model,
                url=self.config.base_url,
                underlying_error=str(e),
            ) from e
        except httpx.TimeoutException as e:
            raise TransportTimeoutError(
                provider=PROVIDER_NAME,
                model=model,
                timeout_seconds=self.config.timeout_seconds,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                message=f"HTTP error while streaming from {PROVIDER_NAME}: {e}",
                provider=PROVIDER_NAME,
                model=model,
            ) from e

    def get_name(self) -> str:
        """Return provider name."""
        return f"AnthropicProvider({self.config.model})"

    def get_config(self) -> dict[str, Any]:
        """Return provider configuration, without the API key."""
        return {
            "backend": PROVIDER_NAME,
            "base_url": self.config.base_url,
            "model": self.config.model,
            "timeout_seconds": self.config.timeout_seconds,
            "api_version": self.config.api_version,
        }


async def _iter_sse_data(
    lines: AsyncIterator[str],
    model: str,
) -> AsyncIterator[dict[str, Any]]:
    """Decode the JSON ``data:`` payload of each server-sent event."""
    data_lines: list[str] = []

    async for line in lines:
        if line.startswith("data:"):
            data_lines.append(line[5:].lstrip())
            continue
        if line.strip() or not data_lines:
            # event:/id:/comment lines, or blank lines between events
            continue

        raw = "\n".join(data_lines)
        data_lines = []
        yield _decode_event(raw, model)

    if data_lines:
        yield _decode_event("\n".join(data_lines), model)


def _decode_event(raw: str, model: str) -> dict[str, Any]:
    """Parse one event payload, which must be a JSON object."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise TransportParseError(
            provider=PROVIDER_NAME,
            model=model,
            raw_data=raw,
            parse_error=str(e),
        ) from e

    if not isinstance(data, dict):
        raise TransportParseError(
            provider=PROVIDER_NAME,
            model=model,
            raw_data=raw,
            parse_error=f"expected a JSON object, got {type(data).__name__}",
        )
    return data


class _ResponseAssembler:
    """Turns decoded stream events into Orbit stream events."""

    def __init__(self, model: str) -> None:
        self.model = model
        self.blocks: dict[int, _BlockState] = {}
        self.text_parts: list[str] = []
        self.tool_calls: list[ToolInvocation] = []
        self.stop_reason: str | None = None
        self.usage: dict[str, int] = {}

    def feed(self, data: dict[str, Any]) -> list[StreamEvent]:
        kind = data.get("type")

        if kind == "message_start":
            self._add_usage(data.get("message", {}).get("usage", {}))

        elif kind == "content_block_start":
            block = data.get("content_block", {})
            state = _BlockState(kind=block.get("type", ""))
            if state.kind == "tool_use":
                state.tool_id = block.get("id", "")
                state.tool_name = block.get("name", "")
            self.blocks[data.get("index", 0)] = state
            if state.kind == "text" and block.get("text"):
                self.text_parts.append(block["text"])
                return [TextDelta(block["text"])]

        elif kind == "content_block_delta":
            delta = data.get("delta", {})
            if delta.get("type") == "text_delta":
                text = delta.get("text", "")
                self.text_parts.append(text)
                return [TextDelta(text)]
            if delta.get("type") == "input_json_delta":
                state = self.blocks.get(data.get("index", 0))
                if state is not None:
                    state.partial_json.append(delta.get("partial_json", ""))

        elif kind == "content_block_stop":
            state = self.blocks.pop(data.get("index", 0), None)
            if state is not None and state.kind == "tool_use":
                return [ToolUseEvent(self._finish_tool_call(state))]

        elif kind == "message_delta":
            self.stop_reason = data.get("delta", {}).get("stop_reason", self.stop_reason)
            self._add_usage(data.get("usage", {}))

        elif kind == "message_stop":
            return [CompletionEvent(self.response())]

        elif kind == "error":
            error = data.get("error", {})
            raise TransportResponseError(
                provider=PROVIDER_NAME,
                model=self.model,
                body=f"{error.get('type', 'error')}: {error.get('message', '')}",
            )

        return []

    def _finish_tool_call(self, state: _BlockState) -> ToolInvocation:
        raw = "".join(state.partial_json)
        tool_input, error = parse_tool_input(raw)
        if error:
            logger.warning(
                "Could not parse input of tool call %s (%s): %s",
                state.tool_name,
                error,
                raw[:200],
            )
        invocation = ToolInvocation(id=state.tool_id, name=state.tool_name, input=tool_input)
        self.tool_calls.append(invocation)
        return invocation

    def _add_usage(self, usage: dict[str, Any]) -> None:
        for key, value in usage.items():
            if isinstance(value, int):
                self.usage[key] = value

    def response(self) -> ModelResponse:
        return ModelResponse(
            text="".join(self.text_parts),
            tool_calls=list(self.tool_calls),
            stop_reason=self.stop_reason,
            usage=dict(self.usage),
        )
