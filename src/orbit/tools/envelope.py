"""
Invocation envelope adapter.

Every capability is advertised to the model wrapped in an envelope that
asks for three extra fields next to the real input:

    {
        "observation": "In the previous step, I've ...",
        "thinking": "...",
        "userSidePrompt": "Opening the settings page.",
        "toolCall": {... the capability's real input ...}
    }

The wrapping is purely a model-interface concern. ``wrap_input_schema``
augments a definition before it is sent; ``unwrap_invocation`` splits the
model's invocation back into the envelope fields and the inner call.
Tools never see the envelope.
"""

from dataclasses import dataclass
from typing import Any

from orbit.schema import ToolDefinition, ToolInvocation

OBSERVATION_FIELD = "observation"
THINKING_FIELD = "thinking"
CAPTION_FIELD = "userSidePrompt"
INNER_CALL_FIELD = "toolCall"

ENVELOPE_FIELDS = (OBSERVATION_FIELD, THINKING_FIELD, CAPTION_FIELD)


@dataclass(frozen=True)
class UnwrappedInvocation:
    """
    A model invocation split into envelope fields and the real call.

    Attributes:
        observation: The model's observation of the previous step
        thinking: The model's thinking draft
        caption: User-facing caption describing the step
        invocation: The inner invocation carrying the real input
    """

    observation: str | None
    thinking: str | None
    caption: str | None
    invocation: ToolInvocation


def wrap_input_schema(definition: ToolDefinition) -> ToolDefinition:
    """
    Wrap a tool definition's input schema in the envelope.

    Returns a new definition; the original is left untouched.
    """
    schema = {
        "type": "object",
        "properties": {
            OBSERVATION_FIELD: {
                "type": "string",
                "description": (
                    "Your observation of the previous steps. Should start with "
                    "\"In the previous step, I've ...\"."
                ),
            },
            THINKING_FIELD: {
                "type": "string",
                "description": "Your thinking draft.",
            },
            CAPTION_FIELD: {
                "type": "string",
                "description": (
                    "The user-side prompt, showing what you are doing. "
                    "e.g. \"Opening x.com.\" or \"Writing the post.\""
                ),
            },
            INNER_CALL_FIELD: definition.input_schema,
        },
        "required": [*ENVELOPE_FIELDS, INNER_CALL_FIELD],
    }
    return definition.model_copy(update={"input_schema": schema})


def unwrap_invocation(invocation: ToolInvocation) -> UnwrappedInvocation:
    """
    Split an enveloped invocation into envelope fields and the inner call.

    When the model omits ``toolCall``, the remaining non-envelope fields are
    taken as the inner input.
    """
    raw = invocation.input if isinstance(invocation.input, dict) else {}
    if INNER_CALL_FIELD in raw:
        inner_input: Any = raw[INNER_CALL_FIELD]
    else:
        inner_input = {k: v for k, v in raw.items() if k not in ENVELOPE_FIELDS}

    return UnwrappedInvocation(
        observation=raw.get(OBSERVATION_FIELD),
        thinking=raw.get(THINKING_FIELD),
        caption=raw.get(CAPTION_FIELD),
        invocation=ToolInvocation(
            id=invocation.id,
            name=invocation.name,
            input=inner_input,
        ),
    )


def wrap_invocation(unwrapped: UnwrappedInvocation) -> ToolInvocation:
    """Rebuild the enveloped invocation; the inverse of ``unwrap_invocation``."""
    envelope: dict[str, Any] = {}
    for name, value in (
        (OBSERVATION_FIELD, unwrapped.observation),
        (THINKING_FIELD, unwrapped.thinking),
        (CAPTION_FIELD, unwrapped.caption),
    ):
        if value is not None:
            envelope[name] = value
    envelope[INNER_CALL_FIELD] = unwrapped.invocation.input
    return ToolInvocation(
        id=unwrapped.invocation.id,
        name=unwrapped.invocation.name,
        input=envelope,
    )
