"""
Prompt text used to seed and steer a run.
"""

import json
from datetime import datetime
from typing import Any

from orbit.schema import RunConfig
from orbit.tools.finish import RETURN_OUTPUT_TOOL_NAME

FINISH_INSTRUCTION = (
    "Please process the above information and return a final result "
    f"using the {RETURN_OUTPUT_TOOL_NAME} tool."
)

MAX_ROUNDS_INSTRUCTION = (
    "Maximum number of steps reached. Please return the best result possible "
    f"with the {RETURN_OUTPUT_TOOL_NAME} tool."
)


def build_system_prompt(now: datetime | None = None) -> str:
    """System prompt carrying the general rules and the current time."""
    now = now or datetime.now()
    formatted = now.strftime("%Y-%m-%d %H:%M:%S")
    return f"""You are an AI agent that completes tasks by calling tools. The current time is {formatted}.

## General rules
- Every tool call must be JSON in the declared format.
- Fill in observation, thinking and userSidePrompt on every call, and put the tool's real input under toolCall.
- The task description may be imperfect and no further details will be given; explore and use common sense.
- If you are stuck, try a different approach instead of repeating the same call.
- If a time range is vague (e.g. "the last year"), resolve it against the current time first.

## Finishing
- Use the "{RETURN_OUTPUT_TOOL_NAME}" tool as your last action, and only once you are sure the task is complete.
- Before finishing, check that every requirement of the task is met and that the output contains all requested information.
- Set use_tool_result=true when the latest tool result already is the answer.
- Never assume a task is done without verifying it.
"""


def build_task_prompt(
    task: RunConfig,
    variables: dict[str, Any] | None = None,
) -> str:
    """
    The first user message of a run.

    Args:
        task: The run configuration
        variables: Public context variables to show the model

    Returns:
        Prompt text naming the task, its steps, the context and background
    """
    context_text = json.dumps(variables or {}, ensure_ascii=False, default=str)
    prompt = (
        f'Your ultimate task is: """{task.name}""". '
        f'Carry it out following these steps: """{task.description}""". '
        f'Here is the context: """{context_text}""". '
        "If you have completed the ultimate task, stop all actions immediately "
        f"and finish with the {RETURN_OUTPUT_TOOL_NAME} tool in the next step. "
        "Otherwise, continue as normal."
    )
    if task.background:
        prompt += "\n\nYou can refer to the following background material:\n" + "\n".join(
            f"- {item}" for item in task.background
        )
    return prompt
