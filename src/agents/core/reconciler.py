"""
Tool-call reconciler: resolve the invocations of the current turn that wait on confirmation.

Only the last message can hold such invocations; earlier turns are terminal by the time
they get here (the sanitizer drops the ones that are not). Every `call-ready` invocation
is run through its confirmation handler, or denied when no handler is registered.
Handler errors become `output-error` results and never escape.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping, Sequence, Union

from agents.core.messages import Message, ToolInvocationPart, ToolState
from agents.core.sanitizer import invocation_state

logger = logging.getLogger(__name__)

ConfirmationHandler = Callable[[Any, Any], Union[Any, Awaitable[Any]]]

NO_HANDLER_OUTPUT = "Error: no confirmation handler is registered for tool {tool_name}; the call was not executed."
INCOMPLETE_INPUT_OUTPUT = "Error: tool input was never completed; the call was not executed."


async def _run_handler(handler: ConfirmationHandler, part: ToolInvocationPart, context: Any) -> Any:
    result = handler(part.input, context)
    if inspect.isawaitable(result):
        result = await result
    return result


async def reconcile(
    messages: Sequence[Message],
    handlers: Mapping[str, ConfirmationHandler],
    context: Any = None,
) -> list[Message]:
    if not messages:
        return []
    history = list(messages[:-1])
    last = messages[-1]
    if all(invocation_state(p, last.id).is_terminal for p in last.tool_invocations()):
        return history + [last]

    current = last.model_copy(deep=True)
    for part in current.tool_invocations():
        part.state = invocation_state(part, current.id)
        if part.state == ToolState.CALL_PENDING_INPUT:
            logger.warning("closing tool call with incomplete input tool=%s id=%s", part.tool_name, part.tool_call_id)
            part.fail(INCOMPLETE_INPUT_OUTPUT)
            continue
        if part.state != ToolState.CALL_READY:
            continue

        handler = handlers.get(part.tool_name)
        if handler is None:
            logger.info("denying tool without handler tool=%s id=%s", part.tool_name, part.tool_call_id)
            part.fail(NO_HANDLER_OUTPUT.format(tool_name=part.tool_name))
            continue

        try:
            output = await _run_handler(handler, part, context)
        except Exception as e:
            logger.exception("confirmation handler failed tool=%s id=%s", part.tool_name, part.tool_call_id)
            part.fail(f"Error executing tool {part.tool_name}: {e}")
        else:
            logger.info("confirmed tool executed tool=%s id=%s", part.tool_name, part.tool_call_id)
            part.resolve(output)

    return history + [current]
