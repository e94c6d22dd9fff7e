"""
History sanitizer: drop assistant turns whose tool calls never finished.

An interrupted tool call (process restarted between the model's request and the tool's
result) leaves a non-terminal invocation behind. The inference endpoint rejects any
history containing one, and a turn cannot be replayed partially, so the whole turn goes.
"""

from __future__ import annotations

import logging
from typing import Iterable

from agents.core.errors import MalformedHistoryError
from agents.core.messages import Message, Role, ToolInvocationPart, ToolState

logger = logging.getLogger(__name__)


def invocation_state(part: ToolInvocationPart, message_id: str) -> ToolState:
    state = part.state
    if isinstance(state, ToolState):
        return state
    try:
        return ToolState(state)
    except ValueError:
        raise MalformedHistoryError(
            f"message {message_id} has tool call {part.tool_call_id!r} in unknown state {state!r}"
        ) from None


def is_complete(message: Message) -> bool:
    """True unless the message is an assistant turn holding a non-terminal tool invocation."""
    invocations = message.tool_invocations()
    if not invocations:
        return True
    # Validate every state first so a malformed part is never hidden behind a pending one.
    states = [invocation_state(p, message.id) for p in invocations]
    if message.role != Role.ASSISTANT:
        return True
    return all(s.is_terminal for s in states)


def sanitize(messages: Iterable[Message]) -> list[Message]:
    kept: list[Message] = []
    dropped = 0
    for message in messages:
        if is_complete(message):
            kept.append(message)
        else:
            dropped += 1
            logger.warning("dropping incomplete tool turn message_id=%s", message.id)
    if dropped:
        logger.info("sanitized history kept=%s dropped=%s", len(kept), dropped)
    return kept
