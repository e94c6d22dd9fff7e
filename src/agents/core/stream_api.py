"""
Agent stream API: prepare the conversation for the model and run the streaming response.
Callers (app services) use this API instead of touching agent internals.
"""

from typing import Any, AsyncIterator, Mapping, Sequence

from agents.core.agent_state import StreamItem
from agents.core.messages import Message
from agents.core.reconciler import ConfirmationHandler, reconcile
from agents.core.sanitizer import sanitize


async def prepare_messages(
    messages: Sequence[Message],
    handlers: Mapping[str, ConfirmationHandler],
    context: Any = None,
) -> list[Message]:
    """
    Sanitize the history and reconcile the current turn.
    The last message is the current turn: it may still hold `call-ready` invocations
    awaiting confirmation, so it is reconciled rather than sanitized. Everything before it
    is history and loses any turn with an unfinished tool call.
    """
    if not messages:
        return []
    history = sanitize(messages[:-1])
    return await reconcile(history + [messages[-1]], handlers, context)


async def run_stream(
    agent: Any,
    messages: Sequence[Message],
    context: Any,
    metadata: dict,
) -> AsyncIterator[StreamItem]:
    """
    Set per-run metadata on the agent, then yield from agent.run_stream(messages).
    Caller is responsible for persisting messages; this only runs the agent.
    """
    agent.state.metadata = dict(metadata)
    async for chunk in agent.run_stream(messages, context):
        yield chunk
