"""
Study agent API: prepare history and stream with metadata.
Caller builds metadata (system_prompt, conversation_id, etc.) and persists results.
"""

from typing import Any, AsyncIterator, Mapping, Sequence

from agents.core.agent_state import StreamItem
from agents.core.messages import Message
from agents.core.stream_api import prepare_messages, run_stream


async def prepare(
    agent: Any,
    messages: Sequence[Message],
    context: Any,
    handlers: Mapping[str, Any] | None = None,
) -> list[Message]:
    """Sanitize + reconcile using the agent's gated tools as confirmation handlers."""
    if handlers is None:
        handlers = agent.tools.confirmation_handlers(agent.confirm_tools)
    return await prepare_messages(messages, handlers, context)


async def stream(agent: Any, messages: Sequence[Message], context: Any, metadata: dict) -> AsyncIterator[StreamItem]:
    async for chunk in run_stream(agent, messages, context, metadata):
        yield chunk
