"""
App-layer service: run one chat cycle for a conversation and stream it as SSE.

A cycle: persist the incoming user turn (or the user's tool decision), sanitize the
history, reconcile the current turn, persist the reconciled turn, stream the agent and
persist the assistant turn it produced. Only one cycle runs per conversation at a time.

Gated tool calls run only once approved. Approvals are recorded per tool call id in the
message metadata; while any gated call of the latest turn is still undecided the cycle
stops before the reconciler and the model.

Frames:
    data: {"text": "..."}             text delta
    event: tool_call / tool_result / tool_confirmation_required
    event: error                      the cycle failed; details are logged
    event: end                        always last
If the client disconnects mid-stream the generator is cancelled and nothing more is persisted.
"""

import asyncio
import json
import weakref
from typing import Any, AsyncIterator, Optional, Tuple

from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session as DBSession

from agents.core.agent_state import AgentEvent
from agents.core.errors import MalformedHistoryError
from agents.core.messages import Message, ToolInvocationPart, ToolState
from agents.core.tool import ToolContext
from agents.study_agent.agent import StudyAgent
from agents.study_agent.api import prepare as study_prepare, stream as study_stream
from api.utils.logger import configure_logging
from api.utils.message_store import MessageStore

logger = configure_logging()

DENIED_OUTPUT = "Error: User denied access to tool execution"
END_FRAME = "event: end\ndata: END\n\n"
APPROVED_KEY = "approved_tool_calls"

# Entries disappear once no cycle holds or waits on the lock.
_conversation_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def conversation_lock(conversation_id: str) -> asyncio.Lock:
    lock = _conversation_locks.get(conversation_id)
    if lock is None:
        lock = asyncio.Lock()
        _conversation_locks[conversation_id] = lock
    return lock


def sse_event(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


def sse_text(text: str) -> str:
    return f"data: {json.dumps({'text': text})}\n\n"


def approved_tool_calls(message: Message) -> set[str]:
    return set(message.metadata.get(APPROVED_KEY) or ())


def awaiting_decision(message: Message, part: ToolInvocationPart) -> bool:
    """True while `part` is call-ready and the user has not approved it yet."""
    return part.state == ToolState.CALL_READY and part.tool_call_id not in approved_tool_calls(message)


def _apply_decision(store: MessageStore, conversation_id: str, messages: list[Message], tool_call_id: str, approved: bool) -> None:
    message = messages[-1] if messages else None
    part = message.find_invocation(tool_call_id) if message else None
    if part is None or not awaiting_decision(message, part):
        logger.warning("tool decision no longer applies conversation=%s tool_call_id=%s", conversation_id, tool_call_id)
        return
    if approved:
        # Approved calls stay call-ready; the reconciler runs them once every gated call is decided.
        message.metadata[APPROVED_KEY] = sorted(approved_tool_calls(message) | {tool_call_id})
        logger.info("tool call approved conversation=%s tool=%s", conversation_id, part.tool_name)
    else:
        part.fail(DENIED_OUTPUT)
        logger.info("tool call denied conversation=%s tool=%s", conversation_id, part.tool_name)
    store.save(conversation_id, [message])


def _undecided_gated_calls(agent: StudyAgent, messages: list[Message]) -> list[ToolInvocationPart]:
    if not messages:
        return []
    last = messages[-1]
    return [
        p for p in last.tool_invocations()
        if p.tool_name in agent.confirm_tools and awaiting_decision(last, p)
    ]


def _frame(item: Any) -> str:
    if isinstance(item, AgentEvent):
        return sse_event(item.event, item.data)
    return sse_text(item)


async def agent_event_stream(
    db: DBSession,
    conversation_id: str,
    agent: StudyAgent,
    *,
    scheduler=None,
    incoming: Optional[Message] = None,
    decision: Optional[Tuple[str, bool]] = None,
    metadata: Optional[dict] = None,
) -> AsyncIterator[str]:
    store = MessageStore(db)
    async with conversation_lock(conversation_id):
        if incoming is not None:
            store.append(conversation_id, incoming)
        try:
            messages = store.read_all(conversation_id)
            if decision is not None:
                _apply_decision(store, conversation_id, messages, *decision)
            undecided = _undecided_gated_calls(agent, messages)
            if undecided:
                logger.info(
                    "waiting on tool decisions conversation=%s tool_call_ids=%s",
                    conversation_id, [p.tool_call_id for p in undecided],
                )
                for part in undecided:
                    yield sse_event("tool_confirmation_required", part.model_dump(mode="json"))
                yield END_FRAME
                return
            context = ToolContext(conversation_id=conversation_id, messages=messages, scheduler=scheduler)
            prepared = await study_prepare(agent, messages, context)
        except MalformedHistoryError as e:
            logger.exception("conversation history is malformed conversation=%s", conversation_id)
            yield sse_event("error", {"error": str(e)})
            yield END_FRAME
            return

        if prepared and prepared[-1] is not messages[-1]:
            store.save(conversation_id, prepared[-1:])
            resolved = {p.tool_call_id for p in messages[-1].tool_invocations() if not p.state.is_terminal}
            for part in prepared[-1].tool_invocations():
                if part.tool_call_id in resolved:
                    yield sse_event("tool_result", part.model_dump(mode="json"))
        context.messages = prepared

        try:
            async for item in study_stream(agent, prepared, context, metadata or {}):
                yield _frame(item)
        except Exception as e:
            logger.exception("Agent stream failed: %s", e)
            yield sse_event("error", {"error": "The assistant failed to respond. Please try again."})

        response = agent.state.response
        if response is not None and response.parts:
            store.append(conversation_id, response)
            logger.info(
                "assistant turn saved conversation=%s message_id=%s parts=%s",
                conversation_id, response.id, len(response.parts),
            )
        yield END_FRAME


def stream_agent_response(
    db: DBSession,
    conversation_id: str,
    agent: StudyAgent,
    **kwargs,
) -> StreamingResponse:
    return StreamingResponse(
        agent_event_stream(db, conversation_id, agent, **kwargs),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
