"""
Chat service: conversation messages, streaming study-assistant cycles, tool decisions and
scheduled tasks.
"""

from typing import Optional

from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session as DBSession

from agents.core.errors import InferenceConfigError
from agents.core.llm import LLM
from agents.core.messages import Message, ToolInvocationPart
from agents.study_agent.agent import StudyAgent
from api.bootstrap import build_agent, get_scheduler
from api.config import Settings, get_settings
from api.prompt_builders import build_study_system_prompt
from api.services.agent_stream_service import agent_event_stream, stream_agent_response
from api.utils.logger import configure_logging
from api.utils.message_store import MessageStore

logger = configure_logging()


class ChatService:
    """Service for one conversation's messages and the study agent streaming cycle."""

    def __init__(
        self,
        db: DBSession,
        settings: Optional[Settings] = None,
        llm: Optional[LLM] = None,
        scheduler=None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.llm = llm
        self.scheduler = scheduler if scheduler is not None else get_scheduler()
        self.store = MessageStore(db)

    def get_messages(self, conversation_id: str) -> list[Message]:
        return self.store.read_all(conversation_id)

    def clear_messages(self, conversation_id: str) -> int:
        return self.store.clear(conversation_id)

    def list_schedules(self, conversation_id: str) -> list[dict]:
        return self.scheduler.list_schedules(conversation_id=conversation_id)

    def find_tool_call(self, conversation_id: str, tool_call_id: str) -> Optional[tuple[Message, ToolInvocationPart]]:
        """
        The latest message and its invocation `tool_call_id`, or None when it is not there.
        Only the latest message can hold calls that wait on a decision.
        """
        messages = self.store.read_all(conversation_id)
        part = messages[-1].find_invocation(tool_call_id) if messages else None
        if part is None:
            return None
        return messages[-1], part

    def _build_agent(self) -> StudyAgent:
        return build_agent(self.settings, llm=self.llm)

    def _metadata(self, conversation_id: str) -> dict:
        return {
            "system_prompt": build_study_system_prompt(),
            "conversation_id": conversation_id,
        }

    def stream_response(
        self,
        conversation_id: str,
        incoming: Optional[Message] = None,
        decision: Optional[tuple[str, bool]] = None,
    ) -> StreamingResponse:
        """
        Run one cycle and stream it. The agent is built before the response starts so a
        missing inference configuration fails the request instead of the stream.
        """
        agent = self._build_agent()
        return stream_agent_response(
            self.db,
            conversation_id,
            agent,
            scheduler=self.scheduler,
            incoming=incoming,
            decision=decision,
            metadata=self._metadata(conversation_id),
        )

    def decide_tool_call(self, conversation_id: str, tool_call_id: str, approved: bool) -> StreamingResponse:
        """Record the user's decision on a pending tool call and resume the conversation."""
        logger.info(
            "tool decision conversation=%s tool_call_id=%s approved=%s", conversation_id, tool_call_id, approved
        )
        return self.stream_response(conversation_id, decision=(tool_call_id, approved))

    async def run_scheduled_task(self, conversation_id: str, description: str) -> Optional[Message]:
        """
        Post the scheduled task into the conversation as a user turn and let the assistant
        answer it. Returns the assistant turn, if one was produced.
        """
        incoming = Message.user(f"Running scheduled task: {description}", scheduled=True)
        try:
            agent = self._build_agent()
        except InferenceConfigError:
            logger.exception("scheduled task posted without a reply conversation=%s", conversation_id)
            self.store.append(conversation_id, incoming)
            return None
        async for _ in agent_event_stream(
            self.db,
            conversation_id,
            agent,
            scheduler=self.scheduler,
            incoming=incoming,
            metadata=self._metadata(conversation_id),
        ):
            pass
        response = agent.state.response
        return response if response is not None and response.parts else None

