from typing import Callable, Optional

from sqlalchemy.orm import Session as DBSession

from agents.core.errors import InferenceConfigError
from agents.core.llm import LLM
from agents.study_agent.agent import StudyAgent
from agents.study_agent.tools import SCHEDULED_TASK_NAME, build_study_tools
from api.config import Settings, get_settings
from infra.llm.ollama import OllamaLLM
from infra.scheduler.study_scheduler import StudyScheduler

_scheduler: Optional[StudyScheduler] = None


def get_scheduler() -> StudyScheduler:
    """Process-wide scheduler; started by the app lifespan."""
    global _scheduler
    if _scheduler is None:
        settings = get_settings()
        _scheduler = StudyScheduler(db_url=settings.scheduler_db_url, timezone=settings.scheduler_timezone)
    return _scheduler


def build_llm(settings: Settings) -> LLM:
    if not settings.ollama_model:
        raise InferenceConfigError("OLLAMA_MODEL is not configured")
    return OllamaLLM(
        model=settings.ollama_model,
        temperature=settings.llm_temperature,
        base_url=settings.ollama_base_url,
        max_tokens=settings.llm_max_tokens,
    )


def build_agent(settings: Settings, llm: Optional[LLM] = None) -> StudyAgent:
    return StudyAgent(
        name="StudyAgent",
        llm=llm or build_llm(settings),
        tools=build_study_tools(),
        max_steps=settings.agent_max_steps,
        confirm_tools=settings.confirm_tool_names,
    )


def register_scheduled_tasks(scheduler: StudyScheduler, session_factory: Callable[[], DBSession]) -> None:
    """Wire the scheduler's task names to the chat service."""

    async def execute_task(conversation_id: str, description: str) -> None:
        from api.services.chat_service import ChatService

        db = session_factory()
        try:
            await ChatService(db, scheduler=scheduler).run_scheduled_task(conversation_id, description)
        finally:
            db.close()

    scheduler.register_task(SCHEDULED_TASK_NAME, execute_task)
