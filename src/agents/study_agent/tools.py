"""
Study tools the model can call.

Flashcards, tips and quiz prompts are pure record builders. The three session tools
delegate to the conversation's scheduler and turn every scheduler failure into a
readable string, so a broken scheduler never surfaces as a tool exception.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from typing import Any

from agents.core.tool import Tool, ToolContext, ToolRegistry
from agents.study_agent.schemas import (
    CancelSessionInput,
    CreateFlashcardInput,
    ListSessionsInput,
    QuizQuestionInput,
    ScheduleSessionInput,
    StudyTipInput,
)

logger = logging.getLogger(__name__)

SCHEDULED_TASK_NAME = "execute_task"

STUDY_TIPS = (
    "Try the Feynman Technique - explain the concept as if teaching a child.",
    "Use spaced repetition to review material at increasing intervals.",
    "Create mind maps to visualize connections between concepts.",
    "Practice active recall by testing yourself without looking at notes.",
    "Take breaks using the Pomodoro Technique (25 min work, 5 min break).",
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class CreateFlashcardTool(Tool):
    name = "createFlashcard"
    description = "Create a flashcard with a question and answer for studying"
    input_schema = CreateFlashcardInput

    async def run(self, args: CreateFlashcardInput, context: ToolContext) -> dict:
        logger.info("creating flashcard topic=%s conversation=%s", args.topic, context.conversation_id)
        return {
            "type": "flashcard",
            "topic": args.topic,
            "question": args.question,
            "answer": args.answer,
            "created_at": _now_iso(),
        }


class StudyTipTool(Tool):
    name = "getStudyTip"
    description = "Get a helpful study tip for a specific subject or learning goal"
    input_schema = StudyTipInput

    async def run(self, args: StudyTipInput, context: ToolContext) -> str:
        return f"For {args.subject}: {random.choice(STUDY_TIPS)}"


class QuizQuestionTool(Tool):
    name = "generateQuizQuestion"
    description = "Generate a practice quiz question on a given topic"
    input_schema = QuizQuestionInput

    async def run(self, args: QuizQuestionInput, context: ToolContext) -> dict:
        logger.info("generating %s quiz question topic=%s", args.difficulty, args.topic)
        return {
            "type": "quiz_question",
            "topic": args.topic,
            "difficulty": args.difficulty,
            "instruction": (
                f"Here's a {args.difficulty} question about {args.topic}. "
                "Think about it carefully before answering!"
            ),
            "created_at": _now_iso(),
        }


class ScheduleStudySessionTool(Tool):
    name = "scheduleStudySession"
    description = "Schedule a study session or reminder for later"
    input_schema = ScheduleSessionInput

    async def run(self, args: ScheduleSessionInput, context: ToolContext) -> str:
        when = args.when
        trigger: Any = {
            "scheduled": when.date,
            "delayed": when.delay_in_seconds,
            "cron": when.cron,
        }.get(when.type)
        if trigger is None:
            return "Not a valid schedule input"
        try:
            context.scheduler.schedule(
                trigger,
                SCHEDULED_TASK_NAME,
                args.description,
                conversation_id=context.conversation_id,
            )
        except Exception as e:
            logger.exception("error scheduling study session conversation=%s", context.conversation_id)
            return f"Error scheduling study session: {e}"
        shown = trigger
        if isinstance(trigger, datetime):
            shown = trigger.isoformat()
        elif isinstance(trigger, float) and trigger.is_integer():
            shown = int(trigger)
        return f'📚 Study session scheduled for type "{when.type}" : {shown}'


class ListStudySessionsTool(Tool):
    name = "getScheduledSessions"
    description = "List all scheduled study sessions and reminders"
    input_schema = ListSessionsInput

    async def run(self, args: ListSessionsInput, context: ToolContext) -> Any:
        try:
            tasks = context.scheduler.list_schedules(conversation_id=context.conversation_id)
        except Exception as e:
            logger.exception("error listing scheduled sessions conversation=%s", context.conversation_id)
            return f"Error listing scheduled sessions: {e}"
        if not tasks:
            return "No scheduled study sessions found. Would you like to schedule one?"
        return tasks


class CancelStudySessionTool(Tool):
    name = "cancelStudySession"
    description = "Cancel a scheduled study session using its ID"
    input_schema = CancelSessionInput

    async def run(self, args: CancelSessionInput, context: ToolContext) -> str:
        try:
            context.scheduler.cancel_schedule(args.session_id, conversation_id=context.conversation_id)
        except Exception as e:
            logger.exception("error cancelling study session id=%s", args.session_id)
            return f"Error canceling session {args.session_id}: {e}"
        return f"Study session {args.session_id} has been cancelled."


def build_study_tools() -> ToolRegistry:
    return ToolRegistry(
        [
            CreateFlashcardTool(),
            StudyTipTool(),
            QuizQuestionTool(),
            ScheduleStudySessionTool(),
            ListStudySessionsTool(),
            CancelStudySessionTool(),
        ]
    )
