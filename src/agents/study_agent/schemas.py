"""
Input schemas for the study tools. The model sees these as JSON schema; tool calls are
validated against them before a tool runs.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class CreateFlashcardInput(BaseModel):
    topic: str = Field(description="The topic or subject for the flashcard")
    question: str = Field(description="The question side of the flashcard")
    answer: str = Field(description="The answer side of the flashcard")


class StudyTipInput(BaseModel):
    subject: str = Field(description="The subject or topic the user is studying")


class QuizQuestionInput(BaseModel):
    topic: str = Field(description="The topic to create a quiz question about")
    difficulty: Literal["easy", "medium", "hard"] = Field(description="The difficulty level")


class ScheduleWhen(BaseModel):
    type: Literal["scheduled", "delayed", "cron", "no-schedule"] = Field(
        description="scheduled: run once at `date`; delayed: run once after `delay_in_seconds`; "
        "cron: run on the `cron` expression; no-schedule: the request has no usable time"
    )
    date: Optional[datetime] = Field(default=None, description="Absolute time (ISO 8601) for type=scheduled")
    delay_in_seconds: Optional[float] = Field(default=None, description="Delay in seconds for type=delayed")
    cron: Optional[str] = Field(default=None, description="Five-field cron expression for type=cron")


class ScheduleSessionInput(BaseModel):
    description: str = Field(description="What the study session or reminder is about")
    when: ScheduleWhen


class ListSessionsInput(BaseModel):
    pass


class CancelSessionInput(BaseModel):
    session_id: str = Field(description="The ID of the study session to cancel")
