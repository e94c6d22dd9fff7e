"""
Chat, message, tool decision and schedule schemas.
"""

from pydantic import BaseModel, model_validator
from typing import Any, Optional

from agents.core.messages import Message, TextPart


class SendMessageRequest(BaseModel):
    """Body for POST /agents/chat/{conversation_id}/messages: plain text or a full user message."""
    text: Optional[str] = None
    message: Optional[Message] = None

    @model_validator(mode="after")
    def _check_body(self) -> "SendMessageRequest":
        has_text = bool(self.text and self.text.strip())
        if has_text == (self.message is not None):
            raise ValueError("exactly one of `text` or `message` is required")
        if self.message is not None and not all(isinstance(p, TextPart) for p in self.message.parts):
            raise ValueError("user messages may only carry text parts")
        return self

    def to_message(self) -> Message:
        if self.message is not None:
            return self.message
        return Message.user(self.text.strip())


class MessageListResponse(BaseModel):
    messages: list[Message]


class ClearMessagesResponse(BaseModel):
    deleted: int


class ToolDecisionRequest(BaseModel):
    """Body for POST /agents/chat/{conversation_id}/tool-calls/{tool_call_id}."""
    approved: bool


class ScheduleListResponse(BaseModel):
    schedules: list[dict[str, Any]]


class HealthResponse(BaseModel):
    success: bool
