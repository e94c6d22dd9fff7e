"""
API request/response schemas. Single import surface for routes and tests.
"""

from api.schemas.chat_schemas import (
    ClearMessagesResponse,
    HealthResponse,
    MessageListResponse,
    ScheduleListResponse,
    SendMessageRequest,
    ToolDecisionRequest,
)

__all__ = [
    "ClearMessagesResponse",
    "HealthResponse",
    "MessageListResponse",
    "ScheduleListResponse",
    "SendMessageRequest",
    "ToolDecisionRequest",
]
