"""
Chat routes: one conversation per agent instance name. Messages, streaming cycles,
human-in-the-loop tool decisions and the conversation's scheduled study sessions.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session as DBSession

from agents.core.errors import ScheduleError
from agents.core.messages import Role
from api.config import get_db
from api.schemas.chat_schemas import (
    ClearMessagesResponse,
    MessageListResponse,
    ScheduleListResponse,
    SendMessageRequest,
    ToolDecisionRequest,
)
from api.services.agent_stream_service import awaiting_decision
from api.services.chat_service import ChatService

chat_routes = APIRouter()


def get_chat_service(db: DBSession = Depends(get_db)) -> ChatService:
    return ChatService(db)


@chat_routes.get("/chat/{conversation_id}/messages", response_model=MessageListResponse)
async def get_messages(
    conversation_id: str,
    chat_service: ChatService = Depends(get_chat_service),
) -> MessageListResponse:
    """Stored messages of the conversation, oldest first."""
    return MessageListResponse(messages=chat_service.get_messages(conversation_id))


@chat_routes.post("/chat/{conversation_id}/messages")
async def send_message(
    conversation_id: str,
    req: SendMessageRequest,
    chat_service: ChatService = Depends(get_chat_service),
) -> StreamingResponse:
    """Append a user turn and stream the assistant's response (SSE)."""
    message = req.to_message()
    if message.role != Role.USER:
        raise HTTPException(status_code=400, detail="Only user messages can be sent")
    return chat_service.stream_response(conversation_id, incoming=message)


@chat_routes.delete("/chat/{conversation_id}/messages", response_model=ClearMessagesResponse)
async def clear_messages(
    conversation_id: str,
    chat_service: ChatService = Depends(get_chat_service),
) -> ClearMessagesResponse:
    return ClearMessagesResponse(deleted=chat_service.clear_messages(conversation_id))


@chat_routes.post("/chat/{conversation_id}/tool-calls/{tool_call_id}")
async def decide_tool_call(
    conversation_id: str,
    tool_call_id: str,
    req: ToolDecisionRequest,
    chat_service: ChatService = Depends(get_chat_service),
) -> StreamingResponse:
    """
    Approve or deny a tool call waiting for confirmation, then resume the conversation.
    Approved calls run through their confirmation handler; denied calls are recorded as errors.
    """
    found = chat_service.find_tool_call(conversation_id, tool_call_id)
    if found is None:
        raise HTTPException(status_code=404, detail="Tool call not found")
    message, part = found
    if not awaiting_decision(message, part):
        raise HTTPException(status_code=409, detail="Tool call is not awaiting confirmation")
    return chat_service.decide_tool_call(conversation_id, tool_call_id, req.approved)


@chat_routes.get("/chat/{conversation_id}/schedules", response_model=ScheduleListResponse)
async def list_schedules(
    conversation_id: str,
    chat_service: ChatService = Depends(get_chat_service),
) -> ScheduleListResponse:
    try:
        schedules = chat_service.list_schedules(conversation_id)
    except ScheduleError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return ScheduleListResponse(schedules=schedules)
