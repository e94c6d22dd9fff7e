"""
Convert stored conversation messages into LangChain chat messages for the model.

Assistant turns are split at tool boundaries: text followed by tool calls becomes one
AIMessage carrying those calls, then one ToolMessage per call with its result.
"""

from __future__ import annotations

import json
from typing import Any, List, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from agents.core.errors import MalformedHistoryError
from agents.core.messages import Message, Role, TextPart, ToolInvocationPart, ToolState
from agents.core.sanitizer import invocation_state


def tool_output_text(output: Any) -> str:
    if isinstance(output, str):
        return output
    return json.dumps(output, default=str)


def _flush(text: str, calls: List[ToolInvocationPart]) -> List[BaseMessage]:
    if not text and not calls:
        return []
    out: List[BaseMessage] = [
        AIMessage(
            content=text,
            tool_calls=[
                {"name": c.tool_name, "args": c.input if isinstance(c.input, dict) else {}, "id": c.tool_call_id}
                for c in calls
            ],
        )
    ]
    for c in calls:
        out.append(
            ToolMessage(
                content=tool_output_text(c.output),
                tool_call_id=c.tool_call_id,
                status="error" if c.state == ToolState.OUTPUT_ERROR else "success",
            )
        )
    return out


def _assistant_messages(message: Message) -> List[BaseMessage]:
    out: List[BaseMessage] = []
    text = ""
    calls: List[ToolInvocationPart] = []
    for part in message.parts:
        if isinstance(part, TextPart):
            if calls:
                out.extend(_flush(text, calls))
                text, calls = "", []
            text += part.text
        elif isinstance(part, ToolInvocationPart):
            if not invocation_state(part, message.id).is_terminal:
                raise MalformedHistoryError(
                    f"tool call {part.tool_call_id!r} in message {message.id} is not terminal"
                )
            calls.append(part)
    out.extend(_flush(text, calls))
    return out


def to_langchain_messages(messages: Sequence[Message], system_prompt: str = "") -> List[BaseMessage]:
    out: List[BaseMessage] = []
    if system_prompt:
        out.append(SystemMessage(content=system_prompt))
    for m in messages:
        if m.role == Role.SYSTEM:
            out.append(SystemMessage(content=m.text))
        elif m.role == Role.USER:
            out.append(HumanMessage(content=m.text))
        else:
            out.extend(_assistant_messages(m))
    return out
