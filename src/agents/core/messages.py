"""
Conversation data model shared by the sanitizer, the reconciler, the agent and the store.

A Message is one role-tagged turn holding an ordered list of parts. A part is either
plain text or a tool invocation whose lifecycle is tracked by ToolState.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def new_id() -> str:
    return uuid4().hex


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ToolState(str, Enum):
    """Lifecycle of a tool invocation."""
    CALL_PENDING_INPUT = "call-pending-input"
    CALL_READY = "call-ready"
    OUTPUT_AVAILABLE = "output-available"
    OUTPUT_ERROR = "output-error"

    @property
    def is_terminal(self) -> bool:
        return self in (ToolState.OUTPUT_AVAILABLE, ToolState.OUTPUT_ERROR)


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str = ""


class ToolInvocationPart(BaseModel):
    type: Literal["tool-invocation"] = "tool-invocation"
    tool_call_id: str
    tool_name: str
    state: ToolState
    input: Any = None
    output: Any = None

    def resolve(self, output: Any) -> None:
        self.state = ToolState.OUTPUT_AVAILABLE
        self.output = output

    def fail(self, output: Any) -> None:
        self.state = ToolState.OUTPUT_ERROR
        self.output = output


Part = Annotated[Union[TextPart, ToolInvocationPart], Field(discriminator="type")]


class Message(BaseModel):
    model_config = ConfigDict(validate_assignment=False)

    id: str = Field(default_factory=new_id)
    role: Role
    parts: list[Part] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def user(cls, text: str, **metadata: Any) -> "Message":
        return cls(
            role=Role.USER,
            parts=[TextPart(text=text)],
            metadata={"created_at": utc_now_iso(), **metadata},
        )

    @classmethod
    def assistant(cls, parts: Optional[list] = None, **metadata: Any) -> "Message":
        return cls(
            role=Role.ASSISTANT,
            parts=list(parts or []),
            metadata={"created_at": utc_now_iso(), **metadata},
        )

    @property
    def text(self) -> str:
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    def tool_invocations(self) -> list[ToolInvocationPart]:
        return [p for p in self.parts if isinstance(p, ToolInvocationPart)]

    def find_invocation(self, tool_call_id: str) -> Optional[ToolInvocationPart]:
        for part in self.tool_invocations():
            if part.tool_call_id == tool_call_id:
                return part
        return None
