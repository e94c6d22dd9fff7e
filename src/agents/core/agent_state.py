from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from agents.core.messages import Message

@dataclass
class AgentState:
    # Assistant turn being built by the current run; read by the caller once the stream ends.
    response: Optional[Message] = None
    # Model steps taken in the current run (bounded by the agent's max_steps).
    steps: int = 0
    # Tool call ids left `call-ready` for human confirmation.
    pending_confirmation: List[str] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class AgentEvent:
    """A named control event from a run (tool_call, tool_result, ...). Framing is up to the caller."""
    event: str
    data: Any


# A run streams plain text deltas and AgentEvents.
StreamItem = Union[str, AgentEvent]
