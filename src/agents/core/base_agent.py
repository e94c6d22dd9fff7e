from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, List, Sequence

import logging

from agents.core.agent_state import AgentState, StreamItem
from agents.core.messages import Message
from agents.core.tool import ToolContext, ToolRegistry

logger = logging.getLogger(__name__)

class BaseAgent(ABC):
    """
    Defines the lifecycle and contract for all agents.
    system_prompt: default set at init; can be overridden per run via state.metadata["system_prompt"].
    The agent never persists anything; callers read state.response once the stream is exhausted.
    """
    def __init__(
        self,
        *,
        name: str,
        llm: Any,
        tools: ToolRegistry,
        system_prompt: str = "",
    ):
        self.name = name
        self.llm = llm
        self.tools = tools
        self.system_prompt = system_prompt or ""
        self.state = AgentState()

    #-----Public API-----

    async def run_stream(self, messages: Sequence[Message], context: ToolContext) -> AsyncIterator[StreamItem]:
        self._before_run(messages)
        plan = self.plan(list(messages), context)
        async for chunk in self.execute_stream(plan, context):
            yield chunk
        self._after_run()

    async def run(self, messages: Sequence[Message], context: ToolContext) -> Message:
        """Drain the stream and return the assistant turn it produced."""
        async for _ in self.run_stream(messages, context):
            pass
        return self.state.response

    #-----------EXTENSION POINTS-----------
    @abstractmethod
    def plan(self, messages: List[Message], context: ToolContext) -> Any:
        """DECIDE WHAT TO DO NEXT"""

    @abstractmethod
    async def execute_stream(self, plan: Any, context: ToolContext) -> AsyncIterator[StreamItem]:
        """EXECUTE THE PLAN STREAMING"""

    #-----------Hooks --------------------------------------------------------------

    def _before_run(self, messages: Sequence[Message]):
        metadata = self.state.metadata
        self.state = AgentState(response=Message.assistant(), metadata=metadata)
        logger.debug("agent=%s run start messages=%s", self.name, len(messages))

    def _after_run(self):
        response = self.state.response
        logger.info(
            "agent=%s run done steps=%s parts=%s pending=%s",
            self.name,
            self.state.steps,
            len(response.parts) if response else 0,
            len(self.state.pending_confirmation),
        )
