from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import Any, AsyncIterator, Iterable, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, ToolMessage

from agents.core.agent_state import AgentEvent, StreamItem
from agents.core.base_agent import BaseAgent
from agents.core.llm import LLM
from agents.core.messages import Message, TextPart, ToolInvocationPart, ToolState, new_id
from agents.core.tool import ToolContext, ToolRegistry
from agents.study_agent.convert import to_langchain_messages, tool_output_text

logger = getLogger(__name__)


def _chunk_text(chunk: Any) -> str:
    content = getattr(chunk, "content", "")
    if isinstance(content, str):
        return content
    # Some providers stream content blocks instead of a plain string.
    return "".join(
        b.get("text", "") if isinstance(b, dict) else str(b) for b in (content or [])
    )


@dataclass
class StudyPlan:
    messages: List[BaseMessage]
    tools: List[dict] = field(default_factory=list)


class StudyAgent(BaseAgent):
    """
    Tool-calling study assistant. Streams text as it arrives and runs tools between model
    steps. Tools named in `confirm_tools` are not run here: they stay `call-ready` and the
    run stops so a human can approve them.
    """

    def __init__(
        self,
        *,
        name: str,
        llm: LLM,
        tools: ToolRegistry,
        system_prompt: str = "",
        max_steps: int = 10,
        confirm_tools: Optional[Iterable[str]] = None,
    ):
        super().__init__(name=name, llm=llm, tools=tools, system_prompt=system_prompt)
        self.max_steps = max_steps
        self.confirm_tools = frozenset(confirm_tools or ())

    def plan(self, messages: List[Message], context: ToolContext) -> StudyPlan:
        system_prompt = str(self.state.metadata.get("system_prompt") or self.system_prompt or "")
        return StudyPlan(
            messages=to_langchain_messages(messages, system_prompt),
            tools=self.tools.descriptors(),
        )

    async def execute_stream(self, plan: StudyPlan, context: ToolContext) -> AsyncIterator[StreamItem]:
        response = self.state.response
        lc_messages = list(plan.messages)

        while self.state.steps < self.max_steps:
            merged = None
            async for chunk in self.llm.stream_chat(lc_messages, plan.tools):
                merged = chunk if merged is None else merged + chunk
                text = _chunk_text(chunk)
                if text:
                    self._append_text(text)
                    yield text
            self.state.steps += 1

            calls = self._tool_calls(merged)
            if not calls:
                return
            lc_messages.append(AIMessage(content=_chunk_text(merged), tool_calls=calls))

            for call in calls:
                part = ToolInvocationPart(
                    tool_call_id=call["id"],
                    tool_name=call["name"],
                    state=ToolState.CALL_READY,
                    input=call["args"],
                )
                response.parts.append(part)
                yield AgentEvent("tool_call", {"tool_call_id": part.tool_call_id, "tool_name": part.tool_name, "input": part.input})

                if part.tool_name in self.confirm_tools and part.tool_name in self.tools:
                    self.state.pending_confirmation.append(part.tool_call_id)
                    yield AgentEvent("tool_confirmation_required", part.model_dump(mode="json"))
                    continue

                await self._execute_tool(part, context)
                yield AgentEvent("tool_result", part.model_dump(mode="json"))
                lc_messages.append(
                    ToolMessage(
                        content=tool_output_text(part.output),
                        tool_call_id=part.tool_call_id,
                        status="error" if part.state == ToolState.OUTPUT_ERROR else "success",
                    )
                )

            if self.state.pending_confirmation:
                logger.info("awaiting confirmation tool_call_ids=%s", self.state.pending_confirmation)
                return

        logger.warning("agent=%s stopped after max_steps=%s", self.name, self.max_steps)

    # ----- helpers -----

    def _append_text(self, text: str) -> None:
        parts = self.state.response.parts
        if parts and isinstance(parts[-1], TextPart):
            parts[-1].text += text
        else:
            parts.append(TextPart(text=text))

    @staticmethod
    def _tool_calls(merged: Any) -> list[dict]:
        calls = []
        for c in getattr(merged, "tool_calls", None) or []:
            calls.append(
                {
                    "name": c.get("name") or "",
                    "args": c.get("args") or {},
                    "id": c.get("id") or new_id(),
                    "type": "tool_call",
                }
            )
        return calls

    async def _execute_tool(self, part: ToolInvocationPart, context: ToolContext) -> None:
        tool = self.tools.get(part.tool_name)
        if tool is None:
            logger.warning("model called unknown tool=%s", part.tool_name)
            part.fail(f"Error: unknown tool {part.tool_name}")
            return
        try:
            output = await tool.invoke(part.input, context)
        except Exception as e:
            logger.exception("tool failed tool=%s id=%s", part.tool_name, part.tool_call_id)
            part.fail(f"Error executing tool {part.tool_name}: {e}")
        else:
            part.resolve(output)
