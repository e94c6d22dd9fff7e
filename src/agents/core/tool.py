from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Type

from pydantic import BaseModel

from agents.core.messages import Message
from agents.core.reconciler import ConfirmationHandler


@dataclass
class ToolContext:
    """What a tool (or a confirmation handler) sees of the running conversation."""
    conversation_id: str
    messages: List[Message] = field(default_factory=list)
    scheduler: Any = None


class Tool(ABC):
    name: str
    description: str
    input_schema: Type[BaseModel]

    @abstractmethod
    async def run(self, args: BaseModel, context: ToolContext) -> Any:
        pass

    def parse_input(self, raw: Any) -> BaseModel:
        return self.input_schema.model_validate(raw or {})

    async def invoke(self, raw: Any, context: ToolContext) -> Any:
        """Validate raw model-provided input and run the tool."""
        result = self.run(self.parse_input(raw), context)
        if inspect.isawaitable(result):
            result = await result
        return result

    def describe(self) -> dict:
        """Tool descriptor in the function-calling format the chat models accept."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema.model_json_schema(),
            },
        }


class ToolRegistry:
    def __init__(self, tools: Optional[Iterable[Tool]] = None):
        self._tools: Dict[str, Tool] = {}
        for t in tools or []:
            self.register(t)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool {tool.name} already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def list_tools(self) -> list[str]:
        return list(self._tools.keys())

    def descriptors(self) -> list[dict]:
        return [t.describe() for t in self._tools.values()]

    def confirmation_handlers(self, names: Iterable[str]) -> Dict[str, ConfirmationHandler]:
        """
        Handlers for the gated tools among `names`. Names without a registered tool get no
        handler, so the reconciler denies them.
        """
        return {n: self._tools[n].invoke for n in names if n in self._tools}
