from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Sequence

class LLM(ABC):
    """
    Defines the contract for all LLMs.
    """
    @abstractmethod
    def stream_chat(self, messages: Sequence[Any], tools: Sequence[dict]) -> AsyncIterator[Any]:
        """Stream a chat completion as LangChain message chunks; `tools` are function descriptors."""
        raise NotImplementedError
