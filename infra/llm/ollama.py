import logging
import time
from typing import Any, AsyncIterator, Sequence

from langchain_ollama import ChatOllama
from agents.core.llm import LLM

logger = logging.getLogger(__name__)


class OllamaLLM(LLM):
    def __init__(
        self,
        model: str,
        temperature: float = 0.7,
        base_url: str = "http://localhost:11434",
        max_tokens: int | None = None,
    ):
        self.model = model
        # ChatOllama carries role-tagged messages and native tool calling.
        self._chat_llm = ChatOllama(model=model, temperature=temperature, base_url=base_url, num_predict=max_tokens)

    async def stream_chat(self, messages: Sequence[Any], tools: Sequence[dict]) -> AsyncIterator[Any]:
        """
        Stream one model step. Yields AIMessageChunk objects; callers add them together to get
        the merged message (text content plus any tool calls).
        """
        runnable = self._chat_llm.bind_tools(list(tools)) if tools else self._chat_llm
        start_time = time.time()
        chunks = 0
        try:
            async for chunk in runnable.astream(list(messages)):
                chunks += 1
                yield chunk
        except Exception as e:
            elapsed = time.time() - start_time
            logger.error("LLM stream failed after %.2fs model=%s: %s", elapsed, self.model, e)
            raise
        logger.info("LLM stream completed in %.2fs model=%s chunks=%s", time.time() - start_time, self.model, chunks)
