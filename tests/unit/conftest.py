"""
Unit test fixtures. Scripted LLM and in-memory stores; no network, no real DB.
"""
import pytest

from agents.core.tool import ToolContext
from fakes import ScriptedLLM


@pytest.fixture
def scripted_llm():
    return ScriptedLLM()


@pytest.fixture
def context():
    return ToolContext(conversation_id="conv-1")
