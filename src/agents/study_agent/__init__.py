"""Study agent: tool-calling study assistant (flashcards, tips, quizzes, study sessions)."""

from agents.study_agent.agent import StudyAgent
from agents.study_agent.api import prepare, stream
from agents.study_agent.tools import build_study_tools

__all__ = [
    "StudyAgent",
    "prepare",
    "stream",
    "build_study_tools",
]
