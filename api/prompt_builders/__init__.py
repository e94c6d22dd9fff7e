"""
App prompt builders: build system prompts for agents using library core template.
All prompt content and templates live here; agents receive built prompts (at init or via metadata).
"""

from api.prompt_builders.study import build_study_system_prompt

__all__ = [
    "build_study_system_prompt",
]
