"""
Template-based prompt construction. The app owns the template strings; this only fills them.
"""

from __future__ import annotations

from typing import Any


class _BlankMissing(dict):
    def __missing__(self, key: str) -> str:
        return ""


def build_from_template(template: str, **kwargs: Any) -> str:
    """Fill `template` with kwargs; missing or None placeholders render as empty strings."""
    if not template:
        return ""
    values = {k: "" if v is None else v for k, v in kwargs.items()}
    return template.format_map(_BlankMissing(values)).strip()
