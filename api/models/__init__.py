"""
API data models. Single import surface for DB entities.

DB entities (api.models.models):
- Conversation, Message
"""

from api.models.models import Conversation, Message

__all__ = [
    "Conversation",
    "Message",
]
