"""
Common utility functions used across multiple routes and services.
"""

from sqlalchemy import func
from sqlalchemy.orm import Session

from api.models.models import Message


def next_seq(conversation_id: str, db: Session) -> int:
    """Get next sequence number for a conversation."""
    last = (
        db.query(func.max(Message.seq))
        .filter(Message.conversation_id == conversation_id)
        .scalar()
    )
    return int(last) + 1 if last is not None else 1
