"""
Message store: persist conversation turns as ordered rows.

Converts between the agent data model (agents.core.messages.Message) and the
`messages` table. Order is carried by `seq`; parts are stored as JSON.
"""

from typing import Iterable
from datetime import datetime

from pydantic import ValidationError
from sqlalchemy.orm import Session

from agents.core.errors import MalformedHistoryError
from agents.core.messages import Message
from api.models.models import Conversation, Message as MessageRow
from api.utils.common import next_seq
from api.utils.logger import configure_logging

logger = configure_logging()


def _to_message(row: MessageRow) -> Message:
    try:
        return Message.model_validate(
            {
                "id": row.id,
                "role": row.role,
                "parts": row.parts or [],
                "metadata": row.message_metadata or {},
            }
        )
    except ValidationError as e:
        raise MalformedHistoryError(f"stored message {row.id} is malformed: {e}") from e


def _dump_parts(message: Message) -> list:
    return [p.model_dump(mode="json") for p in message.parts]


class MessageStore:
    """Ordered message persistence for one database session. Callers own the transaction."""

    def __init__(self, db: Session):
        self.db = db

    def ensure_conversation(self, conversation_id: str) -> Conversation:
        convo = self.db.get(Conversation, conversation_id)
        if convo is None:
            convo = Conversation(id=conversation_id)
            self.db.add(convo)
            self.db.flush()
            logger.info("conversation created id=%s", conversation_id)
        return convo

    def read_all(self, conversation_id: str) -> list[Message]:
        rows = (
            self.db.query(MessageRow)
            .filter(MessageRow.conversation_id == conversation_id)
            .order_by(MessageRow.seq.asc())
            .all()
        )
        return [_to_message(r) for r in rows]

    def append(self, conversation_id: str, message: Message) -> None:
        self.ensure_conversation(conversation_id)
        self.db.add(
            MessageRow(
                id=message.id,
                conversation_id=conversation_id,
                role=message.role.value,
                parts=_dump_parts(message),
                message_metadata=dict(message.metadata),
                seq=next_seq(conversation_id, self.db),
                created_at=datetime.utcnow(),
            )
        )
        self.db.commit()

    def save(self, conversation_id: str, messages: Iterable[Message]) -> None:
        """
        Upsert by id: existing rows get their parts and metadata replaced, new messages are
        appended in the given order. Rows not mentioned are left alone.
        """
        self.ensure_conversation(conversation_id)
        for message in messages:
            row = self.db.get(MessageRow, message.id)
            if row is not None and row.conversation_id == conversation_id:
                row.parts = _dump_parts(message)
                row.message_metadata = dict(message.metadata)
                continue
            self.db.add(
                MessageRow(
                    id=message.id,
                    conversation_id=conversation_id,
                    role=message.role.value,
                    parts=_dump_parts(message),
                    message_metadata=dict(message.metadata),
                    seq=next_seq(conversation_id, self.db),
                    created_at=datetime.utcnow(),
                )
            )
            self.db.flush()
        self.db.commit()

    def clear(self, conversation_id: str) -> int:
        deleted = (
            self.db.query(MessageRow)
            .filter(MessageRow.conversation_id == conversation_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info("conversation cleared id=%s deleted=%s", conversation_id, deleted)
        return deleted
