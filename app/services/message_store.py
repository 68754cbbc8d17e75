from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Message
from app.services.records import MessageRecord


class MessageStore(Protocol):
    def append(self, message: MessageRecord) -> bool: ...

    def list_by_conversation(self, conversation_id: str) -> list[MessageRecord]: ...


def _utc(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class InMemoryMessageStore:
    def __init__(self) -> None:
        self._messages: dict[str, MessageRecord] = {}

    def append(self, message: MessageRecord) -> bool:
        """Store a message once. Returns False if message_id is already stored."""
        if message.message_id in self._messages:
            return False
        self._messages[message.message_id] = replace(message, created_date=_utc(message.created_date))
        return True

    def list_by_conversation(self, conversation_id: str) -> list[MessageRecord]:
        # message_id breaks timestamp ties, matching the SQL ordering
        matching = [msg for msg in self._messages.values() if msg.conversation_id == conversation_id]
        return sorted(matching, key=lambda msg: (msg.created_date, msg.message_id))


def _to_record(row: Message) -> MessageRecord:
    return MessageRecord(
        message_id=row.message_id,
        conversation_id=row.conversation_id,
        message_text=row.message_text,
        user_type=row.user_type,
        display_name=row.display_name,
        created_date=_utc(row.created_date),
    )


class SqlMessageStore:
    """Append-only message store backed by the messages table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def append(self, message: MessageRecord) -> bool:
        with self._session_factory() as db:
            exists = db.query(Message.message_id).filter(Message.message_id == message.message_id).first()
            if exists:
                return False
            db.add(
                Message(
                    message_id=message.message_id,
                    conversation_id=message.conversation_id,
                    message_text=message.message_text,
                    user_type=message.user_type,
                    display_name=message.display_name,
                    created_date=_utc(message.created_date),
                )
            )
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                # Concurrent append of the same message_id; anything else propagates
                if db.query(Message.message_id).filter(Message.message_id == message.message_id).first():
                    return False
                raise
            return True

    def list_by_conversation(self, conversation_id: str) -> list[MessageRecord]:
        with self._session_factory() as db:
            rows = (
                db.query(Message)
                .filter(Message.conversation_id == conversation_id)
                .order_by(Message.created_date.asc(), Message.message_id.asc())
                .all()
            )
            return [_to_record(row) for row in rows]
