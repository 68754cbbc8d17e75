from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from sqlalchemy.orm import Session

from app.models import Thread
from app.services.records import ThreadRecord
from app.services.state_machine import INITIAL_STATE, ThreadState

_MERGED_FIELDS = ("state", "display_name", "last_message_text", "last_updated")
_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class ThreadStore(Protocol):
    def get(self, conversation_id: str) -> Optional[ThreadRecord]: ...

    def list(self) -> list[ThreadRecord]: ...

    def upsert(self, thread: ThreadRecord) -> ThreadRecord: ...

    def set_state(self, conversation_id: str, state: ThreadState) -> ThreadRecord: ...


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _sort_key(thread: ThreadRecord) -> datetime:
    return _as_utc(thread.last_updated) or _OLDEST


class InMemoryThreadStore:
    def __init__(self) -> None:
        self._threads: dict[str, ThreadRecord] = {}

    def get(self, conversation_id: str) -> Optional[ThreadRecord]:
        return self._threads.get(conversation_id)

    def list(self) -> list[ThreadRecord]:
        return sorted(self._threads.values(), key=_sort_key, reverse=True)

    def upsert(self, thread: ThreadRecord) -> ThreadRecord:
        existing = self._threads.get(thread.conversation_id)
        if existing is None:
            stored = replace(thread, state=thread.state or INITIAL_STATE.value)
        else:
            changes = {name: getattr(thread, name) for name in _MERGED_FIELDS if getattr(thread, name) is not None}
            stored = replace(existing, **changes)
        self._threads[thread.conversation_id] = stored
        return stored

    def set_state(self, conversation_id: str, state: ThreadState) -> ThreadRecord:
        existing = self._threads.get(conversation_id)
        if existing is None:
            raise KeyError(conversation_id)
        stored = replace(existing, state=state.value)
        self._threads[conversation_id] = stored
        return stored


def _to_record(row: Thread) -> ThreadRecord:
    return ThreadRecord(
        conversation_id=row.conversation_id,
        state=row.state,
        display_name=row.display_name,
        brand_id=row.brand_id,
        last_message_text=row.last_message_text,
        last_updated=_as_utc(row.last_updated),
    )


class SqlThreadStore:
    """Thread store backed by the threads table, one short session per call."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self, conversation_id: str) -> Optional[ThreadRecord]:
        with self._session_factory() as db:
            row = db.query(Thread).filter(Thread.conversation_id == conversation_id).first()
            return _to_record(row) if row else None

    def list(self) -> list[ThreadRecord]:
        with self._session_factory() as db:
            rows = db.query(Thread).order_by(Thread.last_updated.desc()).all()
            return [_to_record(row) for row in rows]

    def upsert(self, thread: ThreadRecord) -> ThreadRecord:
        with self._session_factory() as db:
            row = db.query(Thread).filter(Thread.conversation_id == thread.conversation_id).first()
            if row is None:
                row = Thread(
                    conversation_id=thread.conversation_id,
                    state=thread.state or INITIAL_STATE.value,
                    display_name=thread.display_name,
                    brand_id=thread.brand_id,
                    last_message_text=thread.last_message_text,
                    last_updated=thread.last_updated,
                )
                db.add(row)
            else:
                for name in _MERGED_FIELDS:
                    value = getattr(thread, name)
                    if value is not None:
                        setattr(row, name, value)
            db.commit()
            return _to_record(row)

    def set_state(self, conversation_id: str, state: ThreadState) -> ThreadRecord:
        with self._session_factory() as db:
            row = db.query(Thread).filter(Thread.conversation_id == conversation_id).first()
            if row is None:
                raise KeyError(conversation_id)
            row.state = state.value
            db.commit()
            return _to_record(row)
