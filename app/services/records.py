from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class ThreadRecord:
    """Ownership and summary record for one conversation.

    On upsert, fields left as None are not merged into an existing thread.
    """

    conversation_id: str
    state: Optional[str] = None
    display_name: Optional[str] = None
    brand_id: Optional[str] = None
    last_message_text: Optional[str] = None
    last_updated: Optional[datetime] = None


@dataclass(frozen=True)
class MessageRecord:
    message_id: str
    conversation_id: str
    message_text: str
    user_type: str
    display_name: Optional[str] = None
    created_date: Optional[datetime] = None  # stamped by the message store
