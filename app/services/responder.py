from typing import Optional

from app.services.records import ThreadRecord


class EchoResponder:
    """Bot that answers with the user's own text."""

    def reply(self, text: str, thread: Optional[ThreadRecord] = None) -> str:
        return text
