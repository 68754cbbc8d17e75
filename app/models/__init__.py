from app.models.message import Message
from app.models.thread import Thread

__all__ = [
    "Thread",
    "Message",
]
