from app.schemas.crm import (
    ConversationRequest,
    MessageListResponse,
    OperatorActionResponse,
    SendMessageRequest,
    ThreadListResponse,
)
from app.schemas.webhook import EventKind, InboundEvent, WebhookEvent, WebhookResponse

__all__ = [
    "ConversationRequest",
    "SendMessageRequest",
    "OperatorActionResponse",
    "ThreadListResponse",
    "MessageListResponse",
    "EventKind",
    "InboundEvent",
    "WebhookEvent",
    "WebhookResponse",
]
