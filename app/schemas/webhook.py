import re
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError

_BRAND_PATTERN = re.compile(r"brands/([^/]+)")


class EventKind(str, Enum):
    MESSAGE = "message"
    SUGGESTION_RESPONSE = "suggestion_response"
    LIVE_AGENT_REQUEST = "live_agent_request"
    UNRECOGNIZED = "unrecognized"


class InvalidEventError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TextPayload(BaseModel):
    text: Optional[str] = None


class UserStatus(BaseModel):
    requestedLiveAgent: Optional[bool] = None


class UserInfo(BaseModel):
    displayName: Optional[str] = None


class EventContext(BaseModel):
    userInfo: Optional[UserInfo] = None


class WebhookEvent(BaseModel):
    conversationId: str
    requestId: Optional[str] = None
    agent: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("agent", "agentIdentifier"),
    )
    userDisplayName: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("userDisplayName", "displayName"),
    )
    context: Optional[EventContext] = None
    message: Optional[TextPayload] = None
    suggestionResponse: Optional[TextPayload] = None
    userStatus: Optional[UserStatus] = None

    @property
    def display_name(self) -> Optional[str]:
        if self.userDisplayName:
            return self.userDisplayName
        if self.context and self.context.userInfo:
            return self.context.userInfo.displayName
        return None


class WebhookResponse(BaseModel):
    success: bool
    message: Optional[str] = None


@dataclass(frozen=True)
class InboundEvent:
    """Webhook payload decoded into exactly one event kind."""

    kind: EventKind
    conversation_id: str
    request_id: str
    agent: Optional[str] = None
    brand_id: Optional[str] = None
    display_name: Optional[str] = None
    text: Optional[str] = None

    @property
    def carries_text(self) -> bool:
        return self.kind in (EventKind.MESSAGE, EventKind.SUGGESTION_RESPONSE)


def extract_brand_id(agent: Optional[str]) -> Optional[str]:
    """Brand id from an agent resource name like brands/<brand>/agents/<agent>."""
    if not agent:
        return None
    match = _BRAND_PATTERN.search(agent)
    if match:
        return match.group(1)
    return agent


def classify(event: WebhookEvent) -> tuple[EventKind, Optional[str]]:
    if event.message is not None and event.message.text is not None:
        return EventKind.MESSAGE, event.message.text
    if event.suggestionResponse is not None and event.suggestionResponse.text is not None:
        return EventKind.SUGGESTION_RESPONSE, event.suggestionResponse.text
    if event.userStatus is not None and event.userStatus.requestedLiveAgent is not None:
        return EventKind.LIVE_AGENT_REQUEST, None
    return EventKind.UNRECOGNIZED, None


def decode_event(payload: Any) -> InboundEvent:
    """Decode a raw webhook body. Raises InvalidEventError if it has no conversation id."""
    if not isinstance(payload, dict):
        raise InvalidEventError("Webhook payload must be a JSON object")

    try:
        event = WebhookEvent.model_validate(payload)
    except ValidationError as e:
        raise InvalidEventError(f"Invalid webhook payload: {e.errors()[0].get('msg', 'validation error')}")

    kind, text = classify(event)
    return InboundEvent(
        kind=kind,
        conversation_id=event.conversationId,
        request_id=(event.requestId or "").strip() or str(uuid.uuid4()),
        agent=event.agent,
        brand_id=extract_brand_id(event.agent),
        display_name=event.display_name,
        text=text,
    )
