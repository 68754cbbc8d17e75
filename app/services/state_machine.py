from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Protocol, Union

from app.schemas.webhook import EventKind, InboundEvent
from app.services.records import MessageRecord, ThreadRecord


class ThreadState(str, Enum):
    BOT = "Bot"
    QUEUED = "Queued"
    LIVE_AGENT = "Live Agent"


class UserType(str, Enum):
    USER = "User"
    CRM = "CRM"


class RepresentativeType(str, Enum):
    BOT = "BOT"
    HUMAN = "HUMAN"


class RepresentativeEvent(str, Enum):
    JOINED = "REPRESENTATIVE_JOINED"
    LEFT = "REPRESENTATIVE_LEFT"


class Trigger(str, Enum):
    INBOUND_MESSAGE = "inbound_message"
    LIVE_AGENT_REQUEST = "live_agent_request"
    OPERATOR_JOIN = "operator_join"
    OPERATOR_LEAVE = "operator_leave"
    OPERATOR_MESSAGE = "operator_message"


INITIAL_STATE = ThreadState.BOT

# Every state accepts every trigger; triggers missing here keep the current owner.
TRIGGER_TARGETS = {
    Trigger.LIVE_AGENT_REQUEST: ThreadState.QUEUED,
    Trigger.OPERATOR_JOIN: ThreadState.LIVE_AGENT,
    Trigger.OPERATOR_LEAVE: ThreadState.BOT,
}


class UnknownConversationError(Exception):
    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation {conversation_id} not found")


class Responder(Protocol):
    def reply(self, text: str, thread: Optional[ThreadRecord]) -> str: ...


@dataclass(frozen=True)
class SaveThread:
    thread: ThreadRecord


@dataclass(frozen=True)
class SetThreadState:
    conversation_id: str
    state: ThreadState


@dataclass(frozen=True)
class StoreMessage:
    message: MessageRecord


@dataclass(frozen=True)
class SendMessage:
    conversation_id: str
    message_id: str
    text: str
    representative: RepresentativeType


@dataclass(frozen=True)
class SendEvent:
    conversation_id: str
    event_type: RepresentativeEvent
    representative: RepresentativeType = RepresentativeType.HUMAN


Effect = Union[SaveThread, SetThreadState, StoreMessage, SendMessage, SendEvent]


@dataclass
class Plan:
    conversation_id: str
    trigger: Trigger
    previous_state: Optional[ThreadState]
    next_state: ThreadState
    effects: list[Effect] = field(default_factory=list)

    @property
    def replies(self) -> list[SendMessage]:
        return [effect for effect in self.effects if isinstance(effect, SendMessage)]


def current_state(thread: Optional[ThreadRecord]) -> ThreadState:
    if thread is None or not thread.state:
        return INITIAL_STATE
    return ThreadState(thread.state)


def next_state(current: ThreadState, trigger: Trigger) -> ThreadState:
    return TRIGGER_TARGETS.get(trigger, current)


def bot_owns(state: ThreadState) -> bool:
    """Bot answers only while it owns the conversation."""
    return state == ThreadState.BOT


def _require_thread(conversation_id: str, thread: Optional[ThreadRecord]) -> ThreadRecord:
    if thread is None:
        raise UnknownConversationError(conversation_id)
    return thread


def outbound_message_effects(
    conversation_id: str,
    text: str,
    representative: RepresentativeType,
    *,
    message_id: str,
    business_name: str,
    now: datetime,
) -> list[Effect]:
    """Store a CRM message, refresh the thread summary, then send it."""
    return [
        SaveThread(ThreadRecord(conversation_id=conversation_id, last_message_text=text, last_updated=now)),
        StoreMessage(
            MessageRecord(
                message_id=message_id,
                conversation_id=conversation_id,
                message_text=text,
                user_type=UserType.CRM.value,
                display_name=business_name,
            )
        ),
        SendMessage(conversation_id=conversation_id, message_id=message_id, text=text, representative=representative),
    ]


def plan_inbound_message(
    event: InboundEvent,
    thread: Optional[ThreadRecord],
    *,
    responder: Responder,
    reply_id: str,
    business_name: str,
    now: datetime,
) -> Plan:
    """Store the user's message and, while the bot owns the thread, answer it.

    A missing thread is created in the initial state from the event metadata.
    """
    if not event.carries_text:
        raise ValueError(f"Event kind {event.kind.value} carries no message text")

    state = current_state(thread)
    text = event.text or ""

    effects: list[Effect] = [
        SaveThread(
            ThreadRecord(
                conversation_id=event.conversation_id,
                state=None if thread else INITIAL_STATE.value,
                display_name=event.display_name,
                brand_id=event.brand_id,
                last_message_text=text,
                last_updated=now,
            )
        ),
        StoreMessage(
            MessageRecord(
                message_id=event.request_id,
                conversation_id=event.conversation_id,
                message_text=text,
                user_type=UserType.USER.value,
                display_name=event.display_name,
            )
        ),
    ]

    if bot_owns(state):
        effects.extend(
            outbound_message_effects(
                event.conversation_id,
                responder.reply(text, thread),
                RepresentativeType.BOT,
                message_id=reply_id,
                business_name=business_name,
                now=now,
            )
        )

    return Plan(
        conversation_id=event.conversation_id,
        trigger=Trigger.INBOUND_MESSAGE,
        previous_state=state if thread else None,
        next_state=next_state(state, Trigger.INBOUND_MESSAGE),
        effects=effects,
    )


def plan_live_agent_request(conversation_id: str, thread: Optional[ThreadRecord]) -> Plan:
    """Queue the thread for a representative. Nothing is sent to the user."""
    state = current_state(_require_thread(conversation_id, thread))
    target = next_state(state, Trigger.LIVE_AGENT_REQUEST)
    return Plan(
        conversation_id=conversation_id,
        trigger=Trigger.LIVE_AGENT_REQUEST,
        previous_state=state,
        next_state=target,
        effects=[SetThreadState(conversation_id, target)],
    )


def plan_join(conversation_id: str, thread: Optional[ThreadRecord]) -> Plan:
    state = current_state(_require_thread(conversation_id, thread))
    target = next_state(state, Trigger.OPERATOR_JOIN)
    return Plan(
        conversation_id=conversation_id,
        trigger=Trigger.OPERATOR_JOIN,
        previous_state=state,
        next_state=target,
        effects=[
            SetThreadState(conversation_id, target),
            SendEvent(conversation_id, RepresentativeEvent.JOINED),
        ],
    )


def plan_leave(
    conversation_id: str,
    thread: Optional[ThreadRecord],
    *,
    handoff_text: str,
    message_id: str,
    business_name: str,
    now: datetime,
) -> Plan:
    """Return the thread to the bot and announce it on the bot's behalf.

    The handoff message is sent even though the bot-owns rule is not consulted:
    the operator, not an inbound message, initiates it.
    """
    state = current_state(_require_thread(conversation_id, thread))
    target = next_state(state, Trigger.OPERATOR_LEAVE)
    effects: list[Effect] = [
        SetThreadState(conversation_id, target),
        SendEvent(conversation_id, RepresentativeEvent.LEFT),
    ]
    effects.extend(
        outbound_message_effects(
            conversation_id,
            handoff_text,
            RepresentativeType.BOT,
            message_id=message_id,
            business_name=business_name,
            now=now,
        )
    )
    return Plan(
        conversation_id=conversation_id,
        trigger=Trigger.OPERATOR_LEAVE,
        previous_state=state,
        next_state=target,
        effects=effects,
    )


def plan_operator_message(
    conversation_id: str,
    thread: Optional[ThreadRecord],
    text: str,
    *,
    message_id: str,
    business_name: str,
    now: datetime,
) -> Plan:
    state = current_state(_require_thread(conversation_id, thread))
    return Plan(
        conversation_id=conversation_id,
        trigger=Trigger.OPERATOR_MESSAGE,
        previous_state=state,
        next_state=next_state(state, Trigger.OPERATOR_MESSAGE),
        effects=outbound_message_effects(
            conversation_id,
            text,
            RepresentativeType.HUMAN,
            message_id=message_id,
            business_name=business_name,
            now=now,
        ),
    )


def kind_to_trigger(kind: EventKind) -> Optional[Trigger]:
    if kind in (EventKind.MESSAGE, EventKind.SUGGESTION_RESPONSE):
        return Trigger.INBOUND_MESSAGE
    if kind == EventKind.LIVE_AGENT_REQUEST:
        return Trigger.LIVE_AGENT_REQUEST
    return None
