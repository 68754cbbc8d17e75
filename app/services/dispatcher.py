import uuid
from datetime import datetime, timezone
from typing import Optional

from app.logging_config import conversation_logger
from app.schemas.webhook import EventKind, InboundEvent
from app.services.conversation_lock import ConversationLocks
from app.services.conversation_service import EffectRunner, Outcome
from app.services.message_store import MessageStore
from app.services.notifier import Notifier
from app.services.result import MALFORMED_EVENT, PERSISTENCE_ERROR, UNKNOWN_CONVERSATION, Result
from app.services.state_machine import (
    Responder,
    Trigger,
    UnknownConversationError,
    kind_to_trigger,
    plan_inbound_message,
    plan_live_agent_request,
)
from app.services.thread_store import ThreadStore


class WebhookDispatcher:
    """Runs one decoded webhook event through the state machine and applies the result."""

    def __init__(
        self,
        thread_store: ThreadStore,
        message_store: MessageStore,
        notifier: Notifier,
        responder: Responder,
        *,
        business_name: str,
        locks: Optional[ConversationLocks] = None,
    ):
        self.thread_store = thread_store
        self.responder = responder
        self.business_name = business_name
        self.locks = locks or ConversationLocks()
        self.runner = EffectRunner(thread_store, message_store, notifier)

    async def dispatch(self, event: InboundEvent) -> Outcome:
        async with self.locks.for_conversation(event.conversation_id):
            return await self._dispatch(event)

    async def _dispatch(self, event: InboundEvent) -> Outcome:
        log = conversation_logger(
            "dispatcher", event.conversation_id, request_id=event.request_id, kind=event.kind.value
        )

        trigger = kind_to_trigger(event.kind)
        if trigger is None:
            # No state change, but keep an audit trail of what was dropped
            log.warning("Unrecognized webhook event ignored", context={"agent": event.agent})
            return Outcome(
                conversation_id=event.conversation_id,
                action=event.kind.value,
                failures=[Result.failure("Event matches no known shape", MALFORMED_EVENT)],
            )

        try:
            thread = self.thread_store.get(event.conversation_id)
        except Exception as e:
            log.error(f"Failed to load thread: {e}")
            return Outcome(
                conversation_id=event.conversation_id,
                action=event.kind.value,
                failures=[Result.failure(f"get_thread: {e}", PERSISTENCE_ERROR)],
            )

        if trigger == Trigger.INBOUND_MESSAGE:
            plan = plan_inbound_message(
                event,
                thread,
                responder=self.responder,
                reply_id=str(uuid.uuid4()),
                business_name=self.business_name,
                now=datetime.now(timezone.utc),
            )
        else:
            try:
                plan = plan_live_agent_request(event.conversation_id, thread)
            except UnknownConversationError as e:
                log.warning("Live agent requested for unknown conversation")
                return Outcome(
                    conversation_id=event.conversation_id,
                    action=event.kind.value,
                    failures=[Result.failure(str(e), UNKNOWN_CONVERSATION)],
                )

        previous = plan.previous_state.value if plan.previous_state else None
        log.info(
            f"Dispatching {event.kind.value} for conversation {event.conversation_id}: "
            f"{previous} -> {plan.next_state.value}",
            context={"effects": len(plan.effects), "bot_reply": bool(plan.replies)},
        )
        return await self.runner.run(plan, event.kind.value)
