import uuid
from datetime import datetime, timezone
from typing import Optional

from app.logging_config import conversation_logger
from app.services.conversation_lock import ConversationLocks
from app.services.conversation_service import EffectRunner, Outcome
from app.services.message_store import MessageStore
from app.services.notifier import Notifier
from app.services.result import PERSISTENCE_ERROR
from app.services.state_machine import (
    Plan,
    plan_join,
    plan_leave,
    plan_operator_message,
)
from app.services.thread_store import ThreadStore


class ThreadUnavailableError(Exception):
    """The thread store failed while loading a conversation."""

    def __init__(self, conversation_id: str, cause: Exception):
        self.conversation_id = conversation_id
        self.error_code = PERSISTENCE_ERROR
        super().__init__(f"Thread store unavailable for conversation {conversation_id}: {cause}")


class OperatorActions:
    """Transitions triggered from the CRM console instead of a webhook.

    Every action requires an existing thread and raises
    UnknownConversationError otherwise. A failing thread store raises
    ThreadUnavailableError before anything is changed.
    """

    def __init__(
        self,
        thread_store: ThreadStore,
        message_store: MessageStore,
        notifier: Notifier,
        *,
        business_name: str,
        handoff_message: str,
        locks: Optional[ConversationLocks] = None,
    ):
        self.thread_store = thread_store
        self.business_name = business_name
        self.handoff_message = handoff_message
        self.locks = locks or ConversationLocks()
        self.runner = EffectRunner(thread_store, message_store, notifier)

    async def join(self, conversation_id: str) -> Outcome:
        """Representative takes over the conversation."""
        async with self.locks.for_conversation(conversation_id):
            plan = plan_join(conversation_id, self._load_thread(conversation_id))
            return await self._run(plan, "join")

    async def leave(self, conversation_id: str) -> Outcome:
        """Representative hands the conversation back to the bot."""
        async with self.locks.for_conversation(conversation_id):
            plan = plan_leave(
                conversation_id,
                self._load_thread(conversation_id),
                handoff_text=self.handoff_message,
                message_id=str(uuid.uuid4()),
                business_name=self.business_name,
                now=datetime.now(timezone.utc),
            )
            return await self._run(plan, "leave")

    async def send_message(self, conversation_id: str, text: str) -> Outcome:
        """Representative writes to the user; ownership is unchanged."""
        async with self.locks.for_conversation(conversation_id):
            plan = plan_operator_message(
                conversation_id,
                self._load_thread(conversation_id),
                text,
                message_id=str(uuid.uuid4()),
                business_name=self.business_name,
                now=datetime.now(timezone.utc),
            )
            return await self._run(plan, "send_message")

    def _load_thread(self, conversation_id: str):
        try:
            return self.thread_store.get(conversation_id)
        except Exception as e:
            log = conversation_logger("operator_service", conversation_id)
            log.error(f"Failed to load thread: {e}", context={"error_code": PERSISTENCE_ERROR})
            raise ThreadUnavailableError(conversation_id, e) from e

    async def _run(self, plan: Plan, action: str) -> Outcome:
        log = conversation_logger("operator_service", plan.conversation_id, action=action)
        log.info(
            f"Operator {action} on conversation {plan.conversation_id}: "
            f"{plan.previous_state.value} -> {plan.next_state.value}",
        )
        return await self.runner.run(plan, action)

