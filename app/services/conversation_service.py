from dataclasses import dataclass, field
from typing import Callable, Optional

from app.logging_config import get_logger
from app.services.message_store import MessageStore
from app.services.notifier import Notifier, send_with_typing
from app.services.result import PERSISTENCE_ERROR, Result
from app.services.state_machine import (
    Effect,
    Plan,
    SaveThread,
    SendEvent,
    SendMessage,
    SetThreadState,
    StoreMessage,
    ThreadState,
)
from app.services.thread_store import ThreadStore

logger = get_logger("conversation_service")


@dataclass
class Outcome:
    """What happened to one event or operator action."""

    conversation_id: str
    action: str
    previous_state: Optional[ThreadState] = None
    state: Optional[ThreadState] = None
    stored_messages: int = 0
    sent_messages: int = 0
    failures: list[Result] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class EffectRunner:
    """Applies a plan's effects in order against the stores and the notifier.

    Failures are logged and collected; they never stop the remaining effects
    and nothing already applied is rolled back.
    """

    def __init__(self, thread_store: ThreadStore, message_store: MessageStore, notifier: Notifier):
        self.thread_store = thread_store
        self.message_store = message_store
        self.notifier = notifier

    async def run(self, plan: Plan, action: str) -> Outcome:
        outcome = Outcome(
            conversation_id=plan.conversation_id,
            action=action,
            previous_state=plan.previous_state,
            state=plan.next_state,
        )
        for effect in plan.effects:
            await self._apply(effect, outcome)

        if outcome.failures:
            logger.warning(
                f"Effects partially failed for conversation {plan.conversation_id}",
                extra={
                    "context": {
                        "conversation_id": plan.conversation_id,
                        "action": action,
                        "failures": [failure.as_context() for failure in outcome.failures],
                    }
                },
            )
        return outcome

    async def _apply(self, effect: Effect, outcome: Outcome) -> None:
        if isinstance(effect, SaveThread):
            self._persist(outcome, "upsert_thread", lambda: self.thread_store.upsert(effect.thread))

        elif isinstance(effect, SetThreadState):
            self._persist(
                outcome, "set_state", lambda: self.thread_store.set_state(effect.conversation_id, effect.state)
            )

        elif isinstance(effect, StoreMessage):
            result = self._persist(outcome, "append_message", lambda: self.message_store.append(effect.message))
            if result.ok and result.value:
                outcome.stored_messages += 1
            elif result.ok:
                logger.info(
                    f"Message {effect.message.message_id} already stored, skipping duplicate",
                    extra={"context": {"conversation_id": effect.message.conversation_id}},
                )

        elif isinstance(effect, SendMessage):
            results = await send_with_typing(
                self.notifier, effect.conversation_id, effect.message_id, effect.text, effect.representative
            )
            if results[1].ok:
                outcome.sent_messages += 1
            outcome.failures.extend(result for result in results if not result.ok)

        elif isinstance(effect, SendEvent):
            result = await self.notifier.send_event(effect.conversation_id, effect.event_type, effect.representative)
            if not result.ok:
                outcome.failures.append(result)

        else:
            raise TypeError(f"Unknown effect {effect!r}")

    def _persist(self, outcome: Outcome, operation: str, call: Callable) -> Result:
        try:
            return Result.success(call())
        except Exception as e:
            logger.error(
                f"Persistence failed during {operation}: {e}",
                extra={"context": {"conversation_id": outcome.conversation_id, "operation": operation}},
            )
            failure = Result.failure(f"{operation}: {e}", PERSISTENCE_ERROR)
            outcome.failures.append(failure)
            return failure
