import pytest

from app.services.dispatcher import WebhookDispatcher
from app.services.message_store import InMemoryMessageStore
from app.services.operator_service import OperatorActions
from app.services.responder import EchoResponder
from app.services.result import NOTIFY_ERROR, Result
from app.services.thread_store import InMemoryThreadStore

BUSINESS_NAME = "Acme Retail"
HANDOFF_MESSAGE = "You are now speaking with the Echo Bot"


class FakeNotifier:
    """Records every outbound call; calls named in fail_on return a failure."""

    def __init__(self, fail_on=()):
        self.calls = []
        self.fail_on = set(fail_on)

    async def send_typing(self, conversation_id, started, representative):
        name = "TYPING_STARTED" if started else "TYPING_STOPPED"
        return self._record(name, conversation_id, representative=representative)

    async def send_message(self, conversation_id, message_id, text, representative):
        return self._record(
            "MESSAGE", conversation_id, message_id=message_id, text=text, representative=representative
        )

    async def send_event(self, conversation_id, event_type, representative):
        return self._record(event_type.value, conversation_id, representative=representative)

    def _record(self, name, conversation_id, **details):
        self.calls.append((name, conversation_id, details))
        if name in self.fail_on:
            return Result.failure(f"{name} failed", NOTIFY_ERROR)
        return Result.success({})

    @property
    def names(self):
        return [call[0] for call in self.calls]

    def messages(self):
        return [call[2] for call in self.calls if call[0] == "MESSAGE"]


def build_payload(conversation_id="c1", request_id="m1", display_name="Alice", **extra):
    payload = {
        "conversationId": conversation_id,
        "requestId": request_id,
        "agent": "brands/brand-1/agents/agent-1",
        "context": {"userInfo": {"displayName": display_name}},
    }
    payload.update(extra)
    return payload


@pytest.fixture
def thread_store():
    return InMemoryThreadStore()


@pytest.fixture
def message_store():
    return InMemoryMessageStore()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def dispatcher(thread_store, message_store, notifier):
    return WebhookDispatcher(
        thread_store, message_store, notifier, EchoResponder(), business_name=BUSINESS_NAME
    )


@pytest.fixture
def operator_actions(thread_store, message_store, notifier, dispatcher):
    return OperatorActions(
        thread_store,
        message_store,
        notifier,
        business_name=BUSINESS_NAME,
        handoff_message=HANDOFF_MESSAGE,
        locks=dispatcher.locks,
    )
