from datetime import datetime, timezone

import pytest

from app.schemas.webhook import EventKind, InboundEvent
from app.services.records import ThreadRecord
from app.services.responder import EchoResponder
from app.services.state_machine import (
    RepresentativeEvent,
    RepresentativeType,
    SaveThread,
    SendEvent,
    SendMessage,
    SetThreadState,
    StoreMessage,
    ThreadState,
    Trigger,
    UnknownConversationError,
    UserType,
    bot_owns,
    current_state,
    kind_to_trigger,
    next_state,
    plan_inbound_message,
    plan_join,
    plan_leave,
    plan_live_agent_request,
    plan_operator_message,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _event(kind=EventKind.MESSAGE, text="Hi"):
    return InboundEvent(
        kind=kind,
        conversation_id="c1",
        request_id="m1",
        agent="brands/b1/agents/a1",
        brand_id="b1",
        display_name="Alice",
        text=text,
    )


def _thread(state=ThreadState.BOT):
    return ThreadRecord(conversation_id="c1", state=state.value, display_name="Alice", brand_id="b1")


def _inbound_plan(thread):
    return plan_inbound_message(
        _event(), thread, responder=EchoResponder(), reply_id="r1", business_name="Acme", now=NOW
    )


class TestNextState:
    @pytest.mark.parametrize("state", list(ThreadState))
    def test_live_agent_request_queues_from_any_state(self, state):
        assert next_state(state, Trigger.LIVE_AGENT_REQUEST) == ThreadState.QUEUED

    @pytest.mark.parametrize("state", list(ThreadState))
    def test_join_from_any_state(self, state):
        assert next_state(state, Trigger.OPERATOR_JOIN) == ThreadState.LIVE_AGENT

    @pytest.mark.parametrize("state", list(ThreadState))
    def test_leave_from_any_state(self, state):
        assert next_state(state, Trigger.OPERATOR_LEAVE) == ThreadState.BOT

    @pytest.mark.parametrize("state", list(ThreadState))
    def test_inbound_message_keeps_owner(self, state):
        assert next_state(state, Trigger.INBOUND_MESSAGE) == state

    def test_missing_thread_starts_with_bot(self):
        assert current_state(None) == ThreadState.BOT

    def test_stored_state_value(self):
        assert current_state(_thread(ThreadState.LIVE_AGENT)) == ThreadState.LIVE_AGENT
        assert ThreadState.LIVE_AGENT.value == "Live Agent"

    def test_only_bot_state_owns_replies(self):
        assert bot_owns(ThreadState.BOT) is True
        assert bot_owns(ThreadState.QUEUED) is False
        assert bot_owns(ThreadState.LIVE_AGENT) is False


class TestPlanInboundMessage:
    def test_new_conversation_creates_bot_thread(self):
        plan = _inbound_plan(None)

        save = plan.effects[0]
        assert isinstance(save, SaveThread)
        assert save.thread.state == "Bot"
        assert save.thread.brand_id == "b1"
        assert save.thread.display_name == "Alice"
        assert save.thread.last_message_text == "Hi"
        assert plan.previous_state is None
        assert plan.next_state == ThreadState.BOT

    def test_user_message_is_stored(self):
        plan = _inbound_plan(None)

        store = plan.effects[1]
        assert isinstance(store, StoreMessage)
        assert store.message.message_id == "m1"
        assert store.message.user_type == UserType.USER.value
        assert store.message.display_name == "Alice"

    def test_bot_replies_when_it_owns_the_thread(self):
        plan = _inbound_plan(_thread(ThreadState.BOT))

        assert len(plan.replies) == 1
        reply = plan.replies[0]
        assert reply.text == "Hi"
        assert reply.message_id == "r1"
        assert reply.representative == RepresentativeType.BOT

        stored = [effect.message for effect in plan.effects if isinstance(effect, StoreMessage)]
        assert [message.user_type for message in stored] == ["User", "CRM"]
        assert stored[1].display_name == "Acme"

    def test_reply_is_persisted_before_it_is_sent(self):
        plan = _inbound_plan(_thread(ThreadState.BOT))

        kinds = [type(effect) for effect in plan.effects]
        assert kinds.index(StoreMessage, 2) < kinds.index(SendMessage)

    @pytest.mark.parametrize("state", [ThreadState.QUEUED, ThreadState.LIVE_AGENT])
    def test_no_reply_when_bot_does_not_own_the_thread(self, state):
        plan = _inbound_plan(_thread(state))

        assert plan.replies == []
        assert len([effect for effect in plan.effects if isinstance(effect, StoreMessage)]) == 1
        assert plan.next_state == state

    def test_existing_thread_state_is_not_overwritten(self):
        plan = _inbound_plan(_thread(ThreadState.LIVE_AGENT))

        assert plan.effects[0].thread.state is None

    def test_suggestion_response_is_a_message(self):
        event = _event(kind=EventKind.SUGGESTION_RESPONSE, text="Yes")
        plan = plan_inbound_message(
            event, None, responder=EchoResponder(), reply_id="r1", business_name="Acme", now=NOW
        )

        assert plan.replies[0].text == "Yes"

    def test_non_text_event_is_rejected(self):
        with pytest.raises(ValueError):
            plan_inbound_message(
                _event(kind=EventKind.LIVE_AGENT_REQUEST, text=None),
                None,
                responder=EchoResponder(),
                reply_id="r1",
                business_name="Acme",
                now=NOW,
            )


class TestPlanLiveAgentRequest:
    def test_queues_thread_without_messages(self):
        plan = plan_live_agent_request("c1", _thread(ThreadState.BOT))

        assert plan.next_state == ThreadState.QUEUED
        assert plan.effects == [SetThreadState("c1", ThreadState.QUEUED)]

    def test_unknown_conversation(self):
        with pytest.raises(UnknownConversationError) as exc:
            plan_live_agent_request("missing", None)
        assert exc.value.conversation_id == "missing"


class TestPlanOperatorActions:
    def test_join(self):
        plan = plan_join("c1", _thread(ThreadState.QUEUED))

        assert plan.previous_state == ThreadState.QUEUED
        assert plan.next_state == ThreadState.LIVE_AGENT
        assert plan.effects == [
            SetThreadState("c1", ThreadState.LIVE_AGENT),
            SendEvent("c1", RepresentativeEvent.JOINED, RepresentativeType.HUMAN),
        ]

    def test_join_unknown_conversation(self):
        with pytest.raises(UnknownConversationError):
            plan_join("missing", None)

    def test_leave_sends_handoff_message_as_bot(self):
        plan = plan_leave(
            "c1",
            _thread(ThreadState.LIVE_AGENT),
            handoff_text="Back to bot",
            message_id="h1",
            business_name="Acme",
            now=NOW,
        )

        assert plan.next_state == ThreadState.BOT
        assert plan.effects[0] == SetThreadState("c1", ThreadState.BOT)
        assert plan.effects[1] == SendEvent("c1", RepresentativeEvent.LEFT, RepresentativeType.HUMAN)
        assert plan.replies == [SendMessage("c1", "h1", "Back to bot", RepresentativeType.BOT)]
        stored = [effect.message for effect in plan.effects if isinstance(effect, StoreMessage)]
        assert len(stored) == 1
        assert stored[0].user_type == "CRM"

    def test_leave_unknown_conversation(self):
        with pytest.raises(UnknownConversationError):
            plan_leave("missing", None, handoff_text="x", message_id="h1", business_name="Acme", now=NOW)

    def test_operator_message_keeps_state(self):
        plan = plan_operator_message(
            "c1", _thread(ThreadState.LIVE_AGENT), "Hello from Bob", message_id="o1", business_name="Acme", now=NOW
        )

        assert plan.next_state == ThreadState.LIVE_AGENT
        assert plan.replies == [SendMessage("c1", "o1", "Hello from Bob", RepresentativeType.HUMAN)]
        assert not any(isinstance(effect, SetThreadState) for effect in plan.effects)


class TestKindToTrigger:
    def test_mapping(self):
        assert kind_to_trigger(EventKind.MESSAGE) == Trigger.INBOUND_MESSAGE
        assert kind_to_trigger(EventKind.SUGGESTION_RESPONSE) == Trigger.INBOUND_MESSAGE
        assert kind_to_trigger(EventKind.LIVE_AGENT_REQUEST) == Trigger.LIVE_AGENT_REQUEST
        assert kind_to_trigger(EventKind.UNRECOGNIZED) is None
