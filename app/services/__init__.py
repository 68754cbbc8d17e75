from app.services.state_machine import (
    Plan,
    RepresentativeEvent,
    RepresentativeType,
    ThreadState,
    Trigger,
    UnknownConversationError,
    UserType,
    next_state,
    plan_inbound_message,
    plan_join,
    plan_leave,
    plan_live_agent_request,
    plan_operator_message,
)
