from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.logging_config import get_logger
from app.routers.dependencies import get_message_store, get_operator_actions, get_thread_store
from app.schemas.crm import (
    ConversationRequest,
    MessageItem,
    MessageListResponse,
    OperatorActionResponse,
    SendMessageRequest,
    ThreadItem,
    ThreadListResponse,
)
from app.services.conversation_service import Outcome
from app.services.message_store import MessageStore
from app.services.operator_service import OperatorActions, ThreadUnavailableError
from app.services.state_machine import UnknownConversationError
from app.services.thread_store import ThreadStore

logger = get_logger("crm")

router = APIRouter()

ACTION_MESSAGES = {
    "join": "Representative joined the conversation",
    "leave": "Conversation returned to bot",
    "send_message": "Message sent",
}


def _to_response(outcome: Outcome) -> OperatorActionResponse:
    return OperatorActionResponse(
        success=True,
        conversationId=outcome.conversation_id,
        action=outcome.action,
        old_state=outcome.previous_state.value if outcome.previous_state else None,
        new_state=outcome.state.value if outcome.state else None,
        message=ACTION_MESSAGES.get(outcome.action),
    )


def _not_found(e: UnknownConversationError) -> HTTPException:
    logger.warning(f"Operator action on unknown conversation {e.conversation_id}")
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _unavailable(e: ThreadUnavailableError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("/retrieveThreads", response_model=ThreadListResponse)
def retrieve_threads(thread_store: ThreadStore = Depends(get_thread_store)):
    """All threads, most recently updated first."""
    return ThreadListResponse(threads=[ThreadItem.from_record(thread) for thread in thread_store.list()])


@router.get("/retrieveMessages", response_model=MessageListResponse)
def retrieve_messages(
    conversation_id: str = Query(alias="conversationId", min_length=1),
    message_store: MessageStore = Depends(get_message_store),
):
    messages = message_store.list_by_conversation(conversation_id)
    return MessageListResponse(messages=[MessageItem.from_record(message) for message in messages])


@router.post("/joinConversation", response_model=OperatorActionResponse)
async def join_conversation(request: ConversationRequest, actions: OperatorActions = Depends(get_operator_actions)):
    try:
        outcome = await actions.join(request.conversationId)
    except UnknownConversationError as e:
        raise _not_found(e)
    except ThreadUnavailableError as e:
        raise _unavailable(e)
    return _to_response(outcome)


@router.post("/leaveConversation", response_model=OperatorActionResponse)
async def leave_conversation(request: ConversationRequest, actions: OperatorActions = Depends(get_operator_actions)):
    try:
        outcome = await actions.leave(request.conversationId)
    except UnknownConversationError as e:
        raise _not_found(e)
    except ThreadUnavailableError as e:
        raise _unavailable(e)
    return _to_response(outcome)


@router.post("/sendMessage", response_model=OperatorActionResponse)
async def send_message(request: SendMessageRequest, actions: OperatorActions = Depends(get_operator_actions)):
    try:
        outcome = await actions.send_message(request.conversationId, request.message)
    except UnknownConversationError as e:
        raise _not_found(e)
    except ThreadUnavailableError as e:
        raise _unavailable(e)
    return _to_response(outcome)
