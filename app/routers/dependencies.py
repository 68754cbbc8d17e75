"""Composition root: the only place stores, notifier and locks are built."""

from functools import lru_cache

from fastapi import Depends

from app.config import settings
from app.database import SessionLocal
from app.services.conversation_lock import ConversationLocks
from app.services.dispatcher import WebhookDispatcher
from app.services.message_store import InMemoryMessageStore, MessageStore, SqlMessageStore
from app.services.notifier import BusinessMessagesNotifier, Notifier
from app.services.operator_service import OperatorActions
from app.services.responder import EchoResponder
from app.services.state_machine import Responder
from app.services.thread_store import InMemoryThreadStore, SqlThreadStore, ThreadStore


@lru_cache
def get_thread_store() -> ThreadStore:
    if settings.store_backend == "memory":
        return InMemoryThreadStore()
    return SqlThreadStore(SessionLocal)


@lru_cache
def get_message_store() -> MessageStore:
    if settings.store_backend == "memory":
        return InMemoryMessageStore()
    return SqlMessageStore(SessionLocal)


@lru_cache
def get_notifier() -> Notifier:
    return BusinessMessagesNotifier(
        api_base=settings.messaging_api_base,
        token=settings.messaging_api_token,
        business_name=settings.business_name,
        timeout=settings.messaging_timeout_seconds,
    )


@lru_cache
def get_locks() -> ConversationLocks:
    return ConversationLocks()


def get_responder() -> Responder:
    return EchoResponder()


def get_dispatcher(
    thread_store: ThreadStore = Depends(get_thread_store),
    message_store: MessageStore = Depends(get_message_store),
    notifier: Notifier = Depends(get_notifier),
    responder: Responder = Depends(get_responder),
    locks: ConversationLocks = Depends(get_locks),
) -> WebhookDispatcher:
    return WebhookDispatcher(
        thread_store,
        message_store,
        notifier,
        responder,
        business_name=settings.business_name,
        locks=locks,
    )


def get_operator_actions(
    thread_store: ThreadStore = Depends(get_thread_store),
    message_store: MessageStore = Depends(get_message_store),
    notifier: Notifier = Depends(get_notifier),
    locks: ConversationLocks = Depends(get_locks),
) -> OperatorActions:
    return OperatorActions(
        thread_store,
        message_store,
        notifier,
        business_name=settings.business_name,
        handoff_message=settings.bot_handoff_message,
        locks=locks,
    )
