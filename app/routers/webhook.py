import json
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from app.logging_config import get_logger
from app.routers.dependencies import get_dispatcher
from app.schemas.webhook import InboundEvent, InvalidEventError, WebhookResponse, decode_event
from app.services.dispatcher import WebhookDispatcher

logger = get_logger("webhook")

router = APIRouter()


async def parse_webhook_body(request: Request) -> Optional[Any]:
    """
    Parse webhook body with tolerant decoding to avoid utf-8 crashes.
    Returns decoded JSON or None.
    """
    try:
        return await request.json()
    except Exception as e:
        logger.warning(f"Standard request.json() failed: {e}, fallback decoding")

    raw = await request.body()
    for enc in ("utf-8", "latin-1"):
        try:
            return json.loads(raw.decode(enc, errors="replace"))
        except ValueError:
            continue

    logger.error("Failed to decode webhook payload after fallbacks")
    return None


async def process_event(dispatcher: WebhookDispatcher, event: InboundEvent) -> None:
    """Background task for one event. Nothing raised here reaches other events."""
    try:
        outcome = await dispatcher.dispatch(event)
        logger.info(
            f"Webhook event processed for conversation {event.conversation_id}",
            extra={
                "context": {
                    "request_id": event.request_id,
                    "kind": event.kind.value,
                    "state": outcome.state.value if outcome.state else None,
                    "stored_messages": outcome.stored_messages,
                    "sent_messages": outcome.sent_messages,
                    "failures": len(outcome.failures),
                }
            },
        )
    except Exception as e:
        logger.error(
            f"Webhook event processing failed: {e}",
            exc_info=True,
            extra={"context": {"conversation_id": event.conversation_id, "request_id": event.request_id}},
        )


@router.post("/callback", response_model=WebhookResponse)
async def handle_callback(
    request: Request,
    background_tasks: BackgroundTasks,
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
):
    """
    Business Messages webhook.
    Always acknowledged; accepted events are processed after the response.
    """
    body = await parse_webhook_body(request)

    try:
        event = decode_event(body)
    except InvalidEventError as e:
        logger.warning(f"Malformed webhook event ignored: {e.message}")
        return WebhookResponse(success=True, message="Ignored")

    logger.debug(f"Webhook received: {event}")
    background_tasks.add_task(process_event, dispatcher, event)
    return WebhookResponse(success=True, message="Accepted")
