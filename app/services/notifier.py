import uuid
from typing import Optional, Protocol

import httpx

from app.logging_config import get_logger
from app.services.result import NOTIFY_ERROR, Result
from app.services.state_machine import RepresentativeEvent, RepresentativeType

logger = get_logger("notifier")

TYPING_STARTED = "TYPING_STARTED"
TYPING_STOPPED = "TYPING_STOPPED"


class Notifier(Protocol):
    async def send_typing(
        self, conversation_id: str, started: bool, representative: RepresentativeType
    ) -> Result[dict]: ...

    async def send_message(
        self, conversation_id: str, message_id: str, text: str, representative: RepresentativeType
    ) -> Result[dict]: ...

    async def send_event(
        self, conversation_id: str, event_type: RepresentativeEvent, representative: RepresentativeType
    ) -> Result[dict]: ...


def build_representative(representative: RepresentativeType, display_name: str) -> dict:
    return {"representativeType": representative.value, "displayName": display_name}


def build_message_payload(message_id: str, text: str, representative: dict) -> dict:
    """Text message that always offers the live agent suggestion chip."""
    return {
        "messageId": message_id,
        "representative": representative,
        "text": text,
        "containsRichText": True,
        "fallback": text,
        "suggestions": [{"liveAgentRequest": {}}],
    }


class BusinessMessagesNotifier:
    """Sends events and messages to the Business Messages conversations API."""

    def __init__(
        self,
        api_base: str,
        token: str,
        business_name: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.token = token
        self.business_name = business_name
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _post(self, path: str, payload: dict, params: Optional[dict] = None) -> Result[dict]:
        url = f"{self.api_base}/{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, params=params, headers=self._headers())
        except Exception as e:
            logger.error(f"Business Messages request failed: {e}", extra={"context": {"url": url}})
            return Result.failure(str(e), NOTIFY_ERROR)

        if response.status_code >= 400:
            logger.warning(
                f"Business Messages returned {response.status_code}",
                extra={"context": {"url": url, "body": response.text[:200]}},
            )
            return Result.failure(f"HTTP {response.status_code}", NOTIFY_ERROR)

        try:
            return Result.success(response.json())
        except ValueError:
            return Result.success({})

    async def send_event(
        self,
        conversation_id: str,
        event_type: RepresentativeEvent,
        representative: RepresentativeType = RepresentativeType.HUMAN,
    ) -> Result[dict]:
        return await self._send_event(conversation_id, event_type.value, representative)

    async def send_typing(
        self,
        conversation_id: str,
        started: bool,
        representative: RepresentativeType = RepresentativeType.BOT,
    ) -> Result[dict]:
        event_type = TYPING_STARTED if started else TYPING_STOPPED
        return await self._send_event(conversation_id, event_type, representative)

    async def _send_event(self, conversation_id: str, event_type: str, representative: RepresentativeType) -> Result[dict]:
        payload = {
            "eventType": event_type,
            "representative": build_representative(representative, self.business_name),
        }
        return await self._post(
            f"conversations/{conversation_id}/events",
            payload,
            params={"eventId": str(uuid.uuid4())},
        )

    async def send_message(
        self,
        conversation_id: str,
        message_id: str,
        text: str,
        representative: RepresentativeType = RepresentativeType.BOT,
    ) -> Result[dict]:
        payload = build_message_payload(
            message_id, text, build_representative(representative, self.business_name)
        )
        return await self._post(f"conversations/{conversation_id}/messages", payload)


async def send_with_typing(
    notifier: Notifier,
    conversation_id: str,
    message_id: str,
    text: str,
    representative: RepresentativeType,
) -> list[Result[dict]]:
    """Typing started, message, typing stopped, strictly in sequence.

    Every step is attempted even if an earlier one failed.
    """
    started = await notifier.send_typing(conversation_id, True, representative)
    sent = await notifier.send_message(conversation_id, message_id, text, representative)
    stopped = await notifier.send_typing(conversation_id, False, representative)
    return [started, sent, stopped]
