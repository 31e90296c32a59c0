"""Inbound message relay to the external processing endpoint.

Every message received by the linked account is POSTed to the relay URL as
``{"action": "processMessage", "from": <phone>, "message": <text>}``. If the
endpoint answers with a JSON object carrying a non-empty ``reply``, that text
is sent back to the sender. Failures are logged and dropped: no retries.
"""

from typing import Optional

import httpx

from core.config import Settings
from core.logging import get_logger
from models.whatsapp import InboundMessage, RelayPayload
from services.exceptions import SessionCommandError

logger = get_logger(__name__)


def sender_phone(sender_id: str) -> str:
    """Strip the transport suffix ("@c.us", "@s.whatsapp.net", ...) from a sender id."""
    return sender_id.split("@", 1)[0]


class MessageRelay:
    """Forwards inbound messages and sends back the endpoint's reply."""

    def __init__(self, settings: Settings, session,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self._url = settings.relay_url
        self._timeout = settings.relay_timeout
        self._session = session
        self._transport = transport

    async def fetch_reply(self, payload: RelayPayload) -> Optional[str]:
        """POST the payload and return the reply text, or None when there is none."""
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as http:
            resp = await http.post(self._url, json=payload.model_dump(by_alias=True))
        result = resp.json()
        if not isinstance(result, dict):
            return None
        reply = result.get("reply")
        if isinstance(reply, str) and reply:
            return reply
        return None

    async def handle_message(self, message: InboundMessage) -> None:
        """Relay one inbound message. Never raises."""
        phone = sender_phone(message.sender)
        text = message.body.strip()
        logger.info("[Relay] Message received", sender=phone, length=len(text))

        if not self._url:
            logger.warning("[Relay] RELAY_URL not configured, message not forwarded", sender=phone)
            return

        try:
            reply = await self.fetch_reply(RelayPayload(sender=phone, message=text))
        except (httpx.HTTPError, ValueError) as e:
            # ValueError covers non-JSON bodies (json.JSONDecodeError)
            logger.error("[Relay] Processing endpoint call failed", sender=phone,
                         error=f"{type(e).__name__}: {e}")
            return

        if reply is None:
            logger.info("[Relay] No reply needed", sender=phone)
            return

        try:
            await self._session.send_message(message.sender, reply, quoted_message_id=message.id)
            logger.info("[Relay] Reply sent", sender=phone, length=len(reply))
        except SessionCommandError as e:
            logger.error("[Relay] Failed to send reply", sender=phone, error=str(e))
