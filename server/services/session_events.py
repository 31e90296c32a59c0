"""Session lifecycle event dispatch.

Maps each SessionEvent to its effect on ConnectionState or to the relay:

- qr: render the pairing code, store it as the pending pairing image
- authenticated: log only
- ready: mark ready, clear pairing image
- auth_failure: mark not ready, keep pairing image
- message: relay to the processing endpoint
- disconnected: mark not ready, clear pairing image
"""

from core.logging import get_logger
from models.whatsapp import SessionEvent, SessionEventType
from services.connection_state import ConnectionState
from services.qr import qr_code_to_data_url
from services.relay import MessageRelay

logger = get_logger(__name__)


class SessionEventHandler:
    """Single entry point for all session client events."""

    def __init__(self, state: ConnectionState, relay: MessageRelay):
        self._state = state
        self._relay = relay

    async def handle(self, event: SessionEvent) -> None:
        event_type = event.type

        if event_type == SessionEventType.QR:
            logger.info("[WhatsApp] QR code received, generating image")
            if not event.qr:
                logger.warning("[WhatsApp] QR event without code")
                return
            try:
                image = qr_code_to_data_url(event.qr)
            except (ValueError, OSError) as e:
                logger.error("[WhatsApp] QR code rendering failed", error=str(e))
                return
            self._state.set_pairing(image)

        elif event_type == SessionEventType.AUTHENTICATED:
            logger.info("[WhatsApp] Authenticated")

        elif event_type == SessionEventType.READY:
            self._state.set_ready()

        elif event_type == SessionEventType.AUTH_FAILURE:
            logger.error("[WhatsApp] Authentication failed", reason=event.reason)
            self._state.set_auth_failed()

        elif event_type == SessionEventType.MESSAGE:
            if event.message is None:
                logger.warning("[WhatsApp] Message event without payload")
                return
            await self._relay.handle_message(event.message)

        elif event_type == SessionEventType.DISCONNECTED:
            logger.warning("[WhatsApp] Disconnected", reason=event.reason)
            self._state.set_disconnected()
