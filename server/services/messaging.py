"""Outbound messaging: phone normalization, single and bulk sends."""

import asyncio
import json
import re
import time
from typing import Any, List, Optional

from constants import CHAT_ID_SUFFIX, DOMESTIC_NUMBER_LENGTH
from core.config import Settings
from core.logging import get_logger, log_execution_time
from models.whatsapp import BulkSendResult
from services.connection_state import ConnectionState
from services.exceptions import NotConnectedError, SessionCommandError

logger = get_logger(__name__)

_NON_DIGITS = re.compile(r"[^0-9]")
INVALID_RECIPIENT = "Invalid phone number"


def _is_phone_value(value: Any) -> bool:
    # bool is an int subclass but never a phone number
    return isinstance(value, (str, int)) and not isinstance(value, bool)


def normalize_phone(phone: str, country_code: str = "91") -> str:
    """Digits only; a bare 10-digit domestic number gets the country code prefixed.

    Numbers of any other length pass through unchanged.
    """
    digits = _NON_DIGITS.sub("", phone)
    if len(digits) == DOMESTIC_NUMBER_LENGTH and not digits.startswith(country_code):
        digits = country_code + digits
    return digits


def to_chat_id(phone: str, country_code: str = "91") -> str:
    """Canonical chat id the session client sends to."""
    return normalize_phone(phone, country_code) + CHAT_ID_SUFFIX


class MessagingService:
    """Sends messages through the shared session client."""

    def __init__(self, settings: Settings, session, state: ConnectionState):
        self._session = session
        self._state = state
        self._country_code = settings.country_code
        self._bulk_delay = settings.bulk_send_delay

    def ensure_ready(self, message: Optional[str] = None) -> None:
        if not self._state.is_ready():
            raise NotConnectedError(message) if message else NotConnectedError()

    async def send(self, phone: str, message: str) -> str:
        """Send one message. Returns the chat id it was addressed to."""
        chat_id = to_chat_id(phone, self._country_code)
        logger.info("[WhatsApp] Sending message", to=chat_id)
        await self._session.send_message(chat_id, message)
        return chat_id

    async def send_bulk(self, recipients: List[Any], message: str) -> List[BulkSendResult]:
        """Send the same message to each recipient in order, pausing between sends.

        A failed recipient is recorded and the loop moves on. Recipients that
        are not strings or integers fail without reaching the session.
        """
        results: List[BulkSendResult] = []
        start = time.time()

        attempts = 0
        for recipient in recipients:
            if not _is_phone_value(recipient):
                phone = json.dumps(recipient, default=str)
                logger.error("[WhatsApp] Bulk send skipped invalid recipient", phone=phone)
                results.append(BulkSendResult(phone=phone, success=False, error=INVALID_RECIPIENT))
                continue

            if attempts and self._bulk_delay:
                await asyncio.sleep(self._bulk_delay)
            attempts += 1

            phone = str(recipient)
            error: Optional[str] = None
            try:
                await self.send(phone, message)
            except SessionCommandError as e:
                error = str(e)

            if error is None:
                logger.info("[WhatsApp] Bulk send ok", phone=phone)
                results.append(BulkSendResult(phone=phone, success=True))
            else:
                logger.error("[WhatsApp] Bulk send failed", phone=phone, error=error)
                results.append(BulkSendResult(phone=phone, success=False, error=error))

        log_execution_time(
            logger, "send_bulk", start, time.time(),
            recipients=len(recipients),
            failed=sum(1 for r in results if not r.success),
        )
        return results
