"""Process-wide WhatsApp connection state.

Holds whether the session is ready and the pending pairing QR image. Written
by session event handlers, read by the HTTP routes.
"""

import threading
from typing import Optional, Tuple

from core.logging import get_logger

logger = get_logger(__name__)


class ConnectionState:
    """Ready flag plus pairing image, updated atomically as a pair."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ready: bool = False
        self._pairing_image: Optional[str] = None

    def set_pairing(self, image: str) -> None:
        """Store a new pairing QR image. The session is not ready while pairing."""
        with self._lock:
            self._ready = False
            self._pairing_image = image
        logger.info("[WhatsApp] Pairing QR code stored")

    def set_ready(self) -> None:
        with self._lock:
            self._ready = True
            self._pairing_image = None
        logger.info("[WhatsApp] Session ready")

    def set_disconnected(self) -> None:
        with self._lock:
            self._ready = False
            self._pairing_image = None
        logger.info("[WhatsApp] Session state cleared")

    def set_auth_failed(self) -> None:
        """Authentication failed: not ready, pairing image left untouched."""
        with self._lock:
            self._ready = False

    def is_ready(self) -> bool:
        with self._lock:
            return self._ready

    def pairing_image(self) -> Optional[str]:
        with self._lock:
            return self._pairing_image

    def snapshot(self) -> Tuple[bool, Optional[str]]:
        """Return (ready, pairing_image) read under a single lock acquisition."""
        with self._lock:
            return self._ready, self._pairing_image
