"""Pydantic models for the WhatsApp relay: HTTP bodies, relay envelope and session events."""

from enum import Enum
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from constants import RELAY_ACTION_PROCESS_MESSAGE


# =============================================================================
# HTTP REQUEST MODELS
# =============================================================================

class SendRequest(BaseModel):
    """Body of POST /send.

    Fields are optional at the schema level so the connection precondition
    is reported before missing fields.
    """
    phone: Optional[str] = None
    message: Optional[str] = None


class BulkSendRequest(BaseModel):
    """Body of POST /send-bulk."""
    recipients: Optional[Any] = None
    message: Optional[str] = None


class BulkSendResult(BaseModel):
    """Outcome of one recipient in a bulk send."""
    phone: str
    success: bool
    error: Optional[str] = None


# =============================================================================
# RELAY ENVELOPE
# =============================================================================

class RelayPayload(BaseModel):
    """Request sent to the external processing endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    action: str = RELAY_ACTION_PROCESS_MESSAGE
    sender: str = Field(alias="from")
    message: str


# =============================================================================
# SESSION CLIENT MODELS
# =============================================================================

class SessionEventType(str, Enum):
    """Lifecycle events emitted by the WhatsApp session client."""
    QR = "qr"
    AUTHENTICATED = "authenticated"
    READY = "ready"
    AUTH_FAILURE = "auth_failure"
    MESSAGE = "message"
    DISCONNECTED = "disconnected"


class InboundMessage(BaseModel):
    """A message received by the linked WhatsApp account."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    sender: str = Field(alias="from")
    body: str = ""


class SessionEvent(BaseModel):
    """One event from the session client, dispatched by SessionEventHandler."""
    type: SessionEventType
    qr: Optional[str] = None
    reason: Optional[str] = None
    message: Optional[InboundMessage] = None


class ClientInfo(BaseModel):
    """Identity of the linked WhatsApp account."""
    pushname: Optional[str] = None
    wid: str
    platform: Optional[str] = None
