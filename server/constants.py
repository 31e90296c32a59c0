"""Centralized constants for the WhatsApp relay server.

Single source of truth for wire-level names shared by the session bridge
client, the relay and the HTTP routes.
"""

from typing import Dict, FrozenSet

# =============================================================================
# WHATSAPP IDENTIFIERS
# =============================================================================

# Suffix the session client uses for individual (non-group) chats
CHAT_ID_SUFFIX = "@c.us"

# Domestic numbers are exactly this many digits before the country code
DOMESTIC_NUMBER_LENGTH = 10

# =============================================================================
# RELAY
# =============================================================================

RELAY_ACTION_PROCESS_MESSAGE = "processMessage"

# =============================================================================
# SESSION BRIDGE EVENTS
# =============================================================================

# Bridge notification method -> SessionEventType value
BRIDGE_EVENT_TYPES: Dict[str, str] = {
    "event.qr": "qr",
    "event.authenticated": "authenticated",
    "event.ready": "ready",
    "event.auth_failure": "auth_failure",
    "event.message": "message",
    "event.disconnected": "disconnected",
}

# RPC methods accepted by the bridge
BRIDGE_COMMANDS: FrozenSet[str] = frozenset([
    "initialize",
    "send_message",
    "logout",
    "info",
    "destroy",
])

# =============================================================================
# HTTP SURFACE
# =============================================================================

# (method, path, description) - listed on the home page and at startup
ENDPOINTS = (
    ("GET", "/", "Home"),
    ("GET", "/health", "Health check"),
    ("GET", "/status", "WhatsApp connection status"),
    ("GET", "/qr", "Get QR code (JSON)"),
    ("GET", "/connect", "View QR code in browser"),
    ("POST", "/send", "Send single message"),
    ("POST", "/send-bulk", "Send bulk messages"),
    ("GET", "/info", "Get client info"),
    ("POST", "/logout", "Disconnect WhatsApp"),
)

CONNECT_REFRESH_SECONDS = 2
