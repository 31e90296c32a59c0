"""WhatsApp connection routes: status, pairing QR, account info and logout."""

from datetime import datetime, timezone
from html import escape

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from constants import CONNECT_REFRESH_SECONDS, ENDPOINTS
from core.container import container
from core.logging import get_logger
from services.connection_state import ConnectionState
from services.exceptions import NotConnectedError
from services.session_client import SessionClient

logger = get_logger(__name__)
router = APIRouter(tags=["whatsapp-connection"])

_AUTO_REFRESH = (
    "<script>setTimeout(() => location.reload(), "
    f"{CONNECT_REFRESH_SECONDS * 1000});</script>"
)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/", response_class=HTMLResponse)
async def home():
    """Landing page listing the available endpoints."""
    items = "\n".join(
        f'<li><code>{method}</code> <a href="{path}">{path}</a> - {escape(description)}</li>'
        for method, path, description in ENDPOINTS
    )
    return f"""
    <h2>WhatsApp Automation Server</h2>
    <p>Server is running.</p>
    <ul>
    {items}
    </ul>
    """


@router.get("/status")
async def status(state: ConnectionState = Depends(lambda: container.connection_state())):
    """WhatsApp connection status."""
    ready, image = state.snapshot()
    return {
        "connected": ready,
        "qrAvailable": bool(image),
        "timestamp": utc_timestamp()
    }


@router.get("/qr")
async def qr(state: ConnectionState = Depends(lambda: container.connection_state())):
    """Pairing QR code as a PNG data URL, for dashboards."""
    ready, image = state.snapshot()
    if ready:
        return {
            "connected": True,
            "qrCode": None,
            "message": "WhatsApp is already connected"
        }
    if image:
        return {
            "connected": False,
            "qrCode": image,
            "message": "Scan this QR code to connect"
        }
    return {
        "connected": False,
        "qrCode": None,
        "message": "Generating QR code... Please wait."
    }


@router.get("/connect", response_class=HTMLResponse)
async def connect_page(state: ConnectionState = Depends(lambda: container.connection_state())):
    """Browser page for scanning the pairing QR code. Reloads itself until connected."""
    ready, image = state.snapshot()
    if ready:
        return """
        <h3>WhatsApp already connected!</h3>
        <p>Your WhatsApp client is active.</p>
        <a href="/">Back to home</a>
        """
    if image:
        return f"""
        <h2>Scan this QR Code to connect WhatsApp</h2>
        <img src="{escape(image)}" width="300" />
        <p>Open WhatsApp &rarr; Linked Devices &rarr; Scan this QR</p>
        {_AUTO_REFRESH}
        """
    return f"""
    <h3>Generating QR code... Please wait and refresh.</h3>
    {_AUTO_REFRESH}
    """


@router.post("/logout")
async def logout(
    state: ConnectionState = Depends(lambda: container.connection_state()),
    session: SessionClient = Depends(lambda: container.session_client())
):
    """Unlink the WhatsApp device and clear the connection state."""
    if not state.is_ready():
        raise NotConnectedError()

    await session.logout()
    state.set_disconnected()
    logger.info("[WhatsApp] Logged out")
    return {"success": True, "message": "Logged out successfully"}


@router.get("/info")
async def info(
    state: ConnectionState = Depends(lambda: container.connection_state()),
    session: SessionClient = Depends(lambda: container.session_client())
):
    """Identity of the linked WhatsApp account."""
    if not state.is_ready():
        raise NotConnectedError()

    client_info = await session.get_info()
    return {
        "success": True,
        "info": client_info.model_dump()
    }
