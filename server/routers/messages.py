"""Outbound WhatsApp message routes."""

from fastapi import APIRouter, Depends

from core.container import container
from core.logging import get_logger
from models.whatsapp import BulkSendRequest, SendRequest
from services.exceptions import InvalidRequestError
from services.messaging import MessagingService

logger = get_logger(__name__)
router = APIRouter(tags=["whatsapp-messages"])


@router.post("/send")
async def send_message(
    request: SendRequest,
    messaging: MessagingService = Depends(lambda: container.messaging_service())
):
    """Send a single text message.

    Example: {"phone": "9876543210", "message": "Hello"}
    """
    messaging.ensure_ready("WhatsApp is not connected. Please scan QR code first.")

    if not request.phone or not request.message:
        raise InvalidRequestError("Phone and message are required")

    chat_id = await messaging.send(request.phone, request.message)
    return {
        "success": True,
        "message": "Message sent successfully",
        "to": chat_id
    }


@router.post("/send-bulk")
async def send_bulk(
    request: BulkSendRequest,
    messaging: MessagingService = Depends(lambda: container.messaging_service())
):
    """Send the same message to several recipients, one at a time.

    Example: {"recipients": ["9876543210", "9123456780"], "message": "Hello"}
    """
    messaging.ensure_ready()

    recipients = request.recipients
    if not isinstance(recipients, list) or not recipients or not request.message:
        raise InvalidRequestError("Recipients array and message are required")

    logger.info("[WhatsApp] Bulk send started", recipients=len(recipients))
    results = await messaging.send_bulk(recipients, request.message)

    sent = sum(1 for r in results if r.success)
    return {
        "success": True,
        "results": [r.model_dump(exclude_none=True) for r in results],
        "sent": sent,
        "failed": len(results) - sent
    }
