from fastapi import APIRouter, Depends, Request
import logging

from barbershop.api.deps import get_inbound_enqueuer
from barbershop.core.phone import mask_phone

logger = logging.getLogger(__name__)

router = APIRouter()


async def _extract_message(request: Request) -> tuple[str, str]:
    """Pull (from, body) out of the gateway's webhook formats.

    The gateway posts ``{"event": "sms:received", "payload": {...}}``; flat
    JSON and form posts are accepted too.
    """
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        data = await request.json()
        if not isinstance(data, dict):
            return "", ""
        if data.get("event") == "sms:received" and isinstance(data.get("payload"), dict):
            inner = data["payload"]
            return inner.get("phoneNumber") or "", (inner.get("message") or "").strip()
        sender = data.get("from") or data.get("phone") or data.get("phoneNumber") or ""
        return sender, (data.get("body") or data.get("message") or "").strip()

    form = await request.form()
    sender = form.get("from") or form.get("phone") or ""
    body = form.get("body") or form.get("message") or ""
    return str(sender), str(body).strip()


@router.post("/webhook")
async def inbound_sms_webhook(request: Request, enqueue=Depends(get_inbound_enqueuer)):
    """Acknowledge every delivery; processing happens in the background"""
    try:
        sender, body = await _extract_message(request)
    except Exception as e:
        logger.warning(f"Unreadable SMS webhook payload: {e}")
        return {"received": True}

    if not sender or not body:
        logger.warning("SMS webhook without sender or body")
        return {"received": True}

    logger.info(f"Inbound SMS from {mask_phone(sender)}")
    try:
        enqueue(sender, body)
    except Exception as e:
        logger.error(f"Failed to hand off inbound SMS from {mask_phone(sender)}: {e}")
    return {"received": True}
