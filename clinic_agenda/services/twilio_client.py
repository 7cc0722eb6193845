# clinic_agenda/services/twilio_client.py
import logging
from twilio.rest import Client
from ..config import settings

logger = logging.getLogger(__name__)


def normalize_wa(number: str) -> str:
    """'+55 11 99999-0000' / 'whatsapp: 5511...' → 'whatsapp:+5511999990000'."""
    if not number:
        return number
    number = number.strip()
    if not number.startswith("whatsapp:"):
        number = f"whatsapp:{number}"
    prefix, rest = number.split(":", 1)
    digits = "".join(ch for ch in rest if ch.isdigit())
    return f"{prefix}:+{digits}"


def get_twilio_client() -> Client | None:
    if not settings.TWILIO_ACCOUNT_SID or not settings.TWILIO_AUTH_TOKEN:
        return None
    return Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)


def send_whatsapp(to: str, body: str) -> dict:
    """
    Envía un WhatsApp usando Twilio.
    - DRY_RUN=true: no envía; registra en logs y regresa {"status": "dry_run", ...}
    - Sin credenciales: modo MOCK (no envía) y regresa {"status": "mock", ...}
    - Error al enviar: registra y regresa {"status": "failed", "error": "..."}
    """
    to_norm = normalize_wa(to)
    from_norm = normalize_wa(settings.TWILIO_WHATSAPP_FROM or "")
    flat = body.replace("\n", " | ")

    if settings.DRY_RUN:
        logger.info("[DRY_RUN WHATSAPP] to=%s body=%s", to_norm, flat)
        return {"status": "dry_run", "to": to_norm, "body": body}

    client = get_twilio_client()
    if client is None or not from_norm:
        logger.info("[WA MOCK] to=%s body=%s", to_norm, flat)
        return {"status": "mock", "to": to_norm, "body": body}

    try:
        msg = client.messages.create(from_=from_norm, to=to_norm, body=body)
        return {"status": "sent", "sid": msg.sid, "to": to_norm}
    except Exception as e:
        logger.warning("[WA ERROR] to=%s err=%s", to_norm, e)
        return {"status": "failed", "error": str(e), "to": to_norm}
