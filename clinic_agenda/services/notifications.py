# clinic_agenda/services/notifications.py
from datetime import datetime
from typing import Optional

from .llm import polish_if_enabled
from .messages import render
from .twilio_client import send_whatsapp


def send_waitlist_offer(contact: str, patient_name: str, professional_name: Optional[str] = None,
                        clinic_name: Optional[str] = None) -> dict:
    """Aviso al paciente de la lista de espera: surgió un horario."""
    body = render("waitlist_offer", {
        "patient_name": patient_name,
        "professional_name": professional_name,
        "clinic_name": clinic_name,
    })
    return _send(contact, body)


def send_scheduled(contact: str, patient_name: str, start: datetime,
                   professional_name: Optional[str] = None) -> dict:
    """Confirmación de la cita creada desde la lista de espera."""
    body = render("scheduled_from_waitlist", {
        "patient_name": patient_name,
        "professional_name": professional_name,
        "appt_dt": start,
    })
    return _send(contact, body)


def send_reminder(contact: str, patient_name: str, start: datetime) -> dict:
    body = render("reminder", {"patient_name": patient_name, "appt_dt": start})
    return _send(contact, body)


# ------------------ internos ------------------

def _send(contact: str, body: str) -> dict:
    result = send_whatsapp(contact, polish_if_enabled(body))
    result.setdefault("body", body)
    return result
