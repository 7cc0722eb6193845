# clinic_agenda/services/messages.py
from __future__ import annotations
from datetime import date, datetime, time
from typing import Any, Dict, Optional

# ==========================================================
#  Plantillas de mensajes al paciente (pt-BR)
# ==========================================================

_WEEKDAYS_PT = ["segunda-feira", "terça-feira", "quarta-feira", "quinta-feira", "sexta-feira", "sábado", "domingo"]


def _fmt_date(d: Optional[date]) -> str:
    if isinstance(d, (date, datetime)):
        return d.strftime("%d/%m/%Y")
    return ""


def _fmt_time(t) -> str:
    if isinstance(t, (time, datetime)):
        return t.strftime("%H:%M")
    return ""


def _weekday(d: Optional[date]) -> str:
    if isinstance(d, (date, datetime)):
        return _WEEKDAYS_PT[d.weekday()]
    return ""


def _time_greeting(now: Optional[datetime] = None) -> str:
    h = (now or datetime.now()).hour
    if 5 <= h < 12:
        return "bom dia"
    if 12 <= h < 18:
        return "boa tarde"
    return "boa noite"


def _first_name(state: Dict[str, Any]) -> str:
    name = (state.get("patient_name") or "").strip()
    return name.split()[0] if name else ""


# 1) Contacto desde la lista de espera
def _waitlist_offer(state: Dict[str, Any]) -> str:
    nome = _first_name(state)
    saudacao = _time_greeting(state.get("now")).capitalize()
    who = f", {nome}" if nome else ""
    prof = state.get("professional_name")
    com = f" com {prof}" if prof else ""
    clinic = state.get("clinic_name") or "a clínica"
    return (
        f"{saudacao}{who}! Aqui é {clinic}. "
        f"Você está na nossa lista de espera e surgiu disponibilidade de horário{com}. "
        "Responda esta mensagem para escolhermos o melhor horário para você."
    )


# 2) Cita agendada desde la lista de espera
def _scheduled_from_waitlist(state: Dict[str, Any]) -> str:
    dt: Optional[datetime] = state.get("appt_dt")
    nome = _first_name(state)
    who = f", {nome}" if nome else ""
    prof = state.get("professional_name")
    com = f" com {prof}" if prof else ""
    return (
        f"Boa notícia{who}! Seu atendimento{com} foi agendado.\n"
        f"📅 {_weekday(dt)}, {_fmt_date(dt)}\n"
        f"⏰ {_fmt_time(dt)}\n"
        "Se precisar remarcar ou cancelar, é só responder esta mensagem."
    )


# 3) Recordatorio
def _reminder(state: Dict[str, Any]) -> str:
    dt: Optional[datetime] = state.get("appt_dt")
    nome = _first_name(state)
    who = f", {nome}" if nome else ""
    return (
        f"Olá{who}! Lembrete do seu atendimento em {_fmt_date(dt)} às {_fmt_time(dt)}. "
        "Caso não possa comparecer, avise-nos respondendo esta mensagem."
    )


def _fallback(state: Dict[str, Any]) -> str:
    return "Olá! Entre em contato com a clínica para mais informações."


# ==========================
# Interfaz pública
# ==========================
_HANDLERS = {
    "waitlist_offer": _waitlist_offer,
    "scheduled_from_waitlist": _scheduled_from_waitlist,
    "reminder": _reminder,
    "fallback": _fallback,
}


def render(kind: str, state: Optional[Dict[str, Any]] = None) -> str:
    fn = _HANDLERS.get(kind, _fallback)
    return fn(state or {}).strip()
