# clinic_agenda/services/slot_finder.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Mapping, Optional, Sequence

import pytz
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..config import settings
from .. import models
from ..schemas import AvailableSlot, SlotSearchCriteria
from .availability import overlaps, fits_window, fmt_hhmm, hours_for_date, window_allows_hour
from .tenant_settings import get_settings, tenant_timezone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfessionalHours:
    id: int
    name: str
    working_hours: Mapping


def _now_local(tz_name: str) -> datetime:
    """Ahora en la TZ del tenant, NAIVE (mismo formato que las citas guardadas)."""
    return datetime.now(pytz.timezone(tz_name)).replace(tzinfo=None)


# ====== Núcleo: generación de slots ======
def generate_slots(
    professionals: Sequence[ProfessionalHours],
    busy: Mapping[int, Sequence[tuple[datetime, datetime]]],
    start_day: date,
    days_ahead: int,
    duration_minutes: int,
    holidays: Iterable = (),
    not_before: Optional[datetime] = None,
) -> list[AvailableSlot]:
    """
    Recorre `days_ahead` días desde `start_day` y, para cada profesional, genera
    slots de `duration_minutes` desde la apertura. Un slot se conserva si:
      - su hora de inicio es válida (regla por hora del calendario),
      - el rango completo cabe en el expediente y no pisa la pausa,
      - no se solapa con una cita del profesional,
      - empieza en o después de `not_before`.
    Tras la pausa se re-ancla la grilla al fin de la pausa.
    """
    holidays = list(holidays or ())
    delta = timedelta(minutes=duration_minutes)
    out: list[AvailableSlot] = []

    for offset in range(days_ahead):
        day = start_day + timedelta(days=offset)
        for prof in professionals:
            window = hours_for_date(prof.working_hours, day, holidays)
            if window is None:
                continue
            prof_busy = busy.get(prof.id, ())

            cur = datetime.combine(day, window.open)
            day_end = datetime.combine(day, window.close)
            while cur + delta <= day_end:
                slot_start, slot_end = cur, cur + delta

                if window.has_break and overlaps(slot_start.time(), slot_end.time(),
                                                  window.break_start, window.break_end):
                    cur = max(cur + delta, datetime.combine(day, window.break_end))
                    continue

                ok = (
                    window_allows_hour(window, slot_start.time())
                    and fits_window(window, slot_start.time(), slot_end.time())
                    and not any(overlaps(slot_start, slot_end, b0, b1) for (b0, b1) in prof_busy)
                    and (not_before is None or slot_start >= not_before)
                )
                if ok:
                    out.append(AvailableSlot(
                        date=day.isoformat(),
                        startTime=fmt_hhmm(slot_start.time()),
                        endTime=fmt_hhmm(slot_end.time()),
                        professionalId=prof.id,
                        professionalName=prof.name,
                    ))
                cur += delta

    out.sort(key=lambda s: (s.date, s.startTime, s.professionalId))
    return out


# ====== Preferencias (sólo clasifican, no filtran) ======
def is_preferred_slot(
    slot: AvailableSlot,
    preferred_date: Optional[date] = None,
    preferred_time_start: Optional[time] = None,
    preferred_time_end: Optional[time] = None,
) -> bool:
    if not preferred_date and not preferred_time_start:
        return False
    matches_date = not preferred_date or slot.date == preferred_date.isoformat()
    matches_time = not preferred_time_start or (
        slot.startTime >= fmt_hhmm(preferred_time_start)
        and (not preferred_time_end or slot.endTime <= fmt_hhmm(preferred_time_end))
    )
    return matches_date and matches_time


def split_by_preference(slots: Sequence[AvailableSlot], entry) -> tuple[list[AvailableSlot], list[AvailableSlot]]:
    """(preferidos, alternativos) conservando el orden de entrada."""
    preferred, alternatives = [], []
    for s in slots:
        if is_preferred_slot(s, entry.preferred_date, entry.preferred_time_start, entry.preferred_time_end):
            preferred.append(s)
        else:
            alternatives.append(s)
    return preferred, alternatives


# ====== Búsqueda contra la BD ======
def _busy_windows(db: Session, tenant_id: int, professional_ids: list[int],
                  start: datetime, end: datetime) -> dict[int, list[tuple[datetime, datetime]]]:
    if not professional_ids:
        return {}
    appts = (
        db.query(models.Appointment)
        .filter(models.Appointment.tenant_id == tenant_id)
        .filter(models.Appointment.professional_id.in_(professional_ids))
        .filter(models.Appointment.start_datetime < end)
        .filter(models.Appointment.end_datetime > start)
        .filter(models.Appointment.status != models.AppointmentStatus.cancelled)
        .all()
    )
    out: dict[int, list[tuple[datetime, datetime]]] = {}
    for ap in appts:
        out.setdefault(ap.professional_id, []).append((ap.start_datetime, ap.end_datetime))
    return out


def search_slots(db: Session, tenant_id: int, criteria: SlotSearchCriteria,
                 now: Optional[datetime] = None) -> list[AvailableSlot]:
    """
    Todos los slots libres del horizonte pedido. Las preferencias del criterio
    NO filtran: quien llama decide cómo agruparlas.
    """
    ts = get_settings(db, tenant_id)
    now_local = now or _now_local(tenant_timezone(ts))
    today = now_local.date()

    days_ahead = criteria.days_ahead or settings.DEFAULT_DAYS_AHEAD
    days_ahead = max(1, min(days_ahead, settings.MAX_DAYS_AHEAD, ts.max_advance_booking_days))
    duration = criteria.duration_minutes or ts.default_appointment_duration or settings.DEFAULT_SLOT_DURATION_MIN

    q = (
        db.query(models.Professional)
        .filter(models.Professional.tenant_id == tenant_id)
        .filter(models.Professional.is_active.is_(True))
    )
    if criteria.professional_id:
        q = q.filter(models.Professional.id == criteria.professional_id)
    rows = q.order_by(models.Professional.id.asc()).all()
    if criteria.professional_id and not rows:
        raise HTTPException(status_code=404, detail="Profissional não encontrado ou inativo")

    professionals = [
        ProfessionalHours(id=p.id, name=p.name, working_hours=p.working_hours or ts.working_hours or {})
        for p in rows
    ]
    holidays = (
        db.query(models.TenantHoliday)
        .filter(models.TenantHoliday.tenant_id == tenant_id)
        .all()
    )

    range_start = datetime.combine(today, time(0, 0))
    range_end = range_start + timedelta(days=days_ahead)
    busy = _busy_windows(db, tenant_id, [p.id for p in professionals], range_start, range_end)

    not_before = now_local + timedelta(hours=ts.min_advance_booking_hours or 0)
    slots = generate_slots(professionals, busy, today, days_ahead, duration, holidays, not_before)
    logger.debug("search_slots tenant=%s prof=%s days=%s dur=%s → %d slots",
                 tenant_id, criteria.professional_id, days_ahead, duration, len(slots))
    return slots
