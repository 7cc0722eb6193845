# clinic_agenda/services/availability.py
"""
Calendario de disponibilidad: horario de atención por día de la semana,
pausa de almuerzo y feriados del tenant.

El horario llega como el JSON guardado en `tenant_settings.working_hours`
(o en `professionals.working_hours`):

    {"monday": {"enabled": true, "start": "08:00", "end": "18:00",
                "break_start": "12:00", "break_end": "13:00"}, ...}
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, time
from typing import Iterable, Mapping, Optional, Union

from ..models import HolidayType

# date.weekday(): 0 = lunes ... 6 = domingo
DAY_KEYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# Valores que usaba la agenda cuando un día no trae start/end
_DEFAULT_START = "08:00"
_DEFAULT_END = "18:00"


@dataclass(frozen=True)
class DayWindow:
    """Ventana efectiva de atención de un día concreto."""
    open: time
    close: time
    break_start: Optional[time] = None
    break_end: Optional[time] = None

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None


# ====== Utilidades de tiempo ======
def parse_hhmm(value: Union[str, time, None]) -> Optional[time]:
    """'HH:MM' o 'HH:MM:SS' → time. Vacío/None → None."""
    if value is None:
        return None
    if isinstance(value, time):
        return value
    value = value.strip()
    if not value:
        return None
    parts = value.split(":")
    if len(parts) < 2:
        raise ValueError(f"Horário inválido: {value!r} (use HH:MM)")
    h, m = int(parts[0]), int(parts[1])
    s = int(parts[2]) if len(parts) > 2 else 0
    return time(h, m, s)


def fmt_hhmm(t: time) -> str:
    return t.strftime("%H:%M")


def day_key(day: date) -> str:
    return DAY_KEYS[day.weekday()]


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    return not (a_end <= b_start or b_end <= a_start)


# ====== Validación de la configuración ======
def validate_day_hours(hours: Mapping) -> None:
    """
    Lanza ValueError si el día no respeta las reglas:
      - enabled ⇒ start < end
      - pausa ⇒ ambos extremos, break_start < break_end y dentro de [start, end]
    """
    if not hours.get("enabled"):
        return
    start = parse_hhmm(hours.get("start"))
    end = parse_hhmm(hours.get("end"))
    if start is None or end is None:
        raise ValueError("Dia habilitado precisa de início e fim")
    if start >= end:
        raise ValueError("O horário de início deve ser anterior ao horário de fim")

    b_start = parse_hhmm(hours.get("break_start"))
    b_end = parse_hhmm(hours.get("break_end"))
    if b_start is None and b_end is None:
        return
    if b_start is None or b_end is None:
        raise ValueError("Intervalo precisa de início e fim")
    if b_start >= b_end:
        raise ValueError("O início do intervalo deve ser anterior ao fim do intervalo")
    if b_start < start or b_end > end:
        raise ValueError("O intervalo deve estar dentro do expediente")


# ====== Ventanas ======
def regular_window(working_hours: Mapping, day: date) -> Optional[DayWindow]:
    """Ventana del día según el horario semanal (sin feriados)."""
    hours = (working_hours or {}).get(day_key(day))
    if not hours or not hours.get("enabled"):
        return None
    return DayWindow(
        open=parse_hhmm(hours.get("start") or _DEFAULT_START),
        close=parse_hhmm(hours.get("end") or _DEFAULT_END),
        break_start=parse_hhmm(hours.get("break_start")),
        break_end=parse_hhmm(hours.get("break_end")),
    )


def holiday_for(day: date, holidays: Iterable) -> Optional[object]:
    """Feriado que aplica al día (exacto o recurrente por día/mes)."""
    for h in holidays or ():
        if h.date == day:
            return h
        if h.is_recurring and (h.date.month, h.date.day) == (day.month, day.day):
            return h
    return None


def hours_for_date(working_hours: Mapping, day: date, holidays: Iterable = ()) -> Optional[DayWindow]:
    """
    Ventana efectiva del día considerando feriados:
      - closed        → None
      - special_hours → horario especial, sin pausa
      - half_day      → cierra al inicio de la pausa (o 12:00), sin pausa
    """
    window = regular_window(working_hours, day)
    holiday = holiday_for(day, holidays)
    if holiday is None:
        return window

    kind = HolidayType(holiday.holiday_type)
    if kind == HolidayType.closed:
        return None
    if kind == HolidayType.special_hours:
        if not holiday.special_open_time or not holiday.special_close_time:
            return None
        if holiday.special_open_time >= holiday.special_close_time:
            return None
        return DayWindow(open=holiday.special_open_time, close=holiday.special_close_time)

    # half_day
    if window is None:
        return None
    close = min(window.break_start if window.has_break else time(12, 0), window.close)
    if close <= window.open:
        return None
    return DayWindow(open=window.open, close=close)


# ====== Reglas de validez ======
def window_allows_hour(window: Optional[DayWindow], slot_time: Union[str, time]) -> bool:
    """
    Sólo compara la HORA: minutos se ignoran (la agenda trabaja por horas).
    Válido si open.hour <= h < close.hour y h fuera de [break_start.hour, break_end.hour).
    """
    if window is None:
        return False
    t = parse_hhmm(slot_time)
    if t is None:
        return False
    hour = t.hour
    if hour < window.open.hour or hour >= window.close.hour:
        return False
    if window.has_break and window.break_start.hour <= hour < window.break_end.hour:
        return False
    return True


def is_valid_slot(working_hours: Mapping, day: date, slot_time: Union[str, time]) -> bool:
    """¿Se puede agendar a `slot_time` el día `day`? (granularidad de una hora)."""
    return window_allows_hour(regular_window(working_hours, day), slot_time)


def fits_window(window: Optional[DayWindow], start: time, end: time) -> bool:
    """El rango [start, end) cabe completo en el expediente y no pisa la pausa."""
    if window is None:
        return False
    if start < window.open or end > window.close:
        return False
    if window.has_break and overlaps(start, end, window.break_start, window.break_end):
        return False
    return True
