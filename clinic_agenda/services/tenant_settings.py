# clinic_agenda/services/tenant_settings.py
from __future__ import annotations
import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ..config import settings
from .. import models
from ..schemas import HolidayIn, TenantSettingsIn

logger = logging.getLogger(__name__)

# Mismo horario inicial que muestra la pantalla de configuración
DEFAULT_WORKING_HOURS = {
    "monday":    {"enabled": True,  "start": "08:00", "end": "18:00"},
    "tuesday":   {"enabled": True,  "start": "08:00", "end": "18:00"},
    "wednesday": {"enabled": True,  "start": "08:00", "end": "18:00"},
    "thursday":  {"enabled": True,  "start": "08:00", "end": "18:00"},
    "friday":    {"enabled": True,  "start": "08:00", "end": "18:00"},
    "saturday":  {"enabled": False, "start": "08:00", "end": "12:00"},
    "sunday":    {"enabled": False, "start": "08:00", "end": "12:00"},
}


def get_settings(db: Session, tenant_id: int) -> models.TenantSettings:
    """
    Configuración del tenant. Si todavía no existe fila, devuelve una instancia
    con valores por defecto SIN persistirla.
    """
    ts = (
        db.query(models.TenantSettings)
        .filter(models.TenantSettings.tenant_id == tenant_id)
        .first()
    )
    if ts:
        return ts
    return models.TenantSettings(
        tenant_id=tenant_id,
        timezone=settings.TIMEZONE,
        working_hours=dict(DEFAULT_WORKING_HOURS),
        default_appointment_duration=settings.DEFAULT_SLOT_DURATION_MIN,
        min_advance_booking_hours=0,
        max_advance_booking_days=90,
        send_appointment_reminders=True,
    )


def tenant_timezone(ts: models.TenantSettings) -> str:
    return ts.timezone or settings.TIMEZONE


def update_settings(db: Session, tenant_id: int, data: TenantSettingsIn) -> models.TenantSettings:
    ts = get_settings(db, tenant_id)
    if ts.id is None:
        db.add(ts)

    updates = data.model_dump(exclude_unset=True, exclude_none=True)
    if "working_hours" in updates:
        # Reemplazo completo: los días que no vienen quedan deshabilitados
        ts.working_hours = {day: hours for day, hours in updates.pop("working_hours").items()}
    for key, value in updates.items():
        setattr(ts, key, value)

    db.commit()
    db.refresh(ts)
    logger.info("tenant_settings actualizado: tenant=%s campos=%s", tenant_id, sorted(data.model_fields_set))
    return ts


# ====== Feriados ======
def list_holidays(db: Session, tenant_id: int) -> list[models.TenantHoliday]:
    return (
        db.query(models.TenantHoliday)
        .filter(models.TenantHoliday.tenant_id == tenant_id)
        .order_by(models.TenantHoliday.date.asc())
        .all()
    )


def add_holiday(db: Session, tenant_id: int, data: HolidayIn) -> models.TenantHoliday:
    holiday = models.TenantHoliday(tenant_id=tenant_id, **data.model_dump())
    db.add(holiday)
    db.commit()
    db.refresh(holiday)
    logger.info("Feriado agregado: tenant=%s date=%s type=%s", tenant_id, holiday.date, holiday.holiday_type)
    return holiday


def delete_holiday(db: Session, tenant_id: int, holiday_id: int) -> None:
    holiday = (
        db.query(models.TenantHoliday)
        .filter(models.TenantHoliday.id == holiday_id, models.TenantHoliday.tenant_id == tenant_id)
        .first()
    )
    if not holiday:
        raise HTTPException(status_code=404, detail="Feriado não encontrado")
    db.delete(holiday)
    db.commit()
