# clinic_agenda/services/appointments.py
from __future__ import annotations
import logging
from datetime import datetime
from typing import Optional

import pytz
from fastapi import HTTPException
from sqlalchemy.orm import Session

from .. import models
from ..schemas import AppointmentCreate
from .tenant_settings import get_settings, tenant_timezone

logger = logging.getLogger(__name__)

_TERMINAL = {models.AppointmentStatus.cancelled, models.AppointmentStatus.completed}


def to_local_naive(dt: datetime, tz_name: str) -> datetime:
    """Datetime con offset → hora local NAIVE del tenant (formato guardado)."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(pytz.timezone(tz_name)).replace(tzinfo=None)


def _owned(db: Session, model, tenant_id: int, row_id: Optional[int]):
    if row_id is None:
        return None
    return db.query(model).filter(model.id == row_id, model.tenant_id == tenant_id).first()


def find_conflicts(db: Session, tenant_id: int, professional_id: int,
                   start: datetime, end: datetime, exclude_id: Optional[int] = None) -> list[models.Appointment]:
    """Citas no canceladas del profesional que se solapan con [start, end)."""
    q = (
        db.query(models.Appointment)
        .filter(models.Appointment.tenant_id == tenant_id)
        .filter(models.Appointment.professional_id == professional_id)
        .filter(models.Appointment.status != models.AppointmentStatus.cancelled)
        .filter(models.Appointment.start_datetime < end)
        .filter(models.Appointment.end_datetime > start)
    )
    if exclude_id is not None:
        q = q.filter(models.Appointment.id != exclude_id)
    return q.all()


def create_appointment(db: Session, tenant_id: int, data: AppointmentCreate,
                       waiting_list_id: Optional[int] = None, commit: bool = True) -> models.Appointment:
    """
    Crea la cita. Con commit=False sólo hace flush: quien llama es dueño
    de la transacción (agendamiento desde la lista de espera).
    """
    if data.start_datetime.tzinfo is not None:
        tz_name = tenant_timezone(get_settings(db, tenant_id))
        data = data.model_copy(update={
            "start_datetime": to_local_naive(data.start_datetime, tz_name),
            "end_datetime": to_local_naive(data.end_datetime, tz_name),
        })

    if not _owned(db, models.Patient, tenant_id, data.patient_id):
        raise HTTPException(status_code=404, detail="Paciente não encontrado")
    professional = _owned(db, models.Professional, tenant_id, data.professional_id)
    if not professional:
        raise HTTPException(status_code=404, detail="Profissional não encontrado")
    if not professional.is_active:
        raise HTTPException(status_code=400, detail="Profissional inativo")

    if find_conflicts(db, tenant_id, data.professional_id, data.start_datetime, data.end_datetime):
        logger.warning("Choque de horario: tenant=%s prof=%s %s-%s",
                       tenant_id, data.professional_id, data.start_datetime, data.end_datetime)
        raise HTTPException(status_code=409, detail="Horário indisponível para este profissional")

    appt = models.Appointment(
        tenant_id=tenant_id,
        patient_id=data.patient_id,
        professional_id=data.professional_id,
        waiting_list_id=waiting_list_id,
        title=data.title,
        start_datetime=data.start_datetime,
        end_datetime=data.end_datetime,
        status=models.AppointmentStatus.scheduled,
        service_type=data.service_type,
        notes=data.notes,
    )
    db.add(appt)
    if commit:
        db.commit()
        db.refresh(appt)
        logger.info("Cita creada id=%s tenant=%s prof=%s start=%s",
                    appt.id, tenant_id, appt.professional_id, appt.start_datetime)
    else:
        db.flush()
    return appt


def list_appointments(db: Session, tenant_id: int, start: Optional[datetime] = None,
                      end: Optional[datetime] = None, professional_id: Optional[int] = None) -> list[models.Appointment]:
    q = db.query(models.Appointment).filter(models.Appointment.tenant_id == tenant_id)
    if start is not None:
        q = q.filter(models.Appointment.end_datetime > start)
    if end is not None:
        q = q.filter(models.Appointment.start_datetime < end)
    if professional_id is not None:
        q = q.filter(models.Appointment.professional_id == professional_id)
    return q.order_by(models.Appointment.start_datetime.asc(), models.Appointment.id.asc()).all()


def update_status(db: Session, tenant_id: int, appointment_id: int,
                  status: models.AppointmentStatus) -> models.Appointment:
    appt = _owned(db, models.Appointment, tenant_id, appointment_id)
    if not appt:
        raise HTTPException(status_code=404, detail="Agendamento não encontrado")
    if appt.status == status:
        return appt
    if appt.status in _TERMINAL:
        raise HTTPException(
            status_code=409,
            detail=f"Agendamento {appt.status.value} não pode mudar para {status.value}",
        )
    appt.status = status
    db.commit()
    db.refresh(appt)
    logger.info("Cita %s → %s (tenant=%s)", appt.id, status.value, tenant_id)
    return appt
