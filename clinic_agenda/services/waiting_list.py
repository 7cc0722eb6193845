# clinic_agenda/services/waiting_list.py
"""
Lista de espera: alta/edición, máquina de estados, contacto, prioridad y
agendamiento (manual o automático) a partir de una entrada.

Estados:
    waiting   → contacted | scheduled | cancelled
    contacted → contacted | scheduled | cancelled   (se puede volver a contactar)
    scheduled, cancelled: finales
"""
from __future__ import annotations
import json
import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload

from .. import models
from ..models import ContactMethod, WaitingListStatus
from ..schemas import (
    AppointmentCreate,
    AvailableSlot,
    SlotSearchCriteria,
    WaitingListCreate,
    WaitingListOut,
    WaitingListUpdate,
)
from . import priority as prio
from .appointments import create_appointment
from .notifications import send_scheduled, send_waitlist_offer
from .slot_finder import search_slots, split_by_preference

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[WaitingListStatus, frozenset[WaitingListStatus]] = {
    WaitingListStatus.waiting: frozenset({
        WaitingListStatus.contacted, WaitingListStatus.scheduled, WaitingListStatus.cancelled,
    }),
    WaitingListStatus.contacted: frozenset({
        WaitingListStatus.contacted, WaitingListStatus.scheduled, WaitingListStatus.cancelled,
    }),
    WaitingListStatus.scheduled: frozenset(),
    WaitingListStatus.cancelled: frozenset(),
}

ACTIVE_STATUSES = (WaitingListStatus.waiting, WaitingListStatus.contacted)
_NOT_NULL_FIELDS = ("patient_id", "priority", "status")


def can_transition(current: WaitingListStatus, target: WaitingListStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(WaitingListStatus(current), frozenset())


def check_transition(entry: models.WaitingListEntry, target: WaitingListStatus) -> None:
    if not can_transition(entry.status, target):
        logger.warning("Transición inválida en lista de espera id=%s: %s → %s",
                       entry.id, entry.status.value, target.value)
        raise HTTPException(
            status_code=409,
            detail=f"Transição inválida: {entry.status.value} → {target.value}",
        )


# ====== Lectura ======
def to_out(entry: models.WaitingListEntry) -> WaitingListOut:
    out = WaitingListOut.model_validate(entry)
    if entry.patient is not None:
        out.patient_name = entry.patient.name
        out.patient_phone = entry.patient.phone
    if entry.professional is not None:
        out.professional_name = entry.professional.name
    if entry.procedure is not None:
        out.procedure_name = entry.procedure.name
    return out


def get_entry(db: Session, tenant_id: int, entry_id: int) -> models.WaitingListEntry:
    entry = (
        db.query(models.WaitingListEntry)
        .filter(models.WaitingListEntry.id == entry_id, models.WaitingListEntry.tenant_id == tenant_id)
        .first()
    )
    if not entry:
        raise HTTPException(status_code=404, detail="Entrada da lista de espera não encontrada")
    return entry


def list_entries(db: Session, tenant_id: int, status: Optional[WaitingListStatus] = None,
                 priority: Optional[int] = None, professional_id: Optional[int] = None,
                 patient_id: Optional[int] = None) -> dict:
    q = (
        db.query(models.WaitingListEntry)
        .options(
            joinedload(models.WaitingListEntry.patient),
            joinedload(models.WaitingListEntry.professional),
            joinedload(models.WaitingListEntry.procedure),
        )
        .filter(models.WaitingListEntry.tenant_id == tenant_id)
    )
    if status is not None:
        q = q.filter(models.WaitingListEntry.status == status)
    if priority is not None:
        q = q.filter(models.WaitingListEntry.priority == priority)
    if professional_id is not None:
        q = q.filter(models.WaitingListEntry.professional_id == professional_id)
    if patient_id is not None:
        q = q.filter(models.WaitingListEntry.patient_id == patient_id)

    entries = prio.sort_for_display(q.all())
    return {"results": [to_out(e) for e in entries], "total": len(entries)}


def stats(db: Session, tenant_id: int) -> dict:
    entries = (
        db.query(models.WaitingListEntry)
        .filter(models.WaitingListEntry.tenant_id == tenant_id)
        .all()
    )
    by_status = {s.value: 0 for s in WaitingListStatus}
    for e in entries:
        by_status[WaitingListStatus(e.status).value] += 1
    active = [e for e in entries if e.status in ACTIVE_STATUSES]
    return {
        "total": len(entries),
        "by_status": by_status,
        "by_priority": prio.priority_stats(active),
    }


# ====== Alta / edición ======
def _check_refs(db: Session, tenant_id: int, patient_id: Optional[int] = None,
                professional_id: Optional[int] = None, procedure_id: Optional[int] = None) -> None:
    refs = (
        (models.Patient, patient_id, "Paciente não encontrado"),
        (models.Professional, professional_id, "Profissional não encontrado"),
        (models.Procedure, procedure_id, "Procedimento não encontrado"),
    )
    for model, row_id, msg in refs:
        if row_id is None:
            continue
        found = db.query(model.id).filter(model.id == row_id, model.tenant_id == tenant_id).first()
        if not found:
            raise HTTPException(status_code=404, detail=msg)


def create_entry(db: Session, tenant_id: int, data: WaitingListCreate) -> models.WaitingListEntry:
    _check_refs(db, tenant_id, data.patient_id, data.professional_id, data.procedure_id)
    entry = models.WaitingListEntry(
        tenant_id=tenant_id,
        status=WaitingListStatus.waiting,
        **data.model_dump(),
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info("Lista de espera: alta id=%s tenant=%s paciente=%s prioridad=%s",
                entry.id, tenant_id, entry.patient_id, entry.priority)
    return entry


def update_entry(db: Session, tenant_id: int, entry_id: int, data: WaitingListUpdate) -> models.WaitingListEntry:
    entry = get_entry(db, tenant_id, entry_id)
    updates = data.model_dump(exclude_unset=True)
    _check_refs(db, tenant_id, updates.get("patient_id"), updates.get("professional_id"),
                updates.get("procedure_id"))
    # null en columnas NOT NULL = "sin cambio"
    for key in _NOT_NULL_FIELDS:
        if key in updates and updates[key] is None:
            updates.pop(key)

    new_status = updates.pop("status", None)
    if new_status is not None and new_status != entry.status:
        check_transition(entry, new_status)
        entry.status = new_status

    start = updates.get("preferred_time_start", entry.preferred_time_start)
    end = updates.get("preferred_time_end", entry.preferred_time_end)
    if start and end and start >= end:
        raise HTTPException(status_code=400,
                            detail="O horário preferido de início deve ser anterior ao de fim")

    for key, value in updates.items():
        setattr(entry, key, value)
    db.commit()
    db.refresh(entry)
    logger.info("Lista de espera: edición id=%s campos=%s", entry.id, sorted(data.model_fields_set))
    return entry


def delete_entry(db: Session, tenant_id: int, entry_id: int) -> None:
    entry = get_entry(db, tenant_id, entry_id)
    db.delete(entry)
    db.commit()
    logger.info("Lista de espera: baja id=%s tenant=%s", entry_id, tenant_id)


def change_status(db: Session, tenant_id: int, entry_id: int,
                  status: WaitingListStatus) -> models.WaitingListEntry:
    entry = get_entry(db, tenant_id, entry_id)
    check_transition(entry, status)
    previous = entry.status
    entry.status = status
    db.commit()
    db.refresh(entry)
    logger.info("Lista de espera id=%s: %s → %s", entry.id, previous.value, status.value)
    return entry


# ====== Contacto ======
def contact(db: Session, tenant_id: int, entry_id: int, method: ContactMethod) -> dict:
    """
    Registra el contacto y pasa la entrada a `contacted` en un solo commit.
    Por WhatsApp se envía el aviso; teléfono/e-mail quedan registrados para
    que la recepción haga el seguimiento. Un fallo de envío no aborta.
    """
    entry = get_entry(db, tenant_id, entry_id)
    check_transition(entry, WaitingListStatus.contacted)

    patient = entry.patient
    delivery: dict = {"status": "logged"}
    if method == ContactMethod.whatsapp:
        if patient and patient.phone:
            tenant = db.get(models.Tenant, tenant_id)
            delivery = send_waitlist_offer(
                patient.phone,
                patient.name,
                professional_name=entry.professional.name if entry.professional else None,
                clinic_name=tenant.name if tenant else None,
            )
        else:
            delivery = {"status": "failed", "error": "Paciente sem telefone"}

    db.add(models.ContactLog(
        tenant_id=tenant_id,
        waiting_list_id=entry.id,
        method=method,
        status=delivery.get("status", "logged"),
        payload=json.dumps(delivery, ensure_ascii=False, default=str),
    ))
    entry.status = WaitingListStatus.contacted
    db.commit()
    db.refresh(entry)
    logger.info("Lista de espera id=%s contactada por %s (%s)",
                entry.id, method.value, delivery.get("status"))
    return {
        "ok": True,
        "waiting_list_id": entry.id,
        "method": method,
        "delivery": delivery.get("status", "logged"),
        "status": entry.status,
    }


# ====== Prioridad ======
def update_priority(db: Session, tenant_id: int, entry_id: int, priority: int) -> models.WaitingListEntry:
    entry = get_entry(db, tenant_id, entry_id)
    entry.priority = prio.clamp_priority(priority)
    db.commit()
    db.refresh(entry)
    logger.info("Lista de espera id=%s prioridad=%s", entry.id, entry.priority)
    return entry


def increment_priority(db: Session, tenant_id: int, entry_id: int) -> models.WaitingListEntry:
    entry = get_entry(db, tenant_id, entry_id)
    return update_priority(db, tenant_id, entry_id, prio.increment(entry.priority))


def decrement_priority(db: Session, tenant_id: int, entry_id: int) -> models.WaitingListEntry:
    entry = get_entry(db, tenant_id, entry_id)
    return update_priority(db, tenant_id, entry_id, prio.decrement(entry.priority))


def bulk_priority_change(db: Session, tenant_id: int, entry_ids: list[int], priority: int) -> dict:
    """Todo o nada: si algún id no es del tenant, no se modifica ninguno."""
    ids = list(dict.fromkeys(entry_ids))
    entries = (
        db.query(models.WaitingListEntry)
        .filter(models.WaitingListEntry.tenant_id == tenant_id)
        .filter(models.WaitingListEntry.id.in_(ids))
        .all()
    )
    missing = sorted(set(ids) - {e.id for e in entries})
    if missing:
        logger.warning("bulk-priority rechazado tenant=%s ids_inexistentes=%s", tenant_id, missing)
        raise HTTPException(
            status_code=404,
            detail=f"Entradas não encontradas: {', '.join(str(i) for i in missing)}",
        )
    value = prio.clamp_priority(priority)
    for e in entries:
        e.priority = value
    db.commit()
    logger.info("bulk-priority tenant=%s ids=%s prioridad=%s", tenant_id, ids, value)
    return {"ok": True, "updated": len(entries), "priority": value}


# ====== Sugerencias y agendamiento ======
def _criteria_for(entry: models.WaitingListEntry) -> SlotSearchCriteria:
    duration = entry.procedure.duration_minutes if entry.procedure else None
    return SlotSearchCriteria(
        professional_id=entry.professional_id,
        preferred_date=entry.preferred_date,
        preferred_time_start=entry.preferred_time_start,
        preferred_time_end=entry.preferred_time_end,
        duration_minutes=duration,
    )


def suggestions(db: Session, tenant_id: int, entry_id: int,
                now: Optional[datetime] = None) -> dict:
    entry = get_entry(db, tenant_id, entry_id)
    slots = search_slots(db, tenant_id, _criteria_for(entry), now=now)
    preferred, alternatives = split_by_preference(slots, entry)
    return {"waiting_list_id": entry.id, "preferred": preferred, "alternatives": alternatives}


def schedule_from_waiting_list(db: Session, tenant_id: int, entry_id: int,
                               data: AppointmentCreate) -> tuple[models.WaitingListEntry, models.Appointment]:
    """
    Crea la cita y marca la entrada como `scheduled` en UNA transacción.
    Si algo falla (choque de horario, transición inválida, error de BD) no
    queda ni la cita ni el cambio de estado.
    """
    entry = get_entry(db, tenant_id, entry_id)
    check_transition(entry, WaitingListStatus.scheduled)
    if data.patient_id != entry.patient_id:
        raise HTTPException(status_code=400, detail="O paciente não corresponde à entrada da lista de espera")

    try:
        appt = create_appointment(db, tenant_id, data, waiting_list_id=entry.id, commit=False)
        entry.status = WaitingListStatus.scheduled
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("Agendamiento desde lista de espera id=%s revertido", entry_id)
        raise
    db.refresh(entry)
    db.refresh(appt)
    logger.info("Lista de espera id=%s agendada → cita id=%s (%s)", entry.id, appt.id, appt.start_datetime)

    patient = entry.patient
    if patient and patient.phone:
        send_scheduled(
            patient.phone,
            patient.name,
            appt.start_datetime,
            professional_name=appt.professional.name if appt.professional else None,
        )
    return entry, appt


def _slot_to_appointment(entry: models.WaitingListEntry, slot: AvailableSlot) -> AppointmentCreate:
    return AppointmentCreate(
        patient_id=entry.patient_id,
        professional_id=slot.professionalId,
        title=entry.procedure.name if entry.procedure else None,
        start_datetime=f"{slot.date}T{slot.startTime}",
        end_datetime=f"{slot.date}T{slot.endTime}",
        service_type=entry.procedure.name if entry.procedure else None,
        notes=entry.notes,
    )


def auto_schedule(db: Session, tenant_id: int, entry_id: int,
                  now: Optional[datetime] = None) -> tuple[models.WaitingListEntry, models.Appointment, AvailableSlot]:
    """Toma el primer slot preferido (o, si no hay, el primer alternativo)."""
    entry = get_entry(db, tenant_id, entry_id)
    if entry.status not in ACTIVE_STATUSES:
        raise HTTPException(
            status_code=409,
            detail=f"Entrada com status {entry.status.value} não pode ser agendada",
        )
    found = suggestions(db, tenant_id, entry_id, now=now)
    candidates = found["preferred"] or found["alternatives"]
    if not candidates:
        raise HTTPException(status_code=400, detail="Nenhum horário disponível para esta entrada")

    slot = candidates[0]
    entry, appt = schedule_from_waiting_list(db, tenant_id, entry_id, _slot_to_appointment(entry, slot))
    return entry, appt, slot
