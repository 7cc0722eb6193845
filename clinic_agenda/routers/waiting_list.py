# clinic_agenda/routers/waiting_list.py
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import RequestContext, require_permission
from ..models import WaitingListStatus
from .. import schemas
from ..services import waiting_list as wl
from ..services.slot_finder import search_slots
from .slots import slot_criteria

router = APIRouter(prefix="/api/waiting-list", tags=["waiting-list"])

_view = require_permission("waiting_list_view")
_manage = require_permission("waiting_list_manage")
_auto = require_permission("waiting_list_auto_schedule")


# ──────────────────────────────────────────────────────────────────────────────
# Rutas fijas (antes de /{entry_id})
# ──────────────────────────────────────────────────────────────────────────────
@router.get("", response_model=schemas.WaitingListPage)
def list_waiting(
    status: Optional[WaitingListStatus] = Query(default=None),
    priority: Optional[int] = Query(default=None, ge=1, le=5),
    professional_id: Optional[int] = Query(default=None),
    patient_id: Optional[int] = Query(default=None),
    ctx: RequestContext = Depends(_view),
    db: Session = Depends(get_db),
):
    return wl.list_entries(db, ctx.tenant_id, status=status, priority=priority,
                           professional_id=professional_id, patient_id=patient_id)


@router.post("", response_model=schemas.WaitingListOut, status_code=201)
def create_waiting(req: schemas.WaitingListCreate, ctx: RequestContext = Depends(_manage),
                   db: Session = Depends(get_db)):
    return wl.to_out(wl.create_entry(db, ctx.tenant_id, req))


@router.get("/stats", response_model=schemas.WaitingListStats)
def waiting_stats(ctx: RequestContext = Depends(_view), db: Session = Depends(get_db)):
    return wl.stats(db, ctx.tenant_id)


@router.get("/available-slots", response_model=schemas.SlotsResponse)
def waiting_available_slots(
    criteria: schemas.SlotSearchCriteria = Depends(slot_criteria),
    ctx: RequestContext = Depends(_view),
    db: Session = Depends(get_db),
):
    return {"slots": search_slots(db, ctx.tenant_id, criteria)}


@router.post("/bulk-priority")
def bulk_priority(req: schemas.BulkPriorityRequest, ctx: RequestContext = Depends(_manage),
                  db: Session = Depends(get_db)):
    return wl.bulk_priority_change(db, ctx.tenant_id, req.entry_ids, req.priority)


# ──────────────────────────────────────────────────────────────────────────────
# Entrada individual
# ──────────────────────────────────────────────────────────────────────────────
@router.get("/{entry_id}", response_model=schemas.WaitingListOut)
def get_waiting(entry_id: int, ctx: RequestContext = Depends(_view), db: Session = Depends(get_db)):
    return wl.to_out(wl.get_entry(db, ctx.tenant_id, entry_id))


@router.put("/{entry_id}", response_model=schemas.WaitingListOut)
def update_waiting(entry_id: int, req: schemas.WaitingListUpdate, ctx: RequestContext = Depends(_manage),
                   db: Session = Depends(get_db)):
    return wl.to_out(wl.update_entry(db, ctx.tenant_id, entry_id, req))


@router.delete("/{entry_id}")
def delete_waiting(entry_id: int, ctx: RequestContext = Depends(require_permission("super_admin_access")),
                   db: Session = Depends(get_db)):
    wl.delete_entry(db, ctx.tenant_id, entry_id)
    return {"ok": True, "waiting_list_id": entry_id}


@router.patch("/{entry_id}/status", response_model=schemas.WaitingListOut)
def patch_status(entry_id: int, req: schemas.StatusUpdate, ctx: RequestContext = Depends(_manage),
                 db: Session = Depends(get_db)):
    return wl.to_out(wl.change_status(db, ctx.tenant_id, entry_id, req.status))


@router.post("/{entry_id}/contact", response_model=schemas.ContactResponse)
def contact_waiting(entry_id: int, req: schemas.ContactRequest, ctx: RequestContext = Depends(_manage),
                    db: Session = Depends(get_db)):
    return wl.contact(db, ctx.tenant_id, entry_id, req.method)


# ====== Prioridad ======
@router.put("/{entry_id}/priority", response_model=schemas.WaitingListOut)
def set_priority(entry_id: int, req: schemas.PriorityUpdate, ctx: RequestContext = Depends(_manage),
                 db: Session = Depends(get_db)):
    return wl.to_out(wl.update_priority(db, ctx.tenant_id, entry_id, req.priority))


@router.post("/{entry_id}/priority/increment", response_model=schemas.WaitingListOut)
def priority_up(entry_id: int, ctx: RequestContext = Depends(_manage), db: Session = Depends(get_db)):
    return wl.to_out(wl.increment_priority(db, ctx.tenant_id, entry_id))


@router.post("/{entry_id}/priority/decrement", response_model=schemas.WaitingListOut)
def priority_down(entry_id: int, ctx: RequestContext = Depends(_manage), db: Session = Depends(get_db)):
    return wl.to_out(wl.decrement_priority(db, ctx.tenant_id, entry_id))


# ====== Agendamiento ======
def _result(entry, appt, slot=None) -> schemas.ScheduleResult:
    return schemas.ScheduleResult(
        ok=True,
        waiting_list_id=entry.id,
        status=entry.status,
        appointment=schemas.AppointmentOut.model_validate(appt),
        slot=slot,
    )


@router.get("/{entry_id}/suggestions", response_model=schemas.SlotSuggestions)
def slot_suggestions(entry_id: int, ctx: RequestContext = Depends(_view), db: Session = Depends(get_db)):
    return wl.suggestions(db, ctx.tenant_id, entry_id)


@router.post("/{entry_id}/schedule", response_model=schemas.ScheduleResult)
def schedule_entry(entry_id: int, req: schemas.AppointmentCreate,
                   ctx: RequestContext = Depends(require_permission("appointment_create")),
                   db: Session = Depends(get_db)):
    entry, appt = wl.schedule_from_waiting_list(db, ctx.tenant_id, entry_id, req)
    return _result(entry, appt)


@router.post("/{entry_id}/auto-schedule", response_model=schemas.ScheduleResult)
def auto_schedule_entry(entry_id: int, ctx: RequestContext = Depends(_auto), db: Session = Depends(get_db)):
    entry, appt, slot = wl.auto_schedule(db, ctx.tenant_id, entry_id)
    return _result(entry, appt, slot)
