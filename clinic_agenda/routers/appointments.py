# clinic_agenda/routers/appointments.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from dateutil import parser as dtparser
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import RequestContext, require_permission
from .. import schemas
from ..services import appointments as appts
from ..services.slot_finder import search_slots
from .slots import slot_criteria

router = APIRouter(prefix="/api/appointments", tags=["appointments"])


def _parse_dt(value: Optional[str], name: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return dtparser.parse(value).replace(tzinfo=None)
    except (ValueError, OverflowError):
        raise HTTPException(status_code=400, detail=f"Parâmetro '{name}' inválido. Use YYYY-MM-DD ou ISO 8601.")


@router.get("/available-slots", response_model=schemas.SlotsResponse)
def appointment_slots(
    criteria: schemas.SlotSearchCriteria = Depends(slot_criteria),
    ctx: RequestContext = Depends(require_permission("appointment_view")),
    db: Session = Depends(get_db),
):
    return {"slots": search_slots(db, ctx.tenant_id, criteria)}


@router.get("", response_model=List[schemas.AppointmentOut])
def list_appointments(
    start: Optional[str] = Query(default=None, description="YYYY-MM-DD o ISO"),
    end: Optional[str] = Query(default=None, description="YYYY-MM-DD o ISO"),
    professional_id: Optional[int] = Query(default=None),
    ctx: RequestContext = Depends(require_permission("appointment_view")),
    db: Session = Depends(get_db),
):
    return appts.list_appointments(
        db, ctx.tenant_id,
        start=_parse_dt(start, "start"),
        end=_parse_dt(end, "end"),
        professional_id=professional_id,
    )


@router.post("", response_model=schemas.AppointmentOut, status_code=201)
def create_appointment(req: schemas.AppointmentCreate,
                       ctx: RequestContext = Depends(require_permission("appointment_create")),
                       db: Session = Depends(get_db)):
    return appts.create_appointment(db, ctx.tenant_id, req)


@router.put("/{appointment_id}/status", response_model=schemas.AppointmentOut)
def update_appointment_status(appointment_id: int, req: schemas.AppointmentStatusUpdate,
                              ctx: RequestContext = Depends(require_permission("appointment_update")),
                              db: Session = Depends(get_db)):
    return appts.update_status(db, ctx.tenant_id, appointment_id, req.status)
