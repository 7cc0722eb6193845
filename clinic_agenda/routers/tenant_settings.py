# clinic_agenda/routers/tenant_settings.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import RequestContext, require_permission
from .. import schemas
from ..services import tenant_settings as ts_service

router = APIRouter(prefix="/api/tenant", tags=["tenant-settings"])

_view = require_permission("settings_view")
_update = require_permission("settings_update")


def _out(ts) -> schemas.TenantSettingsOut:
    return schemas.TenantSettingsOut(
        tenant_id=ts.tenant_id,
        timezone=ts_service.tenant_timezone(ts),
        working_hours=ts.working_hours or {},
        default_appointment_duration=ts.default_appointment_duration,
        min_advance_booking_hours=ts.min_advance_booking_hours,
        max_advance_booking_days=ts.max_advance_booking_days,
        send_appointment_reminders=ts.send_appointment_reminders,
    )


@router.get("/settings", response_model=schemas.TenantSettingsOut)
def get_settings(ctx: RequestContext = Depends(_view), db: Session = Depends(get_db)):
    return _out(ts_service.get_settings(db, ctx.tenant_id))


@router.put("/settings", response_model=schemas.TenantSettingsOut)
def put_settings(req: schemas.TenantSettingsIn, ctx: RequestContext = Depends(_update),
                 db: Session = Depends(get_db)):
    return _out(ts_service.update_settings(db, ctx.tenant_id, req))


# ====== Feriados ======
@router.get("/holidays", response_model=List[schemas.HolidayOut])
def get_holidays(ctx: RequestContext = Depends(_view), db: Session = Depends(get_db)):
    return ts_service.list_holidays(db, ctx.tenant_id)


@router.post("/holidays", response_model=schemas.HolidayOut, status_code=201)
def post_holiday(req: schemas.HolidayIn, ctx: RequestContext = Depends(_update), db: Session = Depends(get_db)):
    return ts_service.add_holiday(db, ctx.tenant_id, req)


@router.delete("/holidays/{holiday_id}")
def remove_holiday(holiday_id: int, ctx: RequestContext = Depends(_update), db: Session = Depends(get_db)):
    ts_service.delete_holiday(db, ctx.tenant_id, holiday_id)
    return {"ok": True, "holiday_id": holiday_id}
