# clinic_agenda/routers/admin.py
from __future__ import annotations
import logging
from datetime import datetime, timedelta
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..deps import require_admin
from .. import models, schemas
from ..services.tenant_settings import DEFAULT_WORKING_HOURS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])

# ──────────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────────
def _parse_date(s: str):
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(status_code=400, detail="Formato de data inválido. Use YYYY-MM-DD.")


def _counts(db: Session, model, *criteria) -> dict[int, int]:
    q = db.query(model.tenant_id, func.count(model.id))
    for c in criteria:
        q = q.filter(c)
    return dict(q.group_by(model.tenant_id).all())


def _overview(tenant: models.Tenant, patients: dict, appts: dict, waiting: dict) -> schemas.TenantOverview:
    return schemas.TenantOverview(
        id=tenant.id,
        name=tenant.name,
        subdomain=tenant.subdomain,
        is_active=tenant.is_active,
        created_at=tenant.created_at,
        patient_count=patients.get(tenant.id, 0),
        appointment_count=appts.get(tenant.id, 0),
        waiting_count=waiting.get(tenant.id, 0),
    )


# ──────────────────────────────────────────────────────────────────────────────
# Básicos
# (main.py monta este router con prefix="/admin")
# ──────────────────────────────────────────────────────────────────────────────
@router.get("/ping")
def admin_ping():
    return {"ok": True, "ts": datetime.utcnow().isoformat()}


@router.get("/health")
def admin_health(db: Session = Depends(get_db)):
    return {
        "ok": True,
        "app": settings.APP_NAME,
        "env": settings.ENV,
        "tz": settings.TIMEZONE,
        "dry_run": settings.DRY_RUN,
        "tenants": db.query(func.count(models.Tenant.id)).scalar() or 0,
        "ts": datetime.utcnow().isoformat(),
    }


# ──────────────────────────────────────────────────────────────────────────────
# Clínicas (tenants)
# ──────────────────────────────────────────────────────────────────────────────
@router.get("/tenants", response_model=List[schemas.TenantOverview], dependencies=[Depends(require_admin)])
def admin_list_tenants(db: Session = Depends(get_db)):
    patients = _counts(db, models.Patient)
    appts = _counts(db, models.Appointment, models.Appointment.status != models.AppointmentStatus.cancelled)
    waiting = _counts(
        db, models.WaitingListEntry,
        models.WaitingListEntry.status.in_([models.WaitingListStatus.waiting, models.WaitingListStatus.contacted]),
    )
    tenants = db.query(models.Tenant).order_by(models.Tenant.id.asc()).all()
    return [_overview(t, patients, appts, waiting) for t in tenants]


@router.post("/tenants", response_model=schemas.TenantOverview, status_code=201,
             dependencies=[Depends(require_admin)])
def admin_create_tenant(req: schemas.TenantIn, db: Session = Depends(get_db)):
    if req.subdomain and db.query(models.Tenant).filter(models.Tenant.subdomain == req.subdomain).first():
        raise HTTPException(status_code=409, detail="Subdomínio já está em uso")
    tenant = models.Tenant(name=req.name, subdomain=req.subdomain, is_active=True)
    tenant.settings = models.TenantSettings(
        timezone=settings.TIMEZONE,
        working_hours=dict(DEFAULT_WORKING_HOURS),
        default_appointment_duration=settings.DEFAULT_SLOT_DURATION_MIN,
    )
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    logger.info("Clínica creada id=%s name=%s", tenant.id, tenant.name)
    return _overview(tenant, {}, {}, {})


@router.patch("/tenants/{tenant_id}", response_model=schemas.TenantOverview, dependencies=[Depends(require_admin)])
def admin_update_tenant(tenant_id: int, req: schemas.TenantUpdate, db: Session = Depends(get_db)):
    tenant = db.get(models.Tenant, tenant_id)
    if not tenant:
        raise HTTPException(status_code=404, detail="Clínica não encontrada")
    for key, value in req.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(tenant, key, value)
    db.commit()
    db.refresh(tenant)
    logger.info("Clínica id=%s actualizada activo=%s", tenant.id, tenant.is_active)
    return _overview(
        tenant,
        _counts(db, models.Patient, models.Patient.tenant_id == tenant.id),
        _counts(db, models.Appointment, models.Appointment.tenant_id == tenant.id,
                models.Appointment.status != models.AppointmentStatus.cancelled),
        _counts(db, models.WaitingListEntry, models.WaitingListEntry.tenant_id == tenant.id,
                models.WaitingListEntry.status.in_([models.WaitingListStatus.waiting,
                                                    models.WaitingListStatus.contacted])),
    )


# ──────────────────────────────────────────────────────────────────────────────
# BD: citas de un día
# ──────────────────────────────────────────────────────────────────────────────
@router.get("/db/appointments", dependencies=[Depends(require_admin)])
def admin_db_appointments(
    date: str = Query(..., description="YYYY-MM-DD"),
    db: Session = Depends(get_db),
):
    """
    Lista las citas en BD para la fecha dada (horas guardadas en NAIVE LOCAL),
    de todas las clínicas.
    """
    d = _parse_date(date)
    start = datetime(d.year, d.month, d.day, 0, 0, 0)
    end = start + timedelta(days=1)

    q = (
        db.query(models.Appointment, models.Patient)
        .join(models.Patient, models.Patient.id == models.Appointment.patient_id)
        .filter(models.Appointment.start_datetime >= start)
        .filter(models.Appointment.start_datetime < end)
        .order_by(models.Appointment.start_datetime.asc())
    )
    items = [{
        "id": ap.id,
        "tenant_id": ap.tenant_id,
        "patient": pa.name,
        "professional_id": ap.professional_id,
        "start_naive_local": ap.start_datetime.isoformat(),
        "end_naive_local": ap.end_datetime.isoformat(),
        "status": ap.status.value,
        "waiting_list_id": ap.waiting_list_id,
    } for ap, pa in q.all()]
    return {"ok": True, "date": date, "count": len(items), "appointments": items}
