# clinic_agenda/routers/registry.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import RequestContext, require_permission
from .. import models, schemas

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["registry"])

_view = require_permission("registry_view")
_manage = require_permission("registry_manage")


def _add(db: Session, row):
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Alta %s id=%s tenant=%s", type(row).__name__, row.id, row.tenant_id)
    return row


# ====== Pacientes ======
@router.get("/patients", response_model=List[schemas.PatientOut])
def list_patients(q: Optional[str] = Query(default=None, description="Busca por nome"),
                  ctx: RequestContext = Depends(_view), db: Session = Depends(get_db)):
    query = db.query(models.Patient).filter(models.Patient.tenant_id == ctx.tenant_id)
    if q:
        query = query.filter(models.Patient.name.ilike(f"%{q.strip()}%"))
    return query.order_by(models.Patient.name.asc()).all()


@router.post("/patients", response_model=schemas.PatientOut, status_code=201)
def create_patient(req: schemas.PatientIn, ctx: RequestContext = Depends(_manage), db: Session = Depends(get_db)):
    return _add(db, models.Patient(tenant_id=ctx.tenant_id, **req.model_dump()))


# ====== Profesionales ======
@router.get("/professionals", response_model=List[schemas.ProfessionalOut])
def list_professionals(active_only: bool = Query(default=False),
                       ctx: RequestContext = Depends(_view), db: Session = Depends(get_db)):
    query = db.query(models.Professional).filter(models.Professional.tenant_id == ctx.tenant_id)
    if active_only:
        query = query.filter(models.Professional.is_active.is_(True))
    return query.order_by(models.Professional.id.asc()).all()


@router.post("/professionals", response_model=schemas.ProfessionalOut, status_code=201)
def create_professional(req: schemas.ProfessionalIn, ctx: RequestContext = Depends(_manage),
                        db: Session = Depends(get_db)):
    return _add(db, models.Professional(tenant_id=ctx.tenant_id, **req.model_dump()))


@router.put("/professionals/{professional_id}", response_model=schemas.ProfessionalOut)
def update_professional(professional_id: int, req: schemas.ProfessionalUpdate,
                        ctx: RequestContext = Depends(_manage), db: Session = Depends(get_db)):
    prof = (
        db.query(models.Professional)
        .filter(models.Professional.id == professional_id, models.Professional.tenant_id == ctx.tenant_id)
        .first()
    )
    if not prof:
        raise HTTPException(status_code=404, detail="Profissional não encontrado")
    updates = req.model_dump(exclude_unset=True)
    for key in ("name", "is_active"):
        if key in updates and updates[key] is None:
            updates.pop(key)
    for key, value in updates.items():
        setattr(prof, key, value)
    db.commit()
    db.refresh(prof)
    logger.info("Profesional id=%s actualizado campos=%s", prof.id, sorted(req.model_fields_set))
    return prof


# ====== Procedimientos ======
@router.get("/procedures", response_model=List[schemas.ProcedureOut])
def list_procedures(ctx: RequestContext = Depends(_view), db: Session = Depends(get_db)):
    return (
        db.query(models.Procedure)
        .filter(models.Procedure.tenant_id == ctx.tenant_id)
        .order_by(models.Procedure.name.asc())
        .all()
    )


@router.post("/procedures", response_model=schemas.ProcedureOut, status_code=201)
def create_procedure(req: schemas.ProcedureIn, ctx: RequestContext = Depends(_manage), db: Session = Depends(get_db)):
    return _add(db, models.Procedure(tenant_id=ctx.tenant_id, **req.model_dump()))
