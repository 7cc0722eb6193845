import os

# Antes de importar la app: BD en memoria, sin envíos reales ni LLM
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DRY_RUN"] = "true"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["OPENAI_API_KEY"] = ""
os.environ["TWILIO_ACCOUNT_SID"] = ""
os.environ["TWILIO_AUTH_TOKEN"] = ""
os.environ["REMINDERS_ENABLED"] = "false"

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_agenda import models
from clinic_agenda.database import Base, get_db
from clinic_agenda.main import app
from clinic_agenda.services import slot_finder

ADMIN_TOKEN = "test-admin-token"

# Lunes 07/01/2030, 07:00 hora local de la clínica
NOW = datetime(2030, 1, 7, 7, 0)

WORKING_HOURS = {
    "monday":    {"enabled": True, "start": "08:00", "end": "18:00", "break_start": "12:00", "break_end": "13:00"},
    "tuesday":   {"enabled": True, "start": "08:00", "end": "18:00", "break_start": "12:00", "break_end": "13:00"},
    "wednesday": {"enabled": True, "start": "08:00", "end": "18:00", "break_start": "12:00", "break_end": "13:00"},
    "thursday":  {"enabled": True, "start": "08:00", "end": "18:00", "break_start": "12:00", "break_end": "13:00"},
    "friday":    {"enabled": True, "start": "08:00", "end": "18:00", "break_start": "12:00", "break_end": "13:00"},
    "saturday":  {"enabled": False, "start": "08:00", "end": "12:00"},
    "sunday":    {"enabled": False, "start": "08:00", "end": "12:00"},
}


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def frozen_now(monkeypatch):
    monkeypatch.setattr(slot_finder, "_now_local", lambda tz_name: NOW)
    return NOW


# ====== Datos de prueba ======
def make_tenant(db, name="Clínica Bela Pele", working_hours=None, **settings_kwargs):
    tenant = models.Tenant(name=name, is_active=True)
    tenant.settings = models.TenantSettings(
        timezone="America/Sao_Paulo",
        working_hours=working_hours or WORKING_HOURS,
        **settings_kwargs,
    )
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


def make_patient(db, tenant, name="Ana Souza", phone="+55 11 99999-0000"):
    p = models.Patient(tenant_id=tenant.id, name=name, phone=phone)
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


def make_professional(db, tenant, name="Dra. Carla Lima", **kwargs):
    p = models.Professional(tenant_id=tenant.id, name=name, **kwargs)
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


def make_procedure(db, tenant, name="Limpeza de pele", duration_minutes=60):
    p = models.Procedure(tenant_id=tenant.id, name=name, duration_minutes=duration_minutes)
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


def make_entry(db, tenant, patient, professional=None, procedure=None, **kwargs):
    e = models.WaitingListEntry(
        tenant_id=tenant.id,
        patient_id=patient.id,
        professional_id=professional.id if professional else None,
        procedure_id=procedure.id if procedure else None,
        **kwargs,
    )
    db.add(e)
    db.commit()
    db.refresh(e)
    return e


def make_appointment(db, tenant, patient, professional, start, end, **kwargs):
    a = models.Appointment(
        tenant_id=tenant.id,
        patient_id=patient.id,
        professional_id=professional.id,
        start_datetime=start,
        end_datetime=end,
        **kwargs,
    )
    db.add(a)
    db.commit()
    db.refresh(a)
    return a


def headers(tenant, role="clinic_owner", user_id="u-1", admin=False):
    h = {"X-Tenant-Id": str(tenant.id), "X-User-Id": user_id, "X-User-Role": role}
    if admin:
        h["X-Admin-Token"] = ADMIN_TOKEN
    return h


@pytest.fixture()
def clinic(db):
    """Clínica con un paciente, una profesional y un procedimiento de 60 min."""
    tenant = make_tenant(db)
    return {
        "tenant": tenant,
        "patient": make_patient(db, tenant),
        "professional": make_professional(db, tenant),
        "procedure": make_procedure(db, tenant),
    }

