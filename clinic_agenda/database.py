# clinic_agenda/database.py
from __future__ import annotations
from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from .config import settings

DATABASE_URL: str | None = settings.DATABASE_URL
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL não configurada para a agenda da clínica.")


def _engine_options(url: str) -> dict:
    """Opciones del engine: SQLite de desarrollo o pool compartido entre clínicas."""
    if url.startswith("sqlite"):
        # uvicorn y el job de recordatorios usan la misma conexión
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
    }


engine = create_engine(DATABASE_URL, pool_pre_ping=True, future=True, **_engine_options(DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


class Base(DeclarativeBase):
    """Todas las tablas de la agenda; cada fila de negocio lleva tenant_id."""


def get_db():
    """Sesión por request. Los tests la reemplazan por SQLite en memoria."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Crea tenants, agenda y lista de espera si faltan (arranque de la API)."""
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
