# clinic_agenda/main.py
import os
import logging

from fastapi import FastAPI

from .config import settings
from .database import init_db
from .jobs.scheduler import start_scheduler, shutdown_scheduler

# Routers
from .routers.waiting_list import router as waiting_list_router
from .routers.appointments import router as appointments_router
from .routers.tenant_settings import router as tenant_settings_router
from .routers.registry import router as registry_router
from .routers.admin import router as admin_router

# ──────────────────────────────────────────────────────────────────────────────
# LOGGING
# Controla niveles con variables de entorno:
#   LOG_LEVEL, SQLA_LOG_LEVEL, UVICORN_LOG_LEVEL
# ──────────────────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logging.getLogger("sqlalchemy.engine").setLevel(
    getattr(logging, os.getenv("SQLA_LOG_LEVEL", "WARNING"), logging.WARNING)
)
logging.getLogger("uvicorn.error").setLevel(
    getattr(logging, os.getenv("UVICORN_LOG_LEVEL", "INFO"), logging.INFO)
)

logger = logging.getLogger(__name__)

# ──────────────────────────────────────────────────────────────────────────────
# FastAPI App
# ──────────────────────────────────────────────────────────────────────────────
app = FastAPI(title=settings.APP_NAME)

app.include_router(waiting_list_router)
app.include_router(appointments_router)
app.include_router(tenant_settings_router)
app.include_router(registry_router)
app.include_router(admin_router, prefix="/admin")  # admin.py NO repite /admin


# ──────────────────────────────────────────────────────────────────────────────
# Ciclo de vida
# ──────────────────────────────────────────────────────────────────────────────
@app.on_event("startup")
def on_startup():
    init_db()
    if settings.REMINDERS_ENABLED:
        start_scheduler()
    logger.info("Startup completo: %s (%s)", settings.APP_NAME, settings.ENV)


@app.on_event("shutdown")
def on_shutdown():
    shutdown_scheduler()


@app.get("/")
def root():
    return {"ok": True, "app": settings.APP_NAME, "env": settings.ENV}
