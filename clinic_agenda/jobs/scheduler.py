# clinic_agenda/jobs/scheduler.py
import logging
from datetime import datetime, timedelta
from typing import Optional

import pytz
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session

from ..config import settings
from ..database import SessionLocal
from ..models import Appointment, AppointmentStatus, Tenant
from ..services.notifications import send_reminder
from ..services.tenant_settings import get_settings, tenant_timezone

logger = logging.getLogger(__name__)

_scheduler: Optional[BackgroundScheduler] = None


def send_due_reminders(db: Session, now_utc: Optional[datetime] = None) -> int:
    """
    Envía recordatorios de las citas que empiezan dentro de
    REMINDER_HOURS_BEFORE horas (ventana de una hora), por clínica y en su TZ.
    """
    now_utc = now_utc or datetime.now(pytz.utc)
    sent = 0
    for tenant in db.query(Tenant).filter(Tenant.is_active.is_(True)).all():
        ts = get_settings(db, tenant.id)
        if not ts.send_appointment_reminders:
            continue
        now_local = now_utc.astimezone(pytz.timezone(tenant_timezone(ts))).replace(tzinfo=None)
        target = now_local + timedelta(hours=settings.REMINDER_HOURS_BEFORE)
        start = target.replace(minute=0, second=0, microsecond=0)
        end = start + timedelta(hours=1)

        appts = (
            db.query(Appointment)
            .filter(Appointment.tenant_id == tenant.id)
            .filter(Appointment.start_datetime >= start)
            .filter(Appointment.start_datetime < end)
            .filter(Appointment.status.in_([AppointmentStatus.scheduled, AppointmentStatus.confirmed]))
            .all()
        )
        for a in appts:
            phone = a.patient.phone if a.patient else None
            if phone:
                send_reminder(phone, a.patient.name, a.start_datetime)
                sent += 1
    return sent


def reminder_job():
    db: Session = SessionLocal()
    try:
        sent = send_due_reminders(db)
        logger.info("reminder_job: %d recordatorios enviados", sent)
    except Exception:
        logger.exception("reminder_job falló")
    finally:
        db.close()


def start_scheduler() -> BackgroundScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler(timezone=settings.TIMEZONE)
        _scheduler.add_job(reminder_job, CronTrigger(minute=0))  # cada hora
        _scheduler.start()
        logger.info("Scheduler iniciado (recordatorios %dh antes)", settings.REMINDER_HOURS_BEFORE)
    return _scheduler


def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
