# clinic_agenda/models.py
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    Integer, String, DateTime, Date, Time, Enum, ForeignKey, Boolean, Text, JSON,
)
from datetime import datetime, date, time
import enum
from .database import Base


class WaitingListStatus(str, enum.Enum):
    waiting = "waiting"
    contacted = "contacted"
    scheduled = "scheduled"
    cancelled = "cancelled"


class AppointmentStatus(str, enum.Enum):
    scheduled = "scheduled"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"


class ContactMethod(str, enum.Enum):
    phone = "phone"
    whatsapp = "whatsapp"
    email = "email"


class HolidayType(str, enum.Enum):
    closed = "closed"
    special_hours = "special_hours"
    half_day = "half_day"


class Tenant(Base):
    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    subdomain: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    settings = relationship(
        "TenantSettings",
        back_populates="tenant",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class TenantSettings(Base):
    __tablename__ = "tenant_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    timezone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    # {"monday": {"enabled": true, "start": "08:00", "end": "18:00", "break_start": "12:00", ...}, ...}
    working_hours: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    default_appointment_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    min_advance_booking_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_advance_booking_days: Mapped[int] = mapped_column(Integer, nullable=False, default=90)
    send_appointment_reminders: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tenant = relationship("Tenant", back_populates="settings")


class TenantHoliday(Base):
    __tablename__ = "tenant_holidays"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    holiday_type: Mapped[HolidayType] = mapped_column(
        Enum(HolidayType, name="holiday_type"), nullable=False, default=HolidayType.closed
    )
    special_open_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    special_close_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)


class Patient(Base):
    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Professional(Base):
    __tablename__ = "professionals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Si es NULL se usa el horario del tenant
    working_hours: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)


class Procedure(Base):
    __tablename__ = "procedures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class WaitingListEntry(Base):
    __tablename__ = "waiting_list"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    patient_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False
    )
    professional_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("professionals.id", ondelete="SET NULL"), nullable=True
    )
    procedure_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("procedures.id", ondelete="SET NULL"), nullable=True
    )
    preferred_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    preferred_time_start: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    preferred_time_end: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=1, index=True)
    status: Mapped[WaitingListStatus] = mapped_column(
        Enum(WaitingListStatus, name="waiting_list_status"),
        nullable=False,
        default=WaitingListStatus.waiting,
        index=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    patient = relationship("Patient")
    professional = relationship("Professional")
    procedure = relationship("Procedure")
    contacts = relationship(
        "ContactLog",
        back_populates="entry",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    patient_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False
    )
    professional_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    waiting_list_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("waiting_list.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    # Hora local NAIVE del tenant
    start_datetime: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    end_datetime: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(AppointmentStatus, name="appointment_status"),
        nullable=False,
        default=AppointmentStatus.scheduled,
    )
    service_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    patient = relationship("Patient")
    professional = relationship("Professional")


class ContactLog(Base):
    __tablename__ = "contact_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    waiting_list_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("waiting_list.id", ondelete="CASCADE"), nullable=False
    )
    method: Mapped[ContactMethod] = mapped_column(Enum(ContactMethod, name="contact_method"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="logged")  # sent/dry_run/mock/failed/logged
    payload: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    entry = relationship("WaitingListEntry", back_populates="contacts")
