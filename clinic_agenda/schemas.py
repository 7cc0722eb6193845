from datetime import date, datetime, time
from typing import Optional

import pytz
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import settings
from .models import AppointmentStatus, ContactMethod, HolidayType, WaitingListStatus
from .services.availability import DAY_KEYS, validate_day_hours


def _legacy_professional(data):
    # dentist_id: nombre viejo de professional_id (clientes antiguos lo siguen mandando)
    if isinstance(data, dict) and data.get("dentist_id") is not None and data.get("professional_id") is None:
        data = {**data, "professional_id": data["dentist_id"]}
    return data


# ====== Horario ======
class DayHours(BaseModel):
    enabled: bool = False
    start: str = "08:00"
    end: str = "18:00"
    break_start: Optional[str] = None
    break_end: Optional[str] = None

    @field_validator("break_start", "break_end", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        # La UI limpia la pausa enviando ""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def _check(self):
        validate_day_hours(self.model_dump())
        return self


def _check_day_keys(v: Optional[dict]) -> Optional[dict]:
    if v is None:
        return v
    unknown = set(v) - set(DAY_KEYS)
    if unknown:
        raise ValueError(f"Dias inválidos: {', '.join(sorted(unknown))}")
    return v


class TenantSettingsIn(BaseModel):
    timezone: Optional[str] = None
    working_hours: Optional[dict[str, DayHours]] = None
    default_appointment_duration: Optional[int] = Field(default=None, ge=5, le=480)
    min_advance_booking_hours: Optional[int] = Field(default=None, ge=0, le=720)
    max_advance_booking_days: Optional[int] = Field(default=None, ge=1, le=365)
    send_appointment_reminders: Optional[bool] = None

    @field_validator("working_hours")
    @classmethod
    def check_days(cls, v):
        return _check_day_keys(v)

    @field_validator("timezone")
    @classmethod
    def _known_tz(cls, v):
        if v is not None and v not in pytz.all_timezones_set:
            raise ValueError(f"Fuso horário desconhecido: {v}")
        return v


class TenantSettingsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tenant_id: int
    timezone: str
    working_hours: dict[str, DayHours]
    default_appointment_duration: int
    min_advance_booking_hours: int
    max_advance_booking_days: int
    send_appointment_reminders: bool


class HolidayIn(BaseModel):
    name: str = Field(min_length=1)
    date: date
    is_recurring: bool = False
    holiday_type: HolidayType = HolidayType.closed
    special_open_time: Optional[time] = None
    special_close_time: Optional[time] = None

    @model_validator(mode="after")
    def _special_hours(self):
        if self.holiday_type == HolidayType.special_hours:
            if not self.special_open_time or not self.special_close_time:
                raise ValueError("Horário especial precisa de abertura e fechamento")
            if self.special_open_time >= self.special_close_time:
                raise ValueError("A abertura deve ser anterior ao fechamento")
        return self


class HolidayOut(HolidayIn):
    model_config = ConfigDict(from_attributes=True)

    id: int


# ====== Cadastro básico ======
class PatientIn(BaseModel):
    name: str = Field(min_length=1)
    phone: Optional[str] = None
    email: Optional[str] = None


class PatientOut(PatientIn):
    model_config = ConfigDict(from_attributes=True)

    id: int


class ProfessionalIn(BaseModel):
    name: str = Field(min_length=1)
    is_active: bool = True
    working_hours: Optional[dict[str, DayHours]] = None

    @field_validator("working_hours")
    @classmethod
    def check_days(cls, v):
        return _check_day_keys(v)


class ProfessionalUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    is_active: Optional[bool] = None
    working_hours: Optional[dict[str, DayHours]] = None

    @field_validator("working_hours")
    @classmethod
    def check_days(cls, v):
        return _check_day_keys(v)


class ProfessionalOut(ProfessionalIn):
    model_config = ConfigDict(from_attributes=True)

    id: int


class ProcedureIn(BaseModel):
    name: str = Field(min_length=1)
    duration_minutes: Optional[int] = Field(default=None, ge=5, le=480)


class ProcedureOut(ProcedureIn):
    model_config = ConfigDict(from_attributes=True)

    id: int


# ====== Lista de espera ======
class WaitingListCreate(BaseModel):
    patient_id: int
    professional_id: Optional[int] = None
    procedure_id: Optional[int] = None
    preferred_date: Optional[date] = None
    preferred_time_start: Optional[time] = None
    preferred_time_end: Optional[time] = None
    priority: int = Field(default=1, ge=1, le=5)
    notes: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def legacy_fields(cls, data):
        return _legacy_professional(data)

    @model_validator(mode="after")
    def _time_window(self):
        if self.preferred_time_start and self.preferred_time_end:
            if self.preferred_time_start >= self.preferred_time_end:
                raise ValueError("O horário preferido de início deve ser anterior ao de fim")
        return self


class WaitingListUpdate(BaseModel):
    patient_id: Optional[int] = None
    professional_id: Optional[int] = None
    procedure_id: Optional[int] = None
    preferred_date: Optional[date] = None
    preferred_time_start: Optional[time] = None
    preferred_time_end: Optional[time] = None
    priority: Optional[int] = Field(default=None, ge=1, le=5)
    status: Optional[WaitingListStatus] = None
    notes: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def legacy_fields(cls, data):
        return _legacy_professional(data)


class WaitingListOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    patient_id: int
    professional_id: Optional[int] = None
    procedure_id: Optional[int] = None
    preferred_date: Optional[date] = None
    preferred_time_start: Optional[time] = None
    preferred_time_end: Optional[time] = None
    priority: int
    status: WaitingListStatus
    notes: Optional[str] = None
    created_at: datetime
    patient_name: Optional[str] = None
    patient_phone: Optional[str] = None
    professional_name: Optional[str] = None
    procedure_name: Optional[str] = None


class WaitingListPage(BaseModel):
    results: list[WaitingListOut]
    total: int


class StatusUpdate(BaseModel):
    status: WaitingListStatus


class ContactRequest(BaseModel):
    method: ContactMethod


class ContactResponse(BaseModel):
    ok: bool
    waiting_list_id: int
    method: ContactMethod
    delivery: str
    status: WaitingListStatus


class PriorityUpdate(BaseModel):
    priority: int = Field(ge=1, le=5)


class BulkPriorityRequest(BaseModel):
    entry_ids: list[int] = Field(min_length=1)
    priority: int = Field(ge=1, le=5)


class PriorityStat(BaseModel):
    priority: int
    count: int
    label: str


class WaitingListStats(BaseModel):
    total: int
    by_status: dict[str, int]
    by_priority: list[PriorityStat]


# ====== Citas ======
class AppointmentCreate(BaseModel):
    """
    Acepta start_datetime/end_datetime o el formulario manual
    (date + start_time + end_time). Todo se valida antes de tocar la BD.
    """
    patient_id: int
    professional_id: int
    title: Optional[str] = None
    start_datetime: datetime
    end_datetime: datetime
    service_type: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_form(cls, data):
        data = _legacy_professional(data)
        if not isinstance(data, dict):
            return data
        if data.get("appointment_type") and not data.get("service_type"):
            data = {**data, "service_type": data["appointment_type"]}
        if "start_datetime" not in data and "end_datetime" not in data and "date" in data:
            day, start, end = data.get("date"), data.get("start_time"), data.get("end_time")
            if not day or not start or not end:
                raise ValueError("Data, horário de início e horário de fim são obrigatórios")
            data = {
                **data,
                "start_datetime": f"{day}T{start}",
                "end_datetime": f"{day}T{end}",
            }
        return data

    @model_validator(mode="after")
    def _order(self):
        # Con offset: services.appointments lo pasa a la hora local del tenant
        if (self.start_datetime.tzinfo is None) != (self.end_datetime.tzinfo is None):
            raise ValueError("Início e fim devem usar o mesmo formato de fuso horário")
        if self.start_datetime >= self.end_datetime:
            raise ValueError("Horário de início deve ser anterior ao horário de fim")
        return self


class AppointmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    patient_id: int
    professional_id: int
    waiting_list_id: Optional[int] = None
    title: Optional[str] = None
    start_datetime: datetime
    end_datetime: datetime
    status: AppointmentStatus
    service_type: Optional[str] = None
    notes: Optional[str] = None


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


# ====== Slots ======
class SlotSearchCriteria(BaseModel):
    professional_id: Optional[int] = None
    preferred_date: Optional[date] = None
    preferred_time_start: Optional[time] = None
    preferred_time_end: Optional[time] = None
    duration_minutes: Optional[int] = Field(default=None, ge=5, le=480)
    days_ahead: Optional[int] = Field(default=None, ge=1)

    @field_validator("days_ahead")
    @classmethod
    def _horizon(cls, v):
        if v is not None and v > settings.MAX_DAYS_AHEAD:
            raise ValueError(f"days_ahead deve ser no máximo {settings.MAX_DAYS_AHEAD}")
        return v


class AvailableSlot(BaseModel):
    date: str
    startTime: str
    endTime: str
    professionalId: int
    professionalName: str


class SlotsResponse(BaseModel):
    slots: list[AvailableSlot]


class SlotSuggestions(BaseModel):
    waiting_list_id: int
    preferred: list[AvailableSlot]
    alternatives: list[AvailableSlot]


class ScheduleResult(BaseModel):
    ok: bool
    waiting_list_id: int
    status: WaitingListStatus
    appointment: AppointmentOut
    slot: Optional[AvailableSlot] = None


# ====== Super admin ======
class TenantIn(BaseModel):
    name: str = Field(min_length=1)
    subdomain: Optional[str] = None


class TenantUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    is_active: Optional[bool] = None


class TenantOverview(BaseModel):
    id: int
    name: str
    subdomain: Optional[str] = None
    is_active: bool
    created_at: datetime
    patient_count: int = 0
    appointment_count: int = 0
    waiting_count: int = 0
