from datetime import date, datetime, time
from types import SimpleNamespace

from clinic_agenda import models
from clinic_agenda.schemas import AvailableSlot
from clinic_agenda.services.slot_finder import (
    ProfessionalHours,
    generate_slots,
    is_preferred_slot,
    split_by_preference,
)

from conftest import WORKING_HOURS

MONDAY = date(2030, 1, 7)
CARLA = ProfessionalHours(id=1, name="Dra. Carla", working_hours=WORKING_HOURS)
BRUNO = ProfessionalHours(id=2, name="Dr. Bruno", working_hours=WORKING_HOURS)


def _starts(slots):
    return [s.startTime for s in slots]


def test_hourly_grid_skips_break():
    slots = generate_slots([CARLA], {}, MONDAY, 1, 60)
    assert _starts(slots) == ["08:00", "09:00", "10:00", "11:00", "13:00", "14:00", "15:00", "16:00", "17:00"]
    assert all(s.date == "2030-01-07" and s.professionalId == 1 for s in slots)


def test_grid_reanchors_after_break():
    slots = generate_slots([CARLA], {}, MONDAY, 1, 90)
    assert _starts(slots) == ["08:00", "09:30", "13:00", "14:30", "16:00"]
    assert slots[-1].endTime == "17:30"


def test_busy_appointments_remove_overlapping_slots():
    busy = {1: [(datetime(2030, 1, 7, 9, 30), datetime(2030, 1, 7, 10, 30))]}
    slots = generate_slots([CARLA], busy, MONDAY, 1, 60)
    assert "09:00" not in _starts(slots)
    assert "10:00" not in _starts(slots)
    assert "11:00" in _starts(slots)


def test_busy_is_per_professional():
    busy = {1: [(datetime(2030, 1, 7, 8, 0), datetime(2030, 1, 7, 9, 0))]}
    slots = generate_slots([CARLA, BRUNO], busy, MONDAY, 1, 60)
    at_eight = [s.professionalId for s in slots if s.startTime == "08:00"]
    assert at_eight == [2]


def test_not_before_and_disabled_days():
    # sábado y domingo están deshabilitados
    slots = generate_slots([CARLA], {}, date(2030, 1, 11), 3, 60, not_before=datetime(2030, 1, 11, 15, 0))
    assert {s.date for s in slots} == {"2030-01-11"}
    assert _starts(slots) == ["15:00", "16:00", "17:00"]


def test_closed_holiday_removes_day():
    holiday = models.TenantHoliday(tenant_id=1, name="Feriado", date=MONDAY, is_recurring=False,
                                   holiday_type=models.HolidayType.closed)
    slots = generate_slots([CARLA], {}, MONDAY, 2, 60, holidays=[holiday])
    assert {s.date for s in slots} == {"2030-01-08"}


def test_order_and_idempotence():
    a = generate_slots([BRUNO, CARLA], {}, MONDAY, 2, 60)
    b = generate_slots([BRUNO, CARLA], {}, MONDAY, 2, 60)
    assert a == b
    keys = [(s.date, s.startTime, s.professionalId) for s in a]
    assert keys == sorted(keys)
    assert keys[:2] == [("2030-01-07", "08:00", 1), ("2030-01-07", "08:00", 2)]


# ====== Preferencias ======
def _slot(day="2030-01-07", start="14:00", end="15:00"):
    return AvailableSlot(date=day, startTime=start, endTime=end, professionalId=1, professionalName="Dra. Carla")


def test_no_preferences_means_alternative():
    assert is_preferred_slot(_slot()) is False


def test_preferred_date_only():
    assert is_preferred_slot(_slot(), preferred_date=MONDAY)
    assert not is_preferred_slot(_slot(day="2030-01-08"), preferred_date=MONDAY)


def test_preferred_time_window():
    kw = {"preferred_time_start": time(14, 0), "preferred_time_end": time(16, 0)}
    assert is_preferred_slot(_slot(start="14:00", end="15:00"), **kw)
    assert is_preferred_slot(_slot(start="15:00", end="16:00"), **kw)
    assert not is_preferred_slot(_slot(start="15:30", end="16:30"), **kw)
    assert not is_preferred_slot(_slot(start="13:00", end="14:00"), **kw)


def test_split_by_preference_keeps_order():
    slots = generate_slots([CARLA], {}, MONDAY, 2, 60)
    entry = SimpleNamespace(preferred_date=MONDAY, preferred_time_start=time(14, 0), preferred_time_end=time(16, 0))
    preferred, alternatives = split_by_preference(slots, entry)
    assert _starts(preferred) == ["14:00", "15:00"]
    assert len(preferred) + len(alternatives) == len(slots)
    assert alternatives[0].startTime == "08:00"
