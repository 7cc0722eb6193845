# clinic_agenda/routers/slots.py
from datetime import date, time
from typing import Optional

from fastapi import HTTPException, Query
from pydantic import ValidationError
from ..schemas import SlotSearchCriteria


def slot_criteria(
    professional_id: Optional[int] = Query(default=None),
    dentist_id: Optional[int] = Query(default=None, include_in_schema=False),
    preferred_date: Optional[date] = Query(default=None),
    preferred_time_start: Optional[time] = Query(default=None),
    preferred_time_end: Optional[time] = Query(default=None),
    duration_minutes: Optional[int] = Query(default=None),
    days_ahead: Optional[int] = Query(default=None),
) -> SlotSearchCriteria:
    try:
        return SlotSearchCriteria(
            professional_id=professional_id if professional_id is not None else dentist_id,
            preferred_date=preferred_date,
            preferred_time_start=preferred_time_start,
            preferred_time_end=preferred_time_end,
            duration_minutes=duration_minutes,
            days_ahead=days_ahead,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
