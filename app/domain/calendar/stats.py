"""Dashboard stat tiles for the calendar page"""

import calendar
from datetime import date, datetime, time, timedelta
from typing import Iterable

from pydantic import BaseModel

from ...shared.timeutil import day_bounds
from ..appointments.schemas import AppointmentResponse


class CalendarStats(BaseModel):
    today: int
    week: int
    month: int
    testing: int


def compute_stats(appointments: Iterable[AppointmentResponse], today: date) -> CalendarStats:
    """
    Counts over non-cancelled appointments, with inclusive ranges anchored
    to local midnight:

    - today: today 00:00 through today 23:59:59.999
    - week: today 00:00 through today+7 00:00
    - month: first of the month 00:00 through its last day 23:59:59.999
    - testing: testing appointments from today 00:00 on
    """
    today_start, today_end = day_bounds(today)
    week_end = datetime.combine(today + timedelta(days=7), time.min)
    month_start = datetime.combine(today.replace(day=1), time.min)
    last_day = today.replace(day=calendar.monthrange(today.year, today.month)[1])
    month_end = day_bounds(last_day)[1]

    counts = {"today": 0, "week": 0, "month": 0, "testing": 0}
    for appointment in appointments:
        if appointment.status == "cancelled":
            continue
        at = appointment.appointmentDate
        if today_start <= at <= today_end:
            counts["today"] += 1
        if today_start <= at <= week_end:
            counts["week"] += 1
        if month_start <= at <= month_end:
            counts["month"] += 1
        if appointment.serviceType == "testing" and at >= today_start:
            counts["testing"] += 1
    return CalendarStats(**counts)
