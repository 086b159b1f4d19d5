"""Per-day grouping of appointments for placement into grid cells"""

from datetime import date
from typing import Iterable

from ..appointments.schemas import AppointmentResponse
from .grid import GridCell


def bucketize(
    appointments: Iterable[AppointmentResponse], cells: list[GridCell]
) -> dict[date, list[AppointmentResponse]]:
    """
    Map every grid date to its appointments ordered by start time.

    Each appointment lands in exactly one bucket, or none when its day is
    outside the grid. Appointments sharing a start time keep their input
    order. Nothing is filtered by status.
    """
    buckets: dict[date, list[AppointmentResponse]] = {cell.date: [] for cell in cells}
    for appointment in appointments:
        bucket = buckets.get(appointment.day)
        if bucket is not None:
            bucket.append(appointment)

    for bucket in buckets.values():
        # list.sort is stable
        bucket.sort(key=lambda a: a.startTime or "")
    return buckets


def upcoming(
    appointments: Iterable[AppointmentResponse], today: date, limit: int = 10
) -> list[AppointmentResponse]:
    """Today and later, excluding cancelled, ordered by day then start time"""
    selected = [a for a in appointments if a.status != "cancelled" and a.day >= today]
    selected.sort(key=lambda a: (a.day, a.startTime or ""))
    return selected[:limit]
