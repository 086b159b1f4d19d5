"""Date grid for the month and week calendar views"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Literal, Optional

ViewMode = Literal["month", "week"]
VIEW_MODES: tuple[str, ...] = ("month", "week")

WEEKDAY_HEADERS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


@dataclass(frozen=True)
class GridCell:
    date: date
    in_range: bool
    is_today: bool


def sunday_index(day: date) -> int:
    """Weekday with Sunday as 0"""
    return (day.weekday() + 1) % 7


def week_start(day: date) -> date:
    """The Sunday on or before ``day``"""
    return day - timedelta(days=sunday_index(day))


def build_grid(reference: date, mode: str, today: Optional[date] = None) -> list[GridCell]:
    """
    Calendar cells for the view containing ``reference``.

    Month view: one padding cell per weekday before the 1st (dated with the
    previous month's trailing days, not in range), then every day of the month.
    The grid stops at the last day and never spills into the next month.
    Week view: the 7 days from the Sunday on or before ``reference``.
    """
    today = today or date.today()

    if mode == "week":
        start = week_start(reference)
        days = [start + timedelta(days=i) for i in range(7)]
        return [GridCell(d, True, d == today) for d in days]

    if mode != "month":
        raise ValueError(f"Unknown view mode: {mode}")

    first = reference.replace(day=1)
    days_in_month = calendar.monthrange(first.year, first.month)[1]
    leading = sunday_index(first)

    cells = [
        GridCell(first - timedelta(days=leading - i), False, False) for i in range(leading)
    ]
    for offset in range(days_in_month):
        day = first + timedelta(days=offset)
        cells.append(GridCell(day, True, day == today))
    return cells


def shift_reference(reference: date, mode: str, step: int) -> date:
    """Move the reference date ``step`` months or weeks; month steps clamp the day"""
    if mode == "week":
        return reference + timedelta(weeks=step)

    month_index = reference.year * 12 + (reference.month - 1) + step
    year, month = divmod(month_index, 12)
    month += 1
    day = min(reference.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def grid_title(reference: date, mode: str) -> str:
    """Header text: "March 2024" for a month, "Mar 10 - Mar 16, 2024" for a week"""
    if mode == "week":
        start = week_start(reference)
        end = start + timedelta(days=6)
        start_label = f"{MONTH_NAMES[start.month - 1][:3]} {start.day}"
        end_label = f"{MONTH_NAMES[end.month - 1][:3]} {end.day}, {end.year}"
        if start.year != end.year:
            start_label = f"{start_label}, {start.year}"
        return f"{start_label} - {end_label}"
    return f"{MONTH_NAMES[reference.month - 1]} {reference.year}"


def grid_range(cells: list[GridCell]) -> tuple[date, date]:
    """First and last date covered by the grid"""
    return cells[0].date, cells[-1].date
