"""
Calendar view rendering

``render_calendar`` turns grid cells plus per-day buckets into a
``CalendarView`` the dashboard draws directly (served as JSON or pushed over
the calendar websocket). ``render_calendar_html`` produces the same view as
an HTML fragment for server-rendered pages.
"""

from datetime import date, datetime
from typing import Optional, Union

from pydantic import BaseModel

from ...utils.sanitization import escape_html
from ..appointments.schemas import AppointmentResponse
from .grid import WEEKDAY_HEADERS, GridCell, grid_title

MONTH_VIEW_CAP = 3

SERVICE_LABELS = {
    "testing": "Drug Testing",
    "web": "Web Design",
    "it": "IT Services",
    "other": "Other",
}

TEST_TYPE_LABELS = {
    "lab": "Lab",
    "poct": "POCT",
    "poct-to-lab": "POCT to Lab",
    "breath-alcohol": "Breath Alcohol",
    "dot": "DOT",
}

_SHORT_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def format_time(value: Optional[str]) -> str:
    """24-hour "HH:MM" as a 12-hour label ("2:30 PM")"""
    if not value:
        return ""
    hours, _, minutes = value.partition(":")
    try:
        hour = int(hours)
    except ValueError:
        return value
    suffix = "PM" if hour >= 12 else "AM"
    return f"{hour % 12 or 12}:{minutes} {suffix}"


def format_service_type(value: Optional[str]) -> str:
    if not value:
        return ""
    return SERVICE_LABELS.get(value, value)


def format_appointment_date(value: Optional[Union[date, datetime]]) -> str:
    if value is None:
        return ""
    return f"{_SHORT_MONTHS[value.month - 1]} {value.day}, {value.year}"


def capitalize_first(value: Optional[str]) -> str:
    if not value:
        return ""
    return value[0].upper() + value[1:]


class PopoverDetail(BaseModel):
    title: str
    date: str
    time: str
    company: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    status: str
    service: str
    drugTesting: Optional[str] = None


class Indicator(BaseModel):
    id: str
    time: str
    title: str
    company: Optional[str] = None
    serviceType: str
    serviceLabel: str
    status: str
    badge: Optional[str] = None
    detail: PopoverDetail


class CellView(BaseModel):
    date: date
    day: int
    in_range: bool
    is_today: bool
    droppable: bool
    indicators: list[Indicator]
    more: int = 0


class CalendarView(BaseModel):
    title: str
    mode: str
    reference: date
    weekdays: list[str]
    cells: list[CellView]


def _drug_testing_summary(appointment: AppointmentResponse) -> Optional[str]:
    testing = appointment.drugTesting
    if testing is None:
        return None
    parts = [TEST_TYPE_LABELS.get(testing.testType, testing.testType)]
    if testing.testingKit:
        parts.append(f"Kit: {testing.testingKit}")
    if testing.substances:
        parts.append(", ".join(capitalize_first(s) for s in testing.substances))
    if testing.cleanCardRequired:
        parts.append("Clean card required")
    return " | ".join(parts)


def build_indicator(appointment: AppointmentResponse, companies: dict[str, str]) -> Indicator:
    company = companies.get(appointment.companyId) if appointment.companyId else None
    time_range = format_time(appointment.startTime)
    if appointment.endTime:
        time_range = f"{time_range} - {format_time(appointment.endTime)}"

    testing = appointment.drugTesting
    return Indicator(
        id=appointment.id,
        time=format_time(appointment.startTime),
        title=appointment.title,
        company=company,
        serviceType=appointment.serviceType,
        serviceLabel=format_service_type(appointment.serviceType),
        status=appointment.status,
        badge=TEST_TYPE_LABELS.get(testing.testType, testing.testType) if testing else None,
        detail=PopoverDetail(
            title=appointment.title,
            date=format_appointment_date(appointment.appointmentDate),
            time=time_range,
            company=company,
            location=appointment.location,
            notes=appointment.notes,
            status=capitalize_first(appointment.status),
            service=format_service_type(appointment.serviceType),
            drugTesting=_drug_testing_summary(appointment),
        ),
    )


def render_calendar(
    cells: list[GridCell],
    buckets: dict[date, list[AppointmentResponse]],
    companies: dict[str, str],
    mode: str,
    reference: Optional[date] = None,
) -> CalendarView:
    """
    Month view shows at most three indicators per day and a "+N more" count
    for the rest; week view shows every appointment. Only in-range cells
    accept drops.
    """
    cap = MONTH_VIEW_CAP if mode == "month" else None
    reference = reference or next((c.date for c in cells if c.in_range), cells[0].date)

    rendered = []
    for cell in cells:
        day_appointments = buckets.get(cell.date, []) if cell.in_range else []
        visible = day_appointments if cap is None else day_appointments[:cap]
        rendered.append(
            CellView(
                date=cell.date,
                day=cell.date.day,
                in_range=cell.in_range,
                is_today=cell.is_today,
                droppable=cell.in_range,
                indicators=[build_indicator(a, companies) for a in visible],
                more=len(day_appointments) - len(visible),
            )
        )

    return CalendarView(
        title=grid_title(reference, mode),
        mode=mode,
        reference=reference,
        weekdays=list(WEEKDAY_HEADERS),
        cells=rendered,
    )


def _indicator_html(indicator: Indicator) -> str:
    detail = indicator.detail
    tooltip = f"{indicator.title} - {indicator.time}"
    parts = [
        f'<div class="appointment-indicator service-{escape_html(indicator.serviceType)} '
        f'status-{escape_html(indicator.status)}" draggable="true" '
        f'data-id="{escape_html(indicator.id)}" title="{escape_html(tooltip)}" '
        f'data-popover-title="{escape_html(detail.title)}" '
        f'data-popover-date="{escape_html(detail.date)}" '
        f'data-popover-time="{escape_html(detail.time)}">',
        f'<span class="appointment-time">{escape_html(indicator.time)}</span>',
        f'<span class="appointment-title">{escape_html(indicator.title)}</span>',
    ]
    if indicator.company:
        parts.append(f'<span class="appointment-company">{escape_html(indicator.company)}</span>')
    if indicator.badge:
        parts.append(f'<span class="drug-test-badge">{escape_html(indicator.badge)}</span>')
    parts.append("</div>")
    return "".join(parts)


def render_calendar_html(view: CalendarView) -> str:
    """Calendar grid as an HTML fragment; every user-entered value is escaped"""
    parts = [
        f'<div class="calendar calendar-{escape_html(view.mode)}">',
        f'<div class="calendar-title">{escape_html(view.title)}</div>',
        '<div class="calendar-weekdays">',
        *(f'<div class="calendar-weekday">{day}</div>' for day in view.weekdays),
        "</div>",
        '<div class="calendar-grid">',
    ]

    for cell in view.cells:
        if not cell.in_range:
            parts.append('<div class="calendar-day empty"></div>')
            continue

        classes = "calendar-day today" if cell.is_today else "calendar-day"
        parts.append(f'<div class="{classes}" data-date="{cell.date.isoformat()}">')
        parts.append(f'<div class="day-number">{cell.day}</div>')
        parts.append('<div class="day-appointments">')
        parts.extend(_indicator_html(indicator) for indicator in cell.indicators)
        if cell.more:
            parts.append(f'<div class="appointment-more">+{cell.more} more</div>')
        parts.append("</div></div>")

    parts.append("</div></div>")
    return "".join(parts)
