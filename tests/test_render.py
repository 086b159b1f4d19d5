"""Tests for calendar view rendering and popover placement."""

from datetime import date

from app.domain.appointments.schemas import DrugTesting
from app.domain.calendar.buckets import bucketize
from app.domain.calendar.grid import build_grid
from app.domain.calendar.popover import place_popover
from app.domain.calendar.render import (
    MONTH_VIEW_CAP,
    capitalize_first,
    format_appointment_date,
    format_service_type,
    format_time,
    render_calendar,
    render_calendar_html,
)

DAY = date(2024, 3, 13)


def _render(appointments, mode="month", companies=None):
    cells = build_grid(DAY, mode, today=DAY)
    return render_calendar(cells, bucketize(appointments, cells), companies or {}, mode, DAY)


def _cell(view, day):
    return next(c for c in view.cells if c.date == day)


class TestFormatting:
    def test_format_time(self):
        assert format_time("14:30") == "2:30 PM"
        assert format_time("00:05") == "12:05 AM"
        assert format_time("12:00") == "12:00 PM"
        assert format_time("09:15") == "9:15 AM"
        assert format_time(None) == ""

    def test_labels(self):
        assert format_service_type("testing") == "Drug Testing"
        assert format_service_type("unknown") == "unknown"
        assert format_appointment_date(DAY) == "Mar 13, 2024"
        assert capitalize_first("no-show") == "No-show"


class TestRenderCalendar:
    """Indicator caps and cell flags."""

    def test_month_view_caps_indicators(self, make_appointment):
        appointments = [make_appointment(f"a{i}", DAY, f"{9 + i:02d}:00") for i in range(5)]

        cell = _cell(_render(appointments), DAY)

        assert len(cell.indicators) == MONTH_VIEW_CAP
        assert [i.id for i in cell.indicators] == ["a0", "a1", "a2"]
        assert cell.more == 2

    def test_week_view_shows_everything(self, make_appointment):
        appointments = [make_appointment(f"a{i}", DAY, f"{9 + i:02d}:00") for i in range(5)]

        cell = _cell(_render(appointments, mode="week"), DAY)

        assert len(cell.indicators) == 5
        assert cell.more == 0

    def test_padding_cells_are_not_droppable(self):
        view = _render([])

        assert not view.cells[0].in_range
        assert not view.cells[0].droppable
        assert _cell(view, DAY).droppable
        assert _cell(view, DAY).is_today
        assert view.title == "March 2024"
        assert view.weekdays[0] == "Sun"

    def test_indicator_details(self, make_appointment):
        appointment = make_appointment(
            "t1",
            DAY,
            "14:30",
            title="Random test",
            service_type="testing",
            company_id="c1",
            drug_testing=DrugTesting(
                testType="poct", testingKit="KIT-9", substances=["cocaine"], cleanCardRequired=True
            ),
        )

        indicator = _cell(_render([appointment], companies={"c1": "Acme"}), DAY).indicators[0]

        assert indicator.time == "2:30 PM"
        assert indicator.company == "Acme"
        assert indicator.badge == "POCT"
        assert indicator.serviceLabel == "Drug Testing"
        assert indicator.detail.date == "Mar 13, 2024"
        assert indicator.detail.status == "Scheduled"
        assert indicator.detail.drugTesting == "POCT | Kit: KIT-9 | Cocaine | Clean card required"

    def test_unknown_company_renders_without_name(self, make_appointment):
        appointment = make_appointment("x", DAY, company_id="gone")

        assert _cell(_render([appointment]), DAY).indicators[0].company is None


class TestRenderHtml:
    def test_more_label_and_empty_cells(self, make_appointment):
        appointments = [make_appointment(f"a{i}", DAY, f"{9 + i:02d}:00") for i in range(4)]

        html = render_calendar_html(_render(appointments))

        assert "+1 more" in html
        # March 2024 starts on a Friday
        assert html.count('<div class="calendar-day empty"></div>') == 5
        assert 'data-date="2024-03-13"' in html
        assert "calendar-day today" in html

    def test_user_text_is_escaped(self, make_appointment):
        appointment = make_appointment("x", DAY, title='<script>alert("x")</script>')

        html = render_calendar_html(_render([appointment]))

        assert "<script>" not in html
        assert "&lt;script&gt;" in html


class TestPlacePopover:
    """Popover edge avoidance."""

    def test_default_right_and_below(self):
        placement = place_popover((100, 100), (200, 150), (1024, 768))

        assert (placement.left, placement.top) == (112, 112)
        assert not placement.flipped_x
        assert not placement.flipped_y

    def test_flips_near_bottom_right(self):
        placement = place_popover((950, 700), (200, 150), (1024, 768))

        assert placement.flipped_x and placement.flipped_y
        assert (placement.left, placement.top) == (738, 538)

    def test_clamped_inside_padding(self):
        placement = place_popover((20, 20), (200, 150), (210, 400))

        assert placement.left == 8
