"""Tests for the live calendar websocket."""

import asyncio
from datetime import date, timedelta

import pytest
from starlette.websockets import WebSocketDisconnect

from app.domain.calendar.router import CalendarSocket
from app.domain.calendar.session import CalendarSession

MAX_FRAMES = 50


def receive_until(websocket, predicate) -> dict:
    """Read frames until one matches; live-query pushes may interleave"""
    for _ in range(MAX_FRAMES):
        frame = websocket.receive_json()
        if predicate(frame):
            return frame
    raise AssertionError("expected frame never arrived")


def is_view(frame: dict) -> bool:
    return frame["type"] == "view"


def cell_titles(frame: dict, day: date) -> list[str]:
    cell = next((c for c in frame["view"]["cells"] if c["date"] == day.isoformat()), None)
    return [] if cell is None else [i["title"] for i in cell["indicators"]]


def neighbour_in_same_week(day: date) -> date:
    # Weeks run Sunday to Saturday
    return day - timedelta(days=1) if day.weekday() == 5 else day + timedelta(days=1)


@pytest.fixture
def appointment_today(client) -> dict:
    today = date.today()
    return client.post(
        "/appointments",
        json={"title": "Site visit", "date": today.isoformat(), "startTime": "10:00", "duration": 45},
    ).json()


class TestCalendarSocket:
    def test_hello_then_current_view(self, client, appointment_today):
        with client.websocket_connect("/calendar/ws") as websocket:
            hello = websocket.receive_json()
            assert hello["type"] == "hello"
            assert hello["popover"]["showDelayMs"] > 0

            frame = receive_until(websocket, lambda f: is_view(f) and cell_titles(f, date.today()))

        assert frame["view"]["mode"] == "month"
        assert cell_titles(frame, date.today()) == ["Site visit"]
        assert frame["stats"]["today"] == 1
        assert frame["pending"] == []

    def test_switch_to_week_view(self, client):
        with client.websocket_connect("/calendar/ws") as websocket:
            websocket.send_json({"action": "set_view", "mode": "week"})

            frame = receive_until(websocket, lambda f: is_view(f) and f["view"]["mode"] == "week")

        assert len(frame["view"]["cells"]) == 7

    def test_bad_messages_get_error_frames(self, client):
        with client.websocket_connect("/calendar/ws") as websocket:
            websocket.send_json({"action": "explode"})
            error = receive_until(websocket, lambda f: f["type"] == "error")
            assert "Unknown action" in error["message"]

            websocket.send_json({"action": "set_view", "mode": "year"})
            assert receive_until(websocket, lambda f: f["type"] == "error")

            # The session survives bad input
            websocket.send_json({"action": "set_view", "mode": "week"})
            assert receive_until(websocket, lambda f: is_view(f) and f["view"]["mode"] == "week")

    def test_drag_and_drop_reschedules(self, client, appointment_today):
        target = neighbour_in_same_week(date.today())

        with client.websocket_connect("/calendar/ws") as websocket:
            websocket.send_json({"action": "set_view", "mode": "week"})
            receive_until(
                websocket,
                lambda f: is_view(f) and f["view"]["mode"] == "week" and cell_titles(f, date.today()),
            )

            websocket.send_json({"action": "drag_start", "appointmentId": appointment_today["id"]})
            websocket.send_json({"action": "drop", "date": target.isoformat()})

            optimistic = receive_until(websocket, lambda f: is_view(f) and f["pending"])
            assert cell_titles(optimistic, target) == ["Site visit"]
            assert cell_titles(optimistic, date.today()) == []

            confirmed = receive_until(
                websocket, lambda f: is_view(f) and not f["pending"] and cell_titles(f, target)
            )

        assert confirmed["error"] is None
        stored = client.get(f"/appointments/{appointment_today['id']}").json()
        assert stored["appointmentDate"] == f"{target.isoformat()}T12:00:00"
        assert stored["startTime"] == "10:00"
        assert stored["version"] == appointment_today["version"] + 1

    def test_submit_form(self, client):
        today = date.today().isoformat()

        with client.websocket_connect("/calendar/ws") as websocket:
            websocket.send_json({"action": "open_form"})
            websocket.send_json({"action": "submit_form", "form": {"title": "", "date": today}})
            failed = receive_until(websocket, lambda f: f["type"] == "form_error")
            assert failed["message"] == "Title is required"
            assert failed["values"]["date"] == today

            websocket.send_json(
                {"action": "submit_form", "form": {"title": "Walk-in", "date": today, "startTime": "14:00"}}
            )
            saved = receive_until(websocket, lambda f: f["type"] == "saved")

        assert saved["appointment"]["title"] == "Walk-in"
        assert saved["appointment"]["endTime"] == "14:30"
        assert saved["appointment"]["lastMutationId"]

    def test_missing_profile_is_refused(self, client, auth_state):
        auth_state.uid = "deleted-user"

        with pytest.raises(WebSocketDisconnect) as excinfo:
            with client.websocket_connect("/calendar/ws") as websocket:
                websocket.receive_json()

        assert excinfo.value.code == 1008


class FakeWebSocket:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_json(self, frame):
        if self.fail:
            raise WebSocketDisconnect(code=1001)
        self.sent.append(frame)


class TestSocketShutdown:
    """Background work stops with the connection."""

    @pytest.mark.asyncio
    async def test_pump_stops_quietly_when_client_is_gone(self):
        session = CalendarSession(lambda r: None, lambda p, i, m: None)
        socket = CalendarSocket(FakeWebSocket(fail=True), session)
        socket.start()
        socket.send({"type": "hello"})

        await asyncio.wait_for(socket.pump_task, timeout=1)

        assert socket.pump_task.exception() is None

    @pytest.mark.asyncio
    async def test_close_cancels_in_flight_work(self):
        websocket = FakeWebSocket()
        socket = CalendarSocket(websocket, CalendarSession(lambda r: None, lambda p, i, m: None))
        socket.start()
        never = asyncio.Event()
        socket.spawn(never.wait())
        socket.send({"type": "hello"})
        while not websocket.sent:
            await asyncio.sleep(0)

        await socket.close()

        assert socket.tasks == set()
        assert socket.pump_task is None
