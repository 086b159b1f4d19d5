"""Calendar router - month/week views, stat tiles and the live calendar websocket"""

import asyncio
import logging
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from fastapi.responses import HTMLResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_websocket_claims, load_profile
from ...database import SessionLocal, get_db
from ...models import User
from ...realtime import snapshot_hub
from ..appointments.form import AppointmentForm
from ..appointments.schemas import AppointmentResponse
from ..appointments.service import AppointmentService
from ..companies.service import CompanyService
from .buckets import bucketize
from .drag import RescheduleRequest
from .grid import build_grid
from .popover import POPOVER_HIDE_DELAY_MS, POPOVER_OFFSET, POPOVER_PADDING, POPOVER_SHOW_DELAY_MS
from .render import CalendarView, render_calendar, render_calendar_html
from .session import CalendarSession
from .stats import CalendarStats, compute_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["Calendar"])

MODE_PATTERN = "^(month|week)$"


def build_view(db: Session, mode: str, reference: date, today: date) -> CalendarView:
    cells = build_grid(reference, mode, today=today)
    appointments = AppointmentService(db).list_appointments(start=cells[0].date, end=cells[-1].date)
    companies = CompanyService(db).company_names()
    return render_calendar(cells, bucketize(appointments, cells), companies, mode, reference)


@router.get("/view", response_model=CalendarView)
async def get_calendar_view(
    mode: str = Query("month", pattern=MODE_PATTERN),
    reference: Optional[date] = Query(None, alias="date"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Month or week grid with appointment indicators for the day containing ``date``"""
    today = date.today()
    return build_view(db, mode, reference or today, today)


@router.get("/view.html", response_class=HTMLResponse)
async def get_calendar_view_html(
    mode: str = Query("month", pattern=MODE_PATTERN),
    reference: Optional[date] = Query(None, alias="date"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    today = date.today()
    return HTMLResponse(render_calendar_html(build_view(db, mode, reference or today, today)))


@router.get("/stats", response_model=CalendarStats)
async def get_calendar_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Today / this week / this month / upcoming testing counts, cancelled excluded"""
    return compute_stats(AppointmentService(db).list_appointments(), date.today())


# ============================================================================
# LIVE CALENDAR SESSION
# ============================================================================


def persist_reschedule(request: RescheduleRequest) -> AppointmentResponse:
    db = SessionLocal()
    try:
        return AppointmentService(db).reschedule(
            request.appointment_id, request.date, request.mutation_id
        )
    finally:
        db.close()


def save_appointment(payload: dict, appointment_id: Optional[str], mutation_id: str) -> AppointmentResponse:
    db = SessionLocal()
    try:
        return AppointmentService(db).save(payload, appointment_id, mutation_id)
    finally:
        db.close()


def view_frame(session: CalendarSession) -> dict:
    return {
        "type": "view",
        "view": session.view().model_dump(mode="json"),
        "stats": session.stats().model_dump(),
        "pending": sorted(session.pending),
        "error": session.error,
    }


class CalendarSocket:
    """Drives one CalendarSession from websocket messages; all frames go out through one queue"""

    def __init__(self, websocket: WebSocket, session: CalendarSession):
        self.websocket = websocket
        self.session = session
        self.outbox: asyncio.Queue = asyncio.Queue()
        self.tasks: set[asyncio.Task] = set()
        self.pump_task: Optional[asyncio.Task] = None
        session.on_change = self.view_changed

    def view_changed(self) -> None:
        self.outbox.put_nowait(None)

    def send(self, frame: dict) -> None:
        self.outbox.put_nowait(frame)

    async def pump(self) -> None:
        while True:
            frame = await self.outbox.get()
            if frame is None:
                frame = view_frame(self.session)
            try:
                await self.websocket.send_json(frame)
            except (WebSocketDisconnect, RuntimeError) as e:
                # Client gone; the receive loop notices on its own
                logger.debug(f"Calendar frame dropped after disconnect: {e}")
                return

    def start(self) -> None:
        self.pump_task = asyncio.create_task(self.pump())

    async def close(self) -> None:
        """Stop the pump and every in-flight save; their results have nowhere to go"""
        pending = list(self.tasks)
        if self.pump_task is not None:
            pending.append(self.pump_task)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self.tasks.clear()
        self.pump_task = None

    def spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)

    async def handle(self, message: dict[str, Any]) -> None:
        session = self.session
        action = message.get("action")

        if action == "set_view":
            session.set_mode(message.get("mode", "month"))
        elif action == "navigate":
            session.navigate(int(message.get("step", 1)))
        elif action == "today":
            session.go_to_today()
        elif action == "drag_start":
            session.start_drag(message["appointmentId"])
            return
        elif action == "drag_cancel":
            session.cancel_drag()
            return
        elif action == "drop":
            target = date.fromisoformat(message["date"]) if message.get("date") else None
            request = session.begin_drop(target)
            if request is not None:
                self.spawn(session.persist_drop(request))
            self.view_changed()
            return
        elif action == "open_form":
            session.open_form(message.get("appointmentId"))
            return
        elif action == "cancel_form":
            session.close_form()
            return
        elif action == "submit_form":
            form = AppointmentForm.model_validate(message.get("form") or {})
            self.spawn(self.submit(form, message.get("appointmentId")))
            return
        else:
            raise ValueError(f"Unknown action: {action}")

        self.view_changed()

    async def submit(self, form: AppointmentForm, appointment_id: Optional[str]) -> None:
        session = self.session
        saved = await session.submit_form(form, appointment_id)
        if saved is not None:
            self.send({"type": "saved", "appointment": saved.model_dump(mode="json")})
            return

        controller = session.form
        if controller is None or controller.in_flight or controller.error is None:
            # Cancelled, or a duplicate submit of the one still in flight
            return
        self.send(
            {
                "type": "form_error",
                "message": controller.error,
                "errors": [{"field": e.field, "message": e.message} for e in controller.errors],
                "values": form.model_dump(mode="json"),
            }
        )


@router.websocket("/ws")
async def calendar_socket(
    websocket: WebSocket,
    claims: dict = Depends(get_websocket_claims),
    db: Session = Depends(get_db),
):
    """
    Live calendar for one dashboard.

    Client messages: set_view, navigate, today, drag_start, drop, drag_cancel,
    open_form, submit_form, cancel_form. Server frames: hello, view, saved,
    form_error, error.
    """
    try:
        user = load_profile(db, claims)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        db.close()

    await websocket.accept()
    logger.info(f"📡 Calendar session opened for {user.email}")

    loop = asyncio.get_running_loop()
    session = CalendarSession(persist_reschedule, save_appointment)
    socket = CalendarSocket(websocket, session)
    socket.send(
        {
            "type": "hello",
            "popover": {
                "showDelayMs": POPOVER_SHOW_DELAY_MS,
                "hideDelayMs": POPOVER_HIDE_DELAY_MS,
                "offset": POPOVER_OFFSET,
                "padding": POPOVER_PADDING,
            },
        }
    )
    session.attach(snapshot_hub, dispatch=loop.call_soon_threadsafe)
    socket.start()

    try:
        while True:
            try:
                message = await websocket.receive_json()
                if not isinstance(message, dict):
                    raise ValueError("expected a JSON object")
                await socket.handle(message)
            except (KeyError, ValueError, ValidationError) as e:
                logger.warning(f"⚠️ Bad calendar message from {user.email}: {e}")
                socket.send({"type": "error", "message": f"Invalid message: {e}"})
    except WebSocketDisconnect:
        logger.info(f"📴 Calendar session closed for {user.email}")
    finally:
        session.detach()
        await socket.close()
