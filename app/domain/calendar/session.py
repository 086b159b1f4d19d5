"""
Per-dashboard calendar state

Everything one connected calendar needs lives on a ``CalendarSession``:
view mode and reference date, the drag controller, the open appointment
form, and the cached appointments and company names fed by live queries.
Two dashboards never share any of it.

Optimistic edits are tracked per appointment as ``PendingMutation``, tagged
with the mutation id the store echoes back as ``lastMutationId``. While one
is pending, incoming snapshots keep the local copy until the store returns
that mutation id. A snapshot with a newer version written by someone else
wins and the local edit is dropped.
"""

import functools
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Awaitable, Callable, Optional, Union

from ...realtime import SnapshotHub, Subscription
from ...shared.retry import error_message, with_retry
from ..appointments.form import AppointmentForm, AppointmentFormController, SaveCallable
from ..appointments.schemas import AppointmentResponse
from ..appointments.service import load_appointments
from ..companies.schemas import CompanyResponse
from ..companies.service import load_companies
from .buckets import bucketize
from .drag import DragController, RescheduleRequest
from .grid import VIEW_MODES, build_grid, shift_reference
from .render import CalendarView, render_calendar
from .stats import CalendarStats, compute_stats

logger = logging.getLogger(__name__)

PersistReschedule = Callable[
    [RescheduleRequest], Union[AppointmentResponse, Awaitable[AppointmentResponse]]
]
Dispatch = Callable[..., None]


@dataclass
class PendingMutation:
    mutation_id: str
    base_version: int
    confirmed: AppointmentResponse
    optimistic: AppointmentResponse
    # Earlier mutations of ours on the same record that are still in flight
    earlier: set[str] = field(default_factory=set)


class CalendarSession:
    def __init__(
        self,
        persist_reschedule: PersistReschedule,
        save_appointment: SaveCallable,
        mode: str = "month",
        reference: Optional[date] = None,
        today: Callable[[], date] = date.today,
        retry_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        if mode not in VIEW_MODES:
            raise ValueError(f"Unknown view mode: {mode}")
        self.persist_reschedule = persist_reschedule
        self.save_appointment = save_appointment
        self.today = today
        self.mode = mode
        self.reference = reference or today()
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay

        self.drag = DragController()
        self.form: Optional[AppointmentFormController] = None
        self.appointments: list[AppointmentResponse] = []
        self.companies: dict[str, str] = {}
        self.pending: dict[str, PendingMutation] = {}
        self.error: Optional[str] = None
        self.on_change: Optional[Callable[[], None]] = None
        self._subscriptions: list[Subscription] = []

    # ------------------------------------------------------------------
    # Live queries
    # ------------------------------------------------------------------

    def attach(self, hub: SnapshotHub, dispatch: Optional[Dispatch] = None) -> None:
        """
        Subscribe to appointments and companies; each delivers its current
        snapshot right away. ``dispatch`` hands snapshots over to the thread
        that owns the session (the websocket's event loop).
        """
        companies_callback = self.apply_companies_snapshot
        appointments_callback = self.apply_appointments_snapshot
        if dispatch is not None:
            companies_callback = functools.partial(dispatch, self.apply_companies_snapshot)
            appointments_callback = functools.partial(dispatch, self.apply_appointments_snapshot)

        self._subscriptions = [
            hub.subscribe(
                "companies",
                load_companies,
                companies_callback,
                on_error=self._listener_error("companies"),
            ),
            hub.subscribe(
                "appointments",
                load_appointments,
                appointments_callback,
                on_error=self._listener_error("appointments"),
            ),
        ]

    def detach(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        if self.form is not None:
            self.form.cancel()

    def _listener_error(self, collection: str) -> Callable[[Exception], None]:
        def on_error(error: Exception) -> None:
            self.error = f"Error loading {collection}: {error_message(error)}"

        return on_error

    def apply_appointments_snapshot(self, records: list[AppointmentResponse]) -> None:
        """Replace the cache with ``records``, keeping pending local edits the store has not caught up with"""
        present = set()
        merged = []
        for record in records:
            present.add(record.id)
            pending = self.pending.get(record.id)
            merged.append(record if pending is None else self._reconcile(pending, record))

        # Deleted upstream: nothing left to reconcile
        for appointment_id in list(self.pending):
            if appointment_id not in present:
                del self.pending[appointment_id]

        self.appointments = merged
        self._changed()

    def _reconcile(self, pending: PendingMutation, record: AppointmentResponse) -> AppointmentResponse:
        """The copy to show for a record with a local edit in flight"""
        if record.lastMutationId == pending.mutation_id:
            logger.debug(f"Store confirmed {record.id} at v{record.version}")
            del self.pending[record.id]
            return record

        if record.lastMutationId in pending.earlier:
            # One of our own earlier writes landed; the newest local edit still wins
            pending.earlier.discard(record.lastMutationId)
            pending.base_version = record.version
            pending.confirmed = record
            return pending.optimistic

        if record.version > pending.base_version:
            logger.info(f"⚠️ {record.id} changed upstream at v{record.version}; local edit dropped")
            del self.pending[record.id]
            return record

        return pending.optimistic

    def apply_companies_snapshot(self, companies: list[CompanyResponse]) -> None:
        self.companies = {c.id: c.companyName for c in companies}
        self._changed()

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def set_mode(self, mode: str) -> None:
        if mode not in VIEW_MODES:
            raise ValueError(f"Unknown view mode: {mode}")
        self.mode = mode

    def navigate(self, step: int) -> None:
        """Previous (-1) or next (+1) month or week"""
        self.reference = shift_reference(self.reference, self.mode, step)

    def go_to_today(self) -> None:
        self.reference = self.today()

    def get_appointment(self, appointment_id: str) -> Optional[AppointmentResponse]:
        return next((a for a in self.appointments if a.id == appointment_id), None)

    def view(self) -> CalendarView:
        cells = build_grid(self.reference, self.mode, today=self.today())
        buckets = bucketize(self.appointments, cells)
        return render_calendar(cells, buckets, self.companies, self.mode, self.reference)

    def stats(self) -> CalendarStats:
        return compute_stats(self.appointments, self.today())

    # ------------------------------------------------------------------
    # Drag reschedule
    # ------------------------------------------------------------------

    def start_drag(self, appointment_id: str) -> None:
        self.drag.pick_up(appointment_id)

    def cancel_drag(self) -> None:
        self.drag.cancel()

    def begin_drop(self, target: Optional[date]) -> Optional[RescheduleRequest]:
        """
        Finish a drag. A valid drop moves the cached appointment to ``target``
        immediately and returns the request still to be persisted.
        """
        request = self.drag.drop(target)
        if request is None:
            return None

        current = self.get_appointment(request.appointment_id)
        if current is None:
            self.error = "Appointment not found"
            return None

        previous = self.pending.get(current.id)
        optimistic = current.model_copy(
            update={"appointmentDate": request.appointment_date, "lastMutationId": request.mutation_id}
        )
        if previous is None:
            pending = PendingMutation(request.mutation_id, current.version, current, optimistic)
        else:
            # Dropped again before the store confirmed the first move
            pending = PendingMutation(
                request.mutation_id,
                previous.base_version,
                previous.confirmed,
                optimistic,
                earlier=previous.earlier | {previous.mutation_id},
            )
        self.pending[current.id] = pending
        self._replace(optimistic)
        self.error = None
        self._changed()
        return request

    async def persist_drop(self, request: RescheduleRequest) -> Optional[AppointmentResponse]:
        """
        Persist a reschedule started by ``begin_drop``. On failure the cached
        record goes back to the last server-confirmed version and ``error``
        is set for display.
        """
        retry_kwargs = {}
        if self.retry_attempts is not None:
            retry_kwargs["attempts"] = self.retry_attempts
        if self.retry_delay is not None:
            retry_kwargs["base_delay"] = self.retry_delay

        appointment_id = request.appointment_id
        try:
            saved = await with_retry(
                lambda: self.persist_reschedule(request),
                description=f"reschedule {appointment_id}",
                **retry_kwargs,
            )
        except Exception as e:
            logger.error(f"❌ Error rescheduling appointment {appointment_id}: {e}")
            pending = self.pending.get(appointment_id)
            if pending is not None and pending.mutation_id == request.mutation_id:
                del self.pending[appointment_id]
                self._replace(pending.confirmed)
            elif pending is not None:
                pending.earlier.discard(request.mutation_id)
            self.error = f"Error rescheduling appointment: {error_message(e)}"
            self._changed()
            return None

        pending = self.pending.get(appointment_id)
        if pending is None or pending.mutation_id == request.mutation_id:
            self.pending.pop(appointment_id, None)
            cached = self.get_appointment(appointment_id)
            if cached is None or cached.version <= saved.version:
                self._replace(saved)
        elif request.mutation_id in pending.earlier:
            pending.earlier.discard(request.mutation_id)
            if saved.version > pending.base_version:
                pending.base_version = saved.version
                pending.confirmed = saved
        self._changed()
        return saved

    async def drop(self, target: Optional[date]) -> Optional[AppointmentResponse]:
        request = self.begin_drop(target)
        if request is None:
            return None
        return await self.persist_drop(request)

    def _replace(self, record: AppointmentResponse) -> None:
        for index, appointment in enumerate(self.appointments):
            if appointment.id == record.id:
                self.appointments[index] = record
                return
        self.appointments.append(record)

    # ------------------------------------------------------------------
    # Appointment form
    # ------------------------------------------------------------------

    def open_form(self, appointment_id: Optional[str] = None) -> AppointmentFormController:
        """New form, bound to ``appointment_id`` for edits; replaces any open form"""
        if self.form is not None:
            self.form.cancel()
        self.form = AppointmentFormController(
            self.save_appointment,
            bound_id=appointment_id,
            retry_attempts=self.retry_attempts,
            retry_delay=self.retry_delay,
        )
        return self.form

    def close_form(self) -> None:
        if self.form is not None:
            self.form.cancel()
        self.form = None

    async def submit_form(
        self, form: AppointmentForm, appointment_id: Optional[str] = None
    ) -> Optional[AppointmentResponse]:
        controller = self.form
        if controller is None or (appointment_id and controller.bound_id != appointment_id):
            controller = self.open_form(appointment_id)

        saved = await controller.submit(form)
        if saved is not None and self.form is controller:
            # Saved: the form closes
            self.form = None
        return saved
