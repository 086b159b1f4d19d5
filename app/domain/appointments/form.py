"""
Appointment form - validation and payload building for create/update submissions

``validate_form`` runs every rule before anything touches the store;
``build_payload`` turns a valid form into the column values that get saved.
``AppointmentFormController`` is the stateful side: one per open form.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel

from ...shared.retry import CancellationToken, OperationCancelled, error_message, with_retry
from ...shared.timeutil import anchor_noon, compute_end_time, parse_hhmm
from .schemas import (
    KIT_TEST_TYPES,
    SERVICE_TYPES,
    STATUSES,
    SUBSTANCES,
    TEST_TYPES,
    AppointmentResponse,
)

logger = logging.getLogger(__name__)


class DrugTestingInput(BaseModel):
    testType: Optional[str] = None
    testingKit: Optional[str] = None
    substances: list[str] = []
    cleanCardRequired: bool = False


class AppointmentForm(BaseModel):
    """Raw values as submitted; nothing is trusted until validate_form passes"""

    title: Optional[str] = None
    companyId: Optional[str] = None
    date: Optional[str] = None  # YYYY-MM-DD
    startTime: Optional[str] = None  # HH:MM
    duration: Optional[Union[int, str]] = 30
    serviceType: str = "other"
    status: str = "scheduled"
    location: Optional[str] = None
    notes: Optional[str] = None
    drugTesting: Optional[DrugTestingInput] = None
    mutationId: Optional[str] = None


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def parse_duration(value: Any) -> Optional[int]:
    """Minutes as a positive integer, or None"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        try:
            minutes = int(value.strip())
        except ValueError:
            return None
        return minutes if minutes > 0 else None
    return None


def parse_form_date(value: Optional[str]) -> Optional[date]:
    if _blank(value):
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def validate_form(form: AppointmentForm) -> list[FieldError]:
    """Every rule violated by ``form``; an empty list means it can be saved"""
    errors: list[FieldError] = []

    if _blank(form.title):
        errors.append(FieldError("title", "Title is required"))

    if _blank(form.date):
        errors.append(FieldError("date", "Date is required"))
    elif parse_form_date(form.date) is None:
        errors.append(FieldError("date", "Date must be in YYYY-MM-DD format"))

    if _blank(form.startTime):
        errors.append(FieldError("startTime", "Start time is required"))
    elif parse_hhmm(form.startTime) is None:
        errors.append(FieldError("startTime", "Start time must be in HH:MM format"))

    if parse_duration(form.duration) is None:
        errors.append(FieldError("duration", "Duration must be a positive whole number of minutes"))

    if form.serviceType not in SERVICE_TYPES:
        errors.append(FieldError("serviceType", f"Unknown service type: {form.serviceType}"))
    if form.status not in STATUSES:
        errors.append(FieldError("status", f"Unknown status: {form.status}"))

    if form.serviceType == "testing":
        testing = form.drugTesting or DrugTestingInput()
        if _blank(testing.testType):
            errors.append(FieldError("drugTesting.testType", "Test type is required"))
        elif testing.testType not in TEST_TYPES:
            errors.append(FieldError("drugTesting.testType", f"Unknown test type: {testing.testType}"))
        elif testing.testType in KIT_TEST_TYPES and _blank(testing.testingKit):
            errors.append(FieldError("drugTesting.testingKit", "Testing kit is required for POCT tests"))

        if not testing.substances:
            errors.append(FieldError("drugTesting.substances", "Select at least one substance"))
        else:
            unknown = [s for s in testing.substances if s not in SUBSTANCES]
            if unknown:
                errors.append(
                    FieldError("drugTesting.substances", f"Unknown substances: {', '.join(unknown)}")
                )

    return errors


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def build_payload(form: AppointmentForm) -> dict:
    """
    Column values for a validated form.

    The date is stored at local noon, endTime is recomputed from startTime and
    duration, and drugTesting is only kept for testing appointments, so
    switching a record away from testing clears it.
    """
    duration = parse_duration(form.duration)
    hours, minutes = parse_hhmm(form.startTime)
    # Zero-padded so start times sort correctly as strings
    start_time = f"{hours:02d}:{minutes:02d}"

    drug_testing = None
    if form.serviceType == "testing" and form.drugTesting is not None:
        testing = form.drugTesting
        drug_testing = {
            "testType": testing.testType,
            "testingKit": _optional_text(testing.testingKit),
            # Keep the declared substance order regardless of selection order
            "substances": [s for s in SUBSTANCES if s in set(testing.substances)],
            "cleanCardRequired": bool(testing.cleanCardRequired),
        }

    return {
        "title": form.title.strip(),
        "company_id": _optional_text(form.companyId),
        "appointment_date": anchor_noon(parse_form_date(form.date)),
        "start_time": start_time,
        "duration": duration,
        "end_time": compute_end_time(start_time, duration),
        "service_type": form.serviceType,
        "status": form.status,
        "location": _optional_text(form.location),
        "notes": _optional_text(form.notes),
        "drug_testing": drug_testing,
    }


def form_from_appointment(appointment: AppointmentResponse) -> AppointmentForm:
    """Pre-fill the edit form from a stored record"""
    testing = appointment.drugTesting
    return AppointmentForm(
        title=appointment.title,
        companyId=appointment.companyId,
        date=appointment.day.isoformat(),
        startTime=appointment.startTime,
        duration=appointment.duration,
        serviceType=appointment.serviceType,
        status=appointment.status,
        location=appointment.location,
        notes=appointment.notes,
        drugTesting=DrugTestingInput(**testing.model_dump()) if testing else None,
    )


# (payload, bound_id, mutation_id) -> saved record
SaveCallable = Callable[[dict, Optional[str], str], Union[AppointmentResponse, Awaitable[AppointmentResponse]]]


class AppointmentFormController:
    """
    One open appointment form.

    ``submit`` validates, then creates or updates depending on ``bound_id``.
    While a submission is in flight further submits are ignored. ``cancel``
    (form closed, user navigated away) discards the in-flight result. On any
    failure the entered values stay in ``values`` and ``error`` holds the
    message to show.
    """

    def __init__(
        self,
        save: SaveCallable,
        bound_id: Optional[str] = None,
        retry_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self.save = save
        self.bound_id = bound_id
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.values: Optional[AppointmentForm] = None
        self.errors: list[FieldError] = []
        self.error: Optional[str] = None
        self.result: Optional[AppointmentResponse] = None
        self.in_flight = False
        self._token: Optional[CancellationToken] = None

    @property
    def is_update(self) -> bool:
        return self.bound_id is not None

    def cancel(self) -> None:
        if self._token is not None:
            self._token.cancel()
            logger.info("🚫 Appointment form submission cancelled")

    async def submit(self, form: AppointmentForm) -> Optional[AppointmentResponse]:
        if self.in_flight:
            logger.debug("Duplicate appointment form submit ignored")
            return None

        self.values = form
        self.error = None
        self.errors = validate_form(form)
        if self.errors:
            self.error = self.errors[0].message
            return None

        payload = build_payload(form)
        mutation_id = form.mutationId or uuid.uuid4().hex
        token = CancellationToken()
        self._token = token
        self.in_flight = True

        retry_kwargs = {}
        if self.retry_attempts is not None:
            retry_kwargs["attempts"] = self.retry_attempts
        if self.retry_delay is not None:
            retry_kwargs["base_delay"] = self.retry_delay

        action = "update" if self.is_update else "create"
        try:
            saved = await with_retry(
                lambda: self.save(payload, self.bound_id, mutation_id),
                token=token,
                description=f"appointment {action}",
                **retry_kwargs,
            )
        except OperationCancelled:
            return None
        except Exception as e:
            logger.error(f"❌ Error saving appointment: {e}")
            self.error = f"Error saving appointment: {error_message(e)}"
            return None
        finally:
            self.in_flight = False
            if self._token is token:
                self._token = None

        self.result = saved
        self.bound_id = saved.id
        logger.info(f"✅ Appointment {action}d: {saved.id}")
        return saved
