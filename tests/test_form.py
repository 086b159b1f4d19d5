"""Tests for appointment form validation, payload building and the form controller."""

import asyncio
from datetime import date, datetime

import pytest

from app.domain.appointments.form import (
    AppointmentForm,
    AppointmentFormController,
    DrugTestingInput,
    build_payload,
    form_from_appointment,
    validate_form,
)
from app.domain.appointments.schemas import AppointmentResponse, DrugTesting
from app.domain.calendar.buckets import bucketize
from app.domain.calendar.grid import build_grid


def _form(**overrides) -> AppointmentForm:
    values = {"title": "Site visit", "date": "2024-03-13", "startTime": "09:00", "duration": 30}
    values.update(overrides)
    return AppointmentForm(**values)


def _testing_form(**overrides) -> AppointmentForm:
    values = {
        "serviceType": "testing",
        "drugTesting": DrugTestingInput(testType="lab", substances=["opiates", "cocaine"]),
    }
    values.update(overrides)
    return _form(**values)


def _saved(payload: dict, appointment_id=None) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment_id or "new-id",
        title=payload["title"],
        appointmentDate=payload["appointment_date"],
        startTime=payload["start_time"],
        duration=payload["duration"],
        endTime=payload["end_time"],
        serviceType=payload["service_type"],
        status=payload["status"],
    )


class TestValidateForm:
    """Field rules."""

    def test_valid_form_has_no_errors(self):
        assert validate_form(_form()) == []

    def test_required_fields(self):
        errors = validate_form(AppointmentForm(title="  ", duration=None))
        fields = [e.field for e in errors]

        assert fields == ["title", "date", "startTime", "duration"]

    def test_malformed_values(self):
        errors = validate_form(_form(date="13/03/2024", startTime="25:00", duration="-5"))

        assert {e.field for e in errors} == {"date", "startTime", "duration"}

    def test_duration_accepts_numeric_string(self):
        assert validate_form(_form(duration="45")) == []

    def test_non_ascii_digits_are_field_errors(self):
        assert [e.field for e in validate_form(_form(duration="\u00b2"))] == ["duration"]
        assert [e.field for e in validate_form(_form(startTime="\u0669:30"))] == ["startTime"]

    def test_testing_requires_details(self):
        errors = validate_form(_form(serviceType="testing"))

        assert [e.field for e in errors] == ["drugTesting.testType", "drugTesting.substances"]

    def test_poct_requires_kit(self):
        form = _testing_form(drugTesting=DrugTestingInput(testType="poct", substances=["alcohol"]))

        assert [e.field for e in validate_form(form)] == ["drugTesting.testingKit"]

    def test_unknown_substance(self):
        form = _testing_form(drugTesting=DrugTestingInput(testType="lab", substances=["caffeine"]))

        assert [e.field for e in validate_form(form)] == ["drugTesting.substances"]

    def test_unknown_service_type(self):
        assert [e.field for e in validate_form(_form(serviceType="gardening"))] == ["serviceType"]


class TestBuildPayload:
    def test_date_anchored_at_noon(self):
        payload = build_payload(_form())

        assert payload["appointment_date"] == datetime(2024, 3, 13, 12, 0)

    def test_end_time_wraps_past_midnight(self):
        payload = build_payload(_form(startTime="23:45", duration=30))

        assert payload["end_time"] == "00:15"

    def test_end_time_same_day(self):
        assert build_payload(_form(startTime="09:00", duration="90"))["end_time"] == "10:30"

    def test_single_digit_hour_is_zero_padded(self):
        payload = build_payload(_form(startTime=" 9:05 "))

        assert payload["start_time"] == "09:05"
        assert payload["end_time"] == "09:35"

    def test_padded_start_times_bucket_in_time_order(self, make_appointment):
        day = date(2024, 3, 13)
        starts = [build_payload(_form(startTime=t))["start_time"] for t in ("10:00", "9:30")]
        records = [make_appointment(str(i), day, start) for i, start in enumerate(starts)]

        buckets = bucketize(records, build_grid(day, "week", today=day))

        assert [a.startTime for a in buckets[day]] == ["09:30", "10:00"]

    def test_drug_testing_dropped_for_other_services(self):
        """Switching away from testing clears any drug-testing details."""
        form = _form(
            serviceType="web",
            drugTesting=DrugTestingInput(testType="lab", substances=["cocaine"]),
        )

        assert build_payload(form)["drug_testing"] is None

    def test_drug_testing_kept_for_testing_in_declared_order(self):
        payload = build_payload(_testing_form())

        assert payload["drug_testing"] == {
            "testType": "lab",
            "testingKit": None,
            "substances": ["cocaine", "opiates"],
            "cleanCardRequired": False,
        }

    def test_blank_optional_text_becomes_none(self):
        payload = build_payload(_form(location="   ", notes=" Gate code 42 ", companyId=""))

        assert payload["location"] is None
        assert payload["notes"] == "Gate code 42"
        assert payload["company_id"] is None

    def test_form_from_appointment_round_trips_testing_details(self):
        appointment = AppointmentResponse(
            id="a1",
            title="Test",
            appointmentDate=datetime(2024, 3, 13, 12, 0),
            startTime="10:00",
            duration=45,
            serviceType="testing",
            drugTesting=DrugTesting(testType="dot", substances=["pcp"]),
        )

        form = form_from_appointment(appointment)

        assert form.date == "2024-03-13"
        assert form.drugTesting.testType == "dot"
        assert validate_form(form) == []


class TestAppointmentFormController:
    """Stateful submit behaviour."""

    @pytest.mark.asyncio
    async def test_successful_create_binds_id(self):
        calls = []

        def save(payload, appointment_id, mutation_id):
            calls.append(appointment_id)
            return _saved(payload)

        controller = AppointmentFormController(save, retry_attempts=1, retry_delay=0)
        saved = await controller.submit(_form())

        assert saved.id == "new-id"
        assert controller.bound_id == "new-id"
        assert controller.error is None
        assert calls == [None]

    @pytest.mark.asyncio
    async def test_update_passes_bound_id(self):
        calls = []

        def save(payload, appointment_id, mutation_id):
            calls.append(appointment_id)
            return _saved(payload, appointment_id)

        controller = AppointmentFormController(save, bound_id="a1", retry_attempts=1)
        await controller.submit(_form())

        assert controller.is_update
        assert calls == ["a1"]

    @pytest.mark.asyncio
    async def test_validation_error_never_saves(self):
        def save(payload, appointment_id, mutation_id):
            raise AssertionError("should not be called")

        controller = AppointmentFormController(save)
        result = await controller.submit(_form(title=""))

        assert result is None
        assert controller.error == "Title is required"
        assert controller.values.title == ""

    @pytest.mark.asyncio
    async def test_failure_keeps_values_and_sets_error(self):
        def save(payload, appointment_id, mutation_id):
            raise RuntimeError("store unavailable")

        controller = AppointmentFormController(save, retry_attempts=1, retry_delay=0)
        form = _form(title="Keep me")
        result = await controller.submit(form)

        assert result is None
        assert controller.error == "Error saving appointment: store unavailable"
        assert controller.values is form
        assert not controller.in_flight

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self):
        attempts = []

        def save(payload, appointment_id, mutation_id):
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionError("dropped")
            return _saved(payload)

        controller = AppointmentFormController(save, retry_attempts=3, retry_delay=0)

        assert await controller.submit(_form()) is not None
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_duplicate_submit_ignored_while_in_flight(self):
        release = asyncio.Event()
        calls = []

        async def save(payload, appointment_id, mutation_id):
            calls.append(1)
            await release.wait()
            return _saved(payload)

        controller = AppointmentFormController(save, retry_attempts=1)
        first = asyncio.create_task(controller.submit(_form()))
        while not controller.in_flight:
            await asyncio.sleep(0)

        assert await controller.submit(_form()) is None

        release.set()
        assert (await first).id == "new-id"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_cancel_discards_late_result(self):
        release = asyncio.Event()

        async def save(payload, appointment_id, mutation_id):
            await release.wait()
            return _saved(payload)

        controller = AppointmentFormController(save, retry_attempts=1)
        task = asyncio.create_task(controller.submit(_form()))
        while not controller.in_flight:
            await asyncio.sleep(0)

        controller.cancel()
        release.set()

        assert await task is None
        assert controller.result is None
        assert controller.bound_id is None

    @pytest.mark.asyncio
    async def test_every_save_carries_a_mutation_id(self):
        mutation_ids = []

        def save(payload, appointment_id, mutation_id):
            mutation_ids.append(mutation_id)
            return _saved(payload, appointment_id)

        controller = AppointmentFormController(save, retry_attempts=1)
        await controller.submit(_form())
        await controller.submit(_form(mutationId="client-tag"))

        assert mutation_ids[0]
        assert mutation_ids[1] == "client-tag"
