"""Tests for live queries over the document collections."""

from datetime import date

import pytest

from app.database import Base, SessionLocal, engine
from app.domain.appointments.form import AppointmentForm
from app.domain.appointments.service import AppointmentService, load_appointments
from app.domain.calendar.session import CalendarSession
from app.realtime import SnapshotHub, snapshot_hub


@pytest.fixture
def hub():
    return SnapshotHub(session_factory=SessionLocal)


class TestSnapshotHub:
    def test_initial_snapshot_delivered_on_subscribe(self, hub):
        snapshots = []

        hub.subscribe("companies", lambda db: ["a", "b"], snapshots.append)

        assert snapshots == [["a", "b"]]
        assert hub.subscriber_count("companies") == 1

    def test_publish_reruns_loader(self, hub):
        calls = []
        snapshots = []

        def loader(db):
            calls.append(1)
            return [len(calls)]

        hub.subscribe("appointments", loader, snapshots.append)
        assert hub.publish("appointments") == 1
        assert hub.publish("companies") == 0

        assert snapshots == [[1], [2]]

    def test_unsubscribe_stops_delivery(self, hub):
        snapshots = []
        subscription = hub.subscribe("notifications", lambda db: [1], snapshots.append)

        subscription.unsubscribe()
        hub.publish("notifications")

        assert snapshots == [[1]]
        assert hub.subscriber_count("notifications") == 0

    def test_loader_failure_reports_error_and_empty_snapshot(self, hub):
        snapshots = []
        errors = []

        def broken(db):
            raise RuntimeError("permission denied")

        hub.subscribe("appointments", broken, snapshots.append, on_error=errors.append)

        assert snapshots == [[]]
        assert str(errors[0]) == "permission denied"

    def test_failing_subscriber_does_not_block_others(self, hub):
        snapshots = []

        def explode(documents):
            raise RuntimeError("bad subscriber")

        hub.subscribe("companies", lambda db: [1], explode)
        hub.subscribe("companies", lambda db: [1], snapshots.append)
        hub.publish("companies")

        assert snapshots == [[1], [1]]

    def test_unknown_collection(self, hub):
        with pytest.raises(ValueError):
            hub.subscribe("invoices", lambda db: [], lambda docs: None)


class TestSessionLiveQueries:
    """A calendar session kept current by store writes."""

    def test_store_writes_reach_attached_session(self, db):
        session = CalendarSession(lambda r: None, lambda p, i, m: None, today=lambda: date(2024, 3, 13))
        session.attach(snapshot_hub)
        try:
            assert session.appointments == []

            AppointmentService(db).create_appointment(
                AppointmentForm(title="Random test", date="2024-03-14", startTime="08:00")
            )

            assert [a.title for a in session.appointments] == ["Random test"]
            assert load_appointments(db)[0].endTime == "08:30"
        finally:
            session.detach()

        assert snapshot_hub.subscriber_count("appointments") == 0

    def test_listener_error_surfaces_on_session(self, hub):
        Base.metadata.drop_all(bind=engine)
        session = CalendarSession(lambda r: None, lambda p, i, m: None)

        session.attach(hub)

        assert session.error.startswith("Error loading appointments:")
        assert session.appointments == []
        session.detach()
