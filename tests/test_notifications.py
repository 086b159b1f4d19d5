"""Tests for notifications: batch writes, presentation and routes."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import event

from app.domain.notifications.repository import NotificationRepository
from app.domain.notifications.service import NotificationService, notification_icon, relative_time
from app.models import Notification
from app.shared.timeutil import utcnow
from app.worker import WorkerSettings, purge_notifications_task

NOW = datetime(2024, 3, 13, 15, 0)


def _notify(db, user_id, count, read=False, created_at=None):
    rows = [
        Notification(
            user_id=user_id,
            type="info",
            title=f"Note {i}",
            read=read,
            created_at=created_at or utcnow(),
        )
        for i in range(count)
    ]
    db.add_all(rows)
    db.commit()
    return rows


class CommitCounter:
    def __init__(self, db):
        self.count = 0
        event.listen(db, "after_commit", self.on_commit)

    def on_commit(self, session):
        self.count += 1


class TestPresentation:
    def test_icons(self):
        assert notification_icon("success") == "check-circle"
        assert notification_icon("error") == "exclamation-circle"
        assert notification_icon("mystery") == "bell"
        assert notification_icon(None) == "bell"

    def test_relative_time(self):
        assert relative_time(NOW - timedelta(seconds=30), NOW) == "Just now"
        assert relative_time(NOW - timedelta(minutes=1), NOW) == "1 minute ago"
        assert relative_time(NOW - timedelta(minutes=5), NOW) == "5 minutes ago"
        assert relative_time(NOW - timedelta(hours=2), NOW) == "2 hours ago"
        assert relative_time(NOW - timedelta(days=3), NOW) == "3 days ago"
        assert relative_time(datetime(2024, 3, 5, 9, 0), NOW) == "Mar 5, 2024"
        assert relative_time(None, NOW) == ""


class TestMarkAllRead:
    """Batch mark-as-read."""

    def test_no_unread_issues_no_write(self, db, regular_user):
        _notify(db, regular_user.uid, 2, read=True)
        commits = CommitCounter(db)

        result = NotificationService(db).mark_all_read(regular_user)

        assert result == {"updated": 0}
        assert commits.count == 0

    def test_flips_every_unread_in_one_commit(self, db, regular_user, admin_user):
        _notify(db, regular_user.uid, 3)
        _notify(db, regular_user.uid, 1, read=True)
        _notify(db, admin_user.uid, 2)
        commits = CommitCounter(db)

        result = NotificationService(db).mark_all_read(regular_user)

        assert result == {"updated": 3}
        assert commits.count == 1
        assert NotificationRepository.count_for_user(db, regular_user.uid, unread_only=True) == 0
        # Other users are untouched
        assert NotificationRepository.count_for_user(db, admin_user.uid, unread_only=True) == 2


class TestRetention:
    def test_purge_expired(self, db, regular_user):
        _notify(db, regular_user.uid, 2, created_at=utcnow() - timedelta(days=45))
        _notify(db, regular_user.uid, 1)

        assert NotificationService(db).purge_expired(30) == 2
        assert NotificationRepository.count_for_user(db, regular_user.uid) == 1

    def test_purge_with_nothing_expired(self, db, regular_user):
        _notify(db, regular_user.uid, 1)

        assert NotificationService(db).purge_expired(30) == 0


class TestNotificationRoutes:
    """HTTP surface for the dropdown and the testing panel."""

    def test_bulk_test_creates_five(self, client):
        assert client.post("/notifications/test/bulk").json() == {"created": 5}

        listed = client.get("/notifications").json()
        assert len(listed) == 5
        assert all(n["timeAgo"] == "Just now" for n in listed)
        assert client.get("/notifications/unread-count").json() == {"unread": 5}

    def test_quick_test_notification(self, client):
        response = client.post("/notifications/test/warning")

        assert response.status_code == 201
        body = response.json()
        assert body["title"] == "Warning Alert"
        assert body["icon"] == "exclamation-triangle"

    def test_unknown_quick_test_type(self, client):
        assert client.post("/notifications/test/urgent").status_code == 422

    def test_mark_read_and_read_all(self, client):
        client.post("/notifications/test/bulk")
        first = client.get("/notifications").json()[0]

        marked = client.post(f"/notifications/{first['id']}/read").json()
        assert marked["read"] is True
        assert marked["readAt"] is not None

        assert client.post("/notifications/read-all").json() == {"updated": 4}
        assert client.post("/notifications/read-all").json() == {"updated": 0}
        assert client.get("/notifications/stats").json() == {"total": 5, "unread": 0}

    def test_admin_sends_to_another_user(self, client, auth_state, regular_user):
        response = client.post(
            "/notifications",
            json={"userId": regular_user.uid, "type": "success", "title": "Results ready"},
        )
        assert response.status_code == 201
        notification_id = response.json()["id"]

        # Not the admin's own notification
        assert client.post(f"/notifications/{notification_id}/read").status_code == 404

        auth_state.uid = regular_user.uid
        listed = client.get("/notifications").json()
        assert [n["title"] for n in listed] == ["Results ready"]

    def test_unknown_recipient(self, client):
        response = client.post("/notifications", json={"userId": "nobody", "title": "Hi"})

        assert response.status_code == 404

    def test_testing_panel_requires_admin(self, client, as_regular_user):
        assert client.post("/notifications/test/bulk").status_code == 403
        assert client.get("/notifications").status_code == 200

    def test_delete_all(self, client):
        client.post("/notifications/test/bulk")

        assert client.delete("/notifications").json() == {"deleted": 5}
        assert client.get("/notifications").json() == []


class TestPurgeJob:
    @pytest.mark.asyncio
    async def test_nightly_purge_task(self, db, regular_user):
        _notify(db, regular_user.uid, 3, created_at=utcnow() - timedelta(days=31))

        result = await purge_notifications_task({}, retention_days=30)

        assert result == {"purged": 3}
        assert WorkerSettings.cron_jobs[0].coroutine is purge_notifications_task
