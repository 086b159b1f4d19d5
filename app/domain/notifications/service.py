"""Notification service - Business logic for in-app notifications"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Notification, User
from ...shared.timeutil import utcnow
from .repository import NotificationRepository
from .schemas import NotificationCreate, NotificationResponse, NotificationStats

logger = logging.getLogger(__name__)

ICONS = {
    "info": "info-circle",
    "success": "check-circle",
    "warning": "exclamation-triangle",
    "error": "exclamation-circle",
}
DEFAULT_ICON = "bell"

QUICK_TEST_MESSAGES = {
    "info": ("Information Update", "This is a test info notification from the testing panel"),
    "success": ("Operation Successful", "Test success notification - everything is working correctly"),
    "warning": ("Warning Alert", "Test warning notification - please review this carefully"),
    "error": ("Error Detected", "Test error notification - this simulates an error condition"),
}

BULK_TEST_NOTIFICATIONS = [
    ("info", "New Appointment", "Drug test scheduled for tomorrow at 10 AM"),
    ("success", "Payment Received", "Invoice #2024-001 has been paid"),
    ("warning", "Low Inventory", "10-panel drug tests running low"),
    ("info", "Quote Request", "New website design quote request received"),
    ("success", "Project Complete", "Website deployment completed successfully"),
]


def notification_icon(notification_type: Optional[str]) -> str:
    """Icon name for a notification type; unknown types get the generic bell"""
    return ICONS.get(notification_type, DEFAULT_ICON)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def relative_time(created_at: Optional[datetime], now: Optional[datetime] = None) -> str:
    if created_at is None:
        return ""
    now = now or utcnow()
    seconds = int((now - created_at).total_seconds())
    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return _plural(seconds // 60, "minute")
    if seconds < 86400:
        return _plural(seconds // 3600, "hour")
    if seconds < 7 * 86400:
        return _plural(seconds // 86400, "day")
    return created_at.strftime("%b %d, %Y").replace(" 0", " ")


def to_response(notification: Notification, now: Optional[datetime] = None) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        userId=notification.user_id,
        type=notification.type,
        title=notification.title,
        message=notification.message,
        read=notification.read,
        createdAt=notification.created_at,
        readAt=notification.read_at,
        icon=notification_icon(notification.type),
        timeAgo=relative_time(notification.created_at, now),
    )


class NotificationService:
    """Service layer for notification business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = NotificationRepository()

    def _get_owned(self, user: User, notification_id: str) -> Notification:
        notification = self.repo.get_notification(self.db, notification_id)
        # Another user's notification is reported as missing
        if not notification or notification.user_id != user.uid:
            raise HTTPException(status_code=404, detail="Notification not found")
        return notification

    def list_notifications(self, user: User, limit: int = 20) -> list[NotificationResponse]:
        now = utcnow()
        return [to_response(n, now) for n in self.repo.list_for_user(self.db, user.uid, limit)]

    def unread_count(self, user: User) -> int:
        return self.repo.count_for_user(self.db, user.uid, unread_only=True)

    def stats(self, user: User) -> NotificationStats:
        return NotificationStats(
            total=self.repo.count_for_user(self.db, user.uid),
            unread=self.repo.count_for_user(self.db, user.uid, unread_only=True),
        )

    def mark_read(self, user: User, notification_id: str) -> NotificationResponse:
        notification = self.repo.mark_read(self.db, self._get_owned(user, notification_id))
        return to_response(notification)

    def mark_all_read(self, user: User) -> dict:
        updated = self.repo.mark_all_read(self.db, user.uid)
        if updated:
            logger.info(f"✅ Marked {updated} notifications read for {user.uid}")
        return {"updated": updated}

    def delete_notification(self, user: User, notification_id: str) -> dict:
        self.repo.delete_notification(self.db, self._get_owned(user, notification_id))
        return {"message": "Notification deleted"}

    def delete_all(self, user: User) -> dict:
        deleted = self.repo.delete_all_for_user(self.db, user.uid)
        logger.info(f"🗑️ Deleted {deleted} notifications for {user.uid}")
        return {"deleted": deleted}

    def create_notification(self, data: NotificationCreate) -> NotificationResponse:
        recipient = self.db.query(User).filter(User.uid == data.userId).first()
        if not recipient:
            raise HTTPException(status_code=404, detail="User not found")

        (notification,) = self.repo.create_notifications(
            self.db,
            [{"user_id": data.userId, "type": data.type, "title": data.title, "message": data.message}],
        )
        logger.info(f"📨 Notification {notification.id} created for {data.userId}")
        return to_response(notification)

    def send_quick_test(self, user: User, notification_type: str) -> NotificationResponse:
        if notification_type not in QUICK_TEST_MESSAGES:
            raise HTTPException(status_code=400, detail=f"Unknown notification type: {notification_type}")
        title, message = QUICK_TEST_MESSAGES[notification_type]
        (notification,) = self.repo.create_notifications(
            self.db,
            [{"user_id": user.uid, "type": notification_type, "title": title, "message": message}],
        )
        logger.info(f"🧪 {notification_type} test notification created: {notification.id}")
        return to_response(notification)

    def send_bulk_test(self, user: User) -> dict:
        rows = [
            {"user_id": user.uid, "type": kind, "title": title, "message": message}
            for kind, title, message in BULK_TEST_NOTIFICATIONS
        ]
        created = self.repo.create_notifications(self.db, rows)
        logger.info(f"🧪 {len(created)} test notifications created for {user.uid}")
        return {"created": len(created)}

    def purge_expired(self, retention_days: int) -> int:
        cutoff = utcnow() - timedelta(days=retention_days)
        purged = self.repo.purge_older_than(self.db, cutoff)
        logger.info(f"🧹 Purged {purged} notifications older than {retention_days} days")
        return purged
