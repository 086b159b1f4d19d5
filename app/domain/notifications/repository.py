"""Notification repository - Database operations for notifications"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Notification
from ...realtime import snapshot_hub
from ...shared.timeutil import utcnow


class NotificationRepository:
    """Repository for notification database operations"""

    @staticmethod
    def list_for_user(db: Session, user_id: str, limit: Optional[int] = None) -> list[Notification]:
        """Newest first"""
        query = (
            db.query(Notification)
            .filter(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def count_for_user(db: Session, user_id: str, unread_only: bool = False) -> int:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read.is_(False))
        return query.count()

    @staticmethod
    def get_notification(db: Session, notification_id: str) -> Optional[Notification]:
        return db.query(Notification).filter(Notification.id == notification_id).first()

    @staticmethod
    def create_notifications(db: Session, rows: list[dict]) -> list[Notification]:
        """Insert every row in one transaction"""
        now = utcnow()
        notifications = [Notification(read=False, created_at=now, **row) for row in rows]
        db.add_all(notifications)
        db.commit()
        for notification in notifications:
            db.refresh(notification)
        snapshot_hub.publish("notifications")
        return notifications

    @staticmethod
    def mark_read(db: Session, notification: Notification) -> Notification:
        if not notification.read:
            notification.read = True
            notification.read_at = utcnow()
            db.commit()
            db.refresh(notification)
            snapshot_hub.publish("notifications")
        return notification

    @staticmethod
    def mark_all_read(db: Session, user_id: str) -> int:
        """
        Flip every unread notification of ``user_id`` to read as one batch.
        Returns how many changed; with none unread no write is issued.
        """
        unread = (
            db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.read.is_(False))
            .all()
        )
        if not unread:
            return 0

        now = utcnow()
        for notification in unread:
            notification.read = True
            notification.read_at = now
        db.commit()
        snapshot_hub.publish("notifications")
        return len(unread)

    @staticmethod
    def delete_notification(db: Session, notification: Notification) -> None:
        db.delete(notification)
        db.commit()
        snapshot_hub.publish("notifications")

    @staticmethod
    def delete_all_for_user(db: Session, user_id: str) -> int:
        """One-batch delete of every notification of ``user_id``"""
        count = (
            db.query(Notification)
            .filter(Notification.user_id == user_id)
            .delete(synchronize_session=False)
        )
        if not count:
            db.rollback()
            return 0
        db.commit()
        snapshot_hub.publish("notifications")
        return count

    @staticmethod
    def purge_older_than(db: Session, cutoff: datetime) -> int:
        count = (
            db.query(Notification)
            .filter(Notification.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        if not count:
            db.rollback()
            return 0
        db.commit()
        snapshot_hub.publish("notifications")
        return count
