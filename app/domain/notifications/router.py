"""Notification router - FastAPI endpoints for the notification dropdown and testing panel"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_admin
from ...database import get_db
from ...models import User
from .schemas import NotificationCreate, NotificationResponse, NotificationStats, NotificationType, UnreadCount
from .service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    """Dependency injection for NotificationService"""
    return NotificationService(db)


@router.get("", response_model=list[NotificationResponse])
async def get_notifications(
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Most recent notifications for the current user, newest first"""
    return service.list_notifications(current_user, limit)


@router.get("/unread-count", response_model=UnreadCount)
async def get_unread_count(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return UnreadCount(unread=service.unread_count(current_user))


@router.get("/stats", response_model=NotificationStats)
async def get_notification_stats(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return service.stats(current_user)


@router.post("/read-all")
async def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Mark every unread notification as read in one batch"""
    return service.mark_all_read(current_user)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return service.mark_read(current_user, notification_id)


@router.delete("")
async def delete_all_notifications(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Delete ALL of the current user's notifications"""
    return service.delete_all(current_user)


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return service.delete_notification(current_user, notification_id)


# ============================================================================
# TESTING PANEL (admin)
# ============================================================================


@router.post("", response_model=NotificationResponse, status_code=201)
async def create_notification(
    data: NotificationCreate,
    current_user: User = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
):
    """Send a notification to any user"""
    return service.create_notification(data)


@router.post("/test/bulk", status_code=201)
async def send_bulk_test_notifications(
    current_user: User = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
):
    """Five sample notifications to the current admin"""
    return service.send_bulk_test(current_user)


@router.post("/test/{notification_type}", response_model=NotificationResponse, status_code=201)
async def send_quick_test_notification(
    notification_type: NotificationType,
    current_user: User = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
):
    return service.send_quick_test(current_user, notification_type)
