"""Notification domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator

NotificationType = Literal["info", "success", "warning", "error"]


class NotificationCreate(BaseModel):
    """Admin-created notification for any user"""

    userId: str
    type: NotificationType = "info"
    title: str
    message: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v


class NotificationResponse(BaseModel):
    id: str
    userId: str
    type: str
    title: str
    message: Optional[str] = None
    read: bool
    createdAt: datetime
    readAt: Optional[datetime] = None
    icon: str
    timeAgo: str


class NotificationStats(BaseModel):
    total: int
    unread: int


class UnreadCount(BaseModel):
    unread: int
