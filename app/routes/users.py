import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user, require_admin
from ..database import get_db
from ..models import User
from ..schemas import UserResponse, UserSettings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


def user_response(user: User) -> UserResponse:
    """Profile document in the shape the frontend reads"""
    return UserResponse(
        uid=user.uid,
        email=user.email,
        displayName=user.display_name,
        photoURL=user.photo_url,
        role=user.role,
        status=user.status,
        emailVerified=bool(user.email_verified),
        authProvider=user.auth_provider,
        accountType=user.account_type,
        settings=UserSettings(**(user.settings or {})),
        createdAt=user.created_at,
        lastLogin=user.last_login,
    )


@router.get("", response_model=list[UserResponse])
def list_users(
    search: str = Query("", description="Match on email or display name"),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Every profile, for the admin testing panel's recipient picker"""
    query = db.query(User)
    term = search.strip()
    if term:
        pattern = f"%{term}%"
        query = query.filter((User.email.ilike(pattern)) | (User.display_name.ilike(pattern)))
    users = query.order_by(User.email).all()
    logger.info(f"👥 Admin {current_user.email} listed {len(users)} users")
    return [user_response(u) for u in users]


@router.get("/me", response_model=UserResponse)
def get_my_profile(current_user: User = Depends(get_current_user)):
    return user_response(current_user)
