import logging
from datetime import timedelta
from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from firebase_admin import auth as firebase_auth
from firebase_admin.exceptions import FirebaseError
from sqlalchemy.orm import Session

from ..auth import get_current_user, get_firebase_app, load_profile
from ..config import SESSION_COOKIE_DAYS, SESSION_COOKIE_NAME, SESSION_COOKIE_SECURE
from ..database import get_db
from ..models import User
from ..rate_limiter import create_rate_limiter
from ..schemas import (
    AuthResponse,
    GoogleLoginRequest,
    LoginRequest,
    MessageResponse,
    PasswordResetRequest,
    SignupRequest,
    UserResponse,
    UserUpdate,
)
from ..services.identity_service import IdentityClient, IdentityError, IdentitySession, get_identity_client
from ..shared.timeutil import utcnow
from ..shared.validators import validate_password
from .users import user_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

rate_limit_login = create_rate_limiter(limit=10, window_seconds=300, key_prefix="login")
rate_limit_signup = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="signup")
rate_limit_password_reset = create_rate_limiter(
    limit=5, window_seconds=3600, key_prefix="password_reset"
)

SessionCookieFactory = Callable[[str, timedelta], str]


def get_session_cookie_factory() -> SessionCookieFactory:
    """Mints Firebase session cookies from a fresh ID token"""

    def mint(id_token: str, expires_in: timedelta) -> str:
        return firebase_auth.create_session_cookie(id_token, expires_in=expires_in, app=get_firebase_app())

    return mint


def identity_error(e: IdentityError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail={"code": e.code, "message": e.message})


def set_session_cookie(
    response: Response,
    mint: SessionCookieFactory,
    id_token: str,
    remember_me: bool,
) -> None:
    """
    Durable ("Remember me") sessions survive a browser restart; otherwise the
    cookie is dropped when the browser closes. The Firebase session itself
    always expires after SESSION_COOKIE_DAYS.
    """
    expires_in = timedelta(days=SESSION_COOKIE_DAYS)
    try:
        cookie = mint(id_token, expires_in)
    except (FirebaseError, ValueError) as e:
        logger.error(f"❌ Failed to create session cookie: {e}")
        raise HTTPException(status_code=401, detail="Could not start session") from e

    response.set_cookie(
        SESSION_COOKIE_NAME,
        cookie,
        max_age=int(expires_in.total_seconds()) if remember_me else None,
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
    )


def auth_response(user: User, session: IdentitySession) -> AuthResponse:
    return AuthResponse(
        user=user_response(user),
        dashboard="admin" if user.role == "admin" else "user",
        idToken=session.id_token,
        expiresIn=session.expires_in,
    )


def _touch_last_login(db: Session, user: User) -> None:
    now = utcnow()
    user.last_login = now
    user.updated_at = now
    db.commit()
    db.refresh(user)


@router.post("/login", response_model=AuthResponse)
async def login(
    data: LoginRequest,
    response: Response,
    _: None = Depends(rate_limit_login),
    identity: IdentityClient = Depends(get_identity_client),
    mint: SessionCookieFactory = Depends(get_session_cookie_factory),
    db: Session = Depends(get_db),
):
    """Email/password sign-in; ``rememberMe`` picks a durable or browser-session cookie"""
    try:
        session = await identity.sign_in_with_password(data.email, data.password)
    except IdentityError as e:
        raise identity_error(e) from e

    # A sign-in without a profile document is fatal for the session
    user = load_profile(db, {"uid": session.uid})
    _touch_last_login(db, user)
    set_session_cookie(response, mint, session.id_token, data.rememberMe)
    logger.info(f"✅ User signed in: {user.email} ({user.role})")
    return auth_response(user, session)


@router.post("/signup", response_model=AuthResponse, status_code=201)
async def signup(
    data: SignupRequest,
    response: Response,
    _: None = Depends(rate_limit_signup),
    identity: IdentityClient = Depends(get_identity_client),
    mint: SessionCookieFactory = Depends(get_session_cookie_factory),
    db: Session = Depends(get_db),
):
    """Create an account and its profile document (role ``user``)"""
    try:
        validate_password(data.password, data.confirmPassword)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"code": "invalid-password", "message": str(e)}) from e
    if not data.agreeTerms:
        raise HTTPException(
            status_code=400,
            detail={"code": "terms-not-accepted", "message": "You must agree to the Terms & Conditions."},
        )

    try:
        session = await identity.sign_up(data.email, data.password, data.displayName)
    except IdentityError as e:
        raise identity_error(e) from e

    now = utcnow()
    user = User(
        uid=session.uid,
        email=data.email,
        display_name=data.displayName,
        photo_url=session.photo_url or "",
        role="user",
        status="active",
        email_verified=session.email_verified,
        auth_provider="email",
        account_type="free",
        settings={"notifications": True, "newsletter": True},
        created_at=now,
        last_login=now,
        updated_at=now,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    set_session_cookie(response, mint, session.id_token, remember_me=False)
    logger.info(f"✅ Account created: {user.email}")
    return auth_response(user, session)


@router.post("/google", response_model=AuthResponse)
async def google_login(
    data: GoogleLoginRequest,
    response: Response,
    _: None = Depends(rate_limit_login),
    identity: IdentityClient = Depends(get_identity_client),
    mint: SessionCookieFactory = Depends(get_session_cookie_factory),
    db: Session = Depends(get_db),
):
    """Google sign-in; first-time users get a profile document"""
    try:
        session = await identity.sign_in_with_google(data.idToken)
    except IdentityError as e:
        raise identity_error(e) from e

    user = db.query(User).filter(User.uid == session.uid).first()
    if user is None:
        now = utcnow()
        user = User(
            uid=session.uid,
            email=session.email,
            display_name=session.display_name or "",
            photo_url=session.photo_url or "",
            role="user",
            status="active",
            email_verified=session.email_verified,
            auth_provider="google",
            account_type="free",
            settings={"notifications": True, "newsletter": True},
            created_at=now,
            last_login=now,
            updated_at=now,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"✅ New Google user profile created: {user.email}")
    else:
        _touch_last_login(db, user)

    set_session_cookie(response, mint, session.id_token, data.rememberMe)
    return auth_response(user, session)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    data: PasswordResetRequest,
    _: None = Depends(rate_limit_password_reset),
    identity: IdentityClient = Depends(get_identity_client),
):
    email = data.email.strip()
    if not email:
        raise HTTPException(
            status_code=400,
            detail={"code": "missing-email", "message": "Please enter your email address first."},
        )
    try:
        await identity.send_password_reset(email)
    except IdentityError as e:
        raise identity_error(e) from e
    return MessageResponse(message="Password reset email sent! Check your inbox.")


def _session_uid(request: Request) -> Optional[str]:
    """uid behind the session cookie, if it still verifies"""
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if not cookie:
        return None
    try:
        claims = firebase_auth.verify_session_cookie(cookie, app=get_firebase_app())
    except (FirebaseError, ValueError) as e:
        logger.debug(f"Session cookie no longer valid at logout: {e}")
        return None
    return claims.get("uid") or claims.get("sub")


@router.post("/logout", response_model=MessageResponse)
async def logout(request: Request, response: Response):
    """Clear the session cookie and revoke the user's refresh tokens"""
    uid = _session_uid(request)
    if uid:
        try:
            firebase_auth.revoke_refresh_tokens(uid, app=get_firebase_app())
            logger.info(f"👋 Sessions revoked for {uid}")
        except FirebaseError as e:
            logger.warning(f"⚠️ Could not revoke refresh tokens for {uid}: {e}")

    response.delete_cookie(SESSION_COOKIE_NAME)
    return MessageResponse(message="Signed out")


@router.get("/me", response_model=AuthResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user and the dashboard for their role"""
    return AuthResponse(
        user=user_response(current_user),
        dashboard="admin" if current_user.role == "admin" else "user",
    )


@router.patch("/me", response_model=UserResponse)
async def update_me(
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update current user profile"""
    if data.displayName is not None:
        current_user.display_name = data.displayName.strip()
    if data.photoURL is not None:
        current_user.photo_url = data.photoURL
    if data.settings is not None:
        current_user.settings = data.settings.model_dump()
    current_user.updated_at = utcnow()

    db.commit()
    db.refresh(current_user)
    return user_response(current_user)
