import logging
from typing import Optional

import firebase_admin
from fastapi import Depends, HTTPException, Request, WebSocket, WebSocketException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from sqlalchemy.orm import Session

from .config import FIREBASE_PROJECT_ID, LOGIN_PATH, SESSION_COOKIE_NAME
from .database import get_db
from .models import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_firebase_app() -> firebase_admin.App:
    """Initialize the Firebase Admin SDK once and return the default app"""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    try:
        # Application Default Credentials or GOOGLE_APPLICATION_CREDENTIALS service account
        cred = credentials.ApplicationDefault()
        app = firebase_admin.initialize_app(cred, {"projectId": FIREBASE_PROJECT_ID})
        logger.info("Firebase Admin initialized with default credentials")
    except Exception:
        # Token verification only needs the project id and Google's public certificates
        app = firebase_admin.initialize_app(options={"projectId": FIREBASE_PROJECT_ID})
        logger.info("Firebase Admin initialized with project ID only")
    return app


def verify_token(token: str, is_session_cookie: bool = False) -> dict:
    """
    Verify a Firebase ID token or session cookie and return its claims.
    Any verification failure becomes a 401.
    """
    if not FIREBASE_PROJECT_ID:
        logger.error("❌ FIREBASE_PROJECT_ID not configured")
        raise HTTPException(status_code=500, detail="Firebase not configured")

    app = get_firebase_app()
    try:
        if is_session_cookie:
            return firebase_auth.verify_session_cookie(token, check_revoked=True, app=app)
        return firebase_auth.verify_id_token(token, app=app)
    except firebase_auth.ExpiredIdTokenError as e:
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        ) from e
    except (firebase_auth.RevokedIdTokenError, firebase_auth.RevokedSessionCookieError) as e:
        raise HTTPException(status_code=401, detail="Session has been revoked") from e
    except (ValueError, firebase_auth.InvalidIdTokenError, firebase_auth.InvalidSessionCookieError) as e:
        logger.warning(f"⚠️ Token verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid authentication token") from e


async def get_token_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """Claims from the Bearer token, falling back to the session cookie"""
    if credentials and credentials.credentials:
        return verify_token(credentials.credentials)

    session_cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if session_cookie:
        return verify_token(session_cookie, is_session_cookie=True)

    raise HTTPException(
        status_code=401,
        detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
    )


def load_profile(db: Session, claims: dict) -> User:
    """
    Profile document for the authenticated uid.

    A missing profile after a successful sign-in ends the session: the client
    is sent back to the login entry point.
    """
    uid = claims.get("uid") or claims.get("sub") or claims.get("user_id")
    if not uid:
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    user = db.query(User).filter(User.uid == uid).first()
    if not user:
        logger.error(f"❌ User profile not found for uid {uid}")
        raise HTTPException(
            status_code=401,
            detail="User profile not found",
            headers={"X-Redirect": LOGIN_PATH},
        )
    return user


async def get_current_user(
    claims: dict = Depends(get_token_claims),
    db: Session = Depends(get_db),
) -> User:
    """Get current user profile from the verified Firebase credentials"""
    user = load_profile(db, claims)
    logger.debug(f"✅ User authenticated: {user.email}")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Admin dashboard guard"""
    if user.role != "admin":
        logger.warning(f"⚠️ User {user.email} attempted to access an admin route")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


async def get_websocket_claims(websocket: WebSocket) -> dict:
    """Websockets cannot send headers from the browser: token query param, then session cookie"""
    token = websocket.query_params.get("token")
    session_cookie = websocket.cookies.get(SESSION_COOKIE_NAME)
    try:
        if token:
            return verify_token(token)
        if session_cookie:
            return verify_token(session_cookie, is_session_cookie=True)
    except HTTPException as e:
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason=str(e.detail)) from e
    raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason="Not authenticated")
