import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..config import FIREBASE_API_KEY, FRONTEND_URL, IDENTITY_TOOLKIT_URL

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "An error occurred. Please try again."

# Identity Toolkit REST error codes and client SDK codes -> text shown to the user
ERROR_MESSAGES = {
    "EMAIL_EXISTS": "An account with this email already exists.",
    "auth/email-already-in-use": "An account with this email already exists.",
    "INVALID_EMAIL": "Invalid email address.",
    "auth/invalid-email": "Invalid email address.",
    "OPERATION_NOT_ALLOWED": "Operation not allowed. Please contact support.",
    "auth/operation-not-allowed": "Operation not allowed. Please contact support.",
    "WEAK_PASSWORD": "Password is too weak. Use at least 6 characters.",
    "auth/weak-password": "Password is too weak. Use at least 6 characters.",
    "USER_DISABLED": "This account has been disabled.",
    "auth/user-disabled": "This account has been disabled.",
    "EMAIL_NOT_FOUND": "No account found with this email.",
    "auth/user-not-found": "No account found with this email.",
    "INVALID_PASSWORD": "Incorrect password.",
    "auth/wrong-password": "Incorrect password.",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password.",
    "auth/invalid-credential": "Invalid email or password.",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many failed attempts. Please try again later.",
    "auth/too-many-requests": "Too many failed attempts. Please try again later.",
    "auth/popup-closed-by-user": "Sign-in popup was closed.",
    "INVALID_IDP_RESPONSE": "Google sign-in failed. Please try again.",
}


def get_error_message(code: Optional[str]) -> str:
    """User-readable message for a provider error code; unknown codes get a generic one"""
    return ERROR_MESSAGES.get(code or "", DEFAULT_ERROR_MESSAGE)


class IdentityError(Exception):
    """A rejected identity call, carrying the provider code and the message to show"""

    def __init__(self, code: str, status_code: int = 400):
        self.code = code
        self.message = get_error_message(code)
        self.status_code = status_code
        super().__init__(f"{code}: {self.message}")


@dataclass
class IdentitySession:
    uid: str
    email: str
    id_token: str
    refresh_token: Optional[str] = None
    expires_in: int = 3600
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    email_verified: bool = False
    is_new_user: bool = False


def _session_from(data: dict[str, Any]) -> IdentitySession:
    return IdentitySession(
        uid=data["localId"],
        email=data.get("email", ""),
        id_token=data["idToken"],
        refresh_token=data.get("refreshToken"),
        expires_in=int(data.get("expiresIn", 3600)),
        display_name=data.get("displayName") or None,
        photo_url=data.get("photoUrl") or None,
        email_verified=bool(data.get("emailVerified", False)),
        is_new_user=bool(data.get("isNewUser", False)),
    )


class IdentityClient:
    """Email/password and Google sign-in through the Firebase Identity Toolkit REST API"""

    def __init__(
        self,
        api_key: Optional[str] = FIREBASE_API_KEY,
        base_url: str = IDENTITY_TOOLKIT_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 15.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        self.timeout = timeout

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.api_key:
            logger.error("❌ FIREBASE_API_KEY not configured")
            raise IdentityError("CONFIGURATION_NOT_FOUND", status_code=500)

        url = f"{self.base_url}/accounts:{method}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, params={"key": self.api_key}, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"❌ Identity provider unreachable ({method}): {e}")
            raise IdentityError("NETWORK_REQUEST_FAILED", status_code=503) from e

        if response.status_code != 200:
            try:
                message = response.json().get("error", {}).get("message", "")
            except ValueError:
                message = ""
            # "WEAK_PASSWORD : Password should be at least 6 characters"
            code = message.split(" : ")[0].strip() or f"HTTP_{response.status_code}"
            logger.warning(f"⚠️ Identity call {method} rejected: {code}")
            raise IdentityError(code, status_code=400 if response.status_code < 500 else 503)

        return response.json()

    async def sign_in_with_password(self, email: str, password: str) -> IdentitySession:
        data = await self._call(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return _session_from(data)

    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> IdentitySession:
        data = await self._call(
            "signUp", {"email": email, "password": password, "returnSecureToken": True}
        )
        session = _session_from(data)
        session.is_new_user = True

        if display_name:
            await self._call(
                "update",
                {"idToken": session.id_token, "displayName": display_name, "returnSecureToken": False},
            )
            session.display_name = display_name
        return session

    async def send_password_reset(self, email: str) -> None:
        await self._call("sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})
        logger.info(f"📧 Password reset email requested for {email}")

    async def sign_in_with_google(self, google_id_token: str) -> IdentitySession:
        """Exchange a Google OAuth id token (from the sign-in popup) for a Firebase session"""
        data = await self._call(
            "signInWithIdp",
            {
                "postBody": f"id_token={google_id_token}&providerId=google.com",
                "requestUri": FRONTEND_URL,
                "returnIdpCredential": True,
                "returnSecureToken": True,
            },
        )
        return _session_from(data)


def get_identity_client() -> IdentityClient:
    """Dependency injection for IdentityClient"""
    return IdentityClient()
