from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from .shared.validators import validate_email


class UserSettings(BaseModel):
    notifications: bool = True
    newsletter: bool = True


class UserUpdate(BaseModel):
    displayName: Optional[str] = None
    photoURL: Optional[str] = None
    settings: Optional[UserSettings] = None


class UserResponse(BaseModel):
    uid: str
    email: str
    displayName: Optional[str] = None
    photoURL: Optional[str] = None
    role: str
    status: str
    emailVerified: bool
    authProvider: str
    accountType: str
    settings: UserSettings = UserSettings()
    createdAt: Optional[datetime] = None
    lastLogin: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    email: str
    password: str
    rememberMe: bool = False

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class SignupRequest(BaseModel):
    displayName: str
    email: str
    password: str
    confirmPassword: str
    agreeTerms: bool = False

    @field_validator("displayName")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, v):
        return validate_email(v)


class GoogleLoginRequest(BaseModel):
    idToken: str
    rememberMe: bool = False


class PasswordResetRequest(BaseModel):
    email: str = ""


class AuthResponse(BaseModel):
    """Signed-in user plus the dashboard the client should open"""

    user: UserResponse
    dashboard: Literal["admin", "user"]
    idToken: Optional[str] = None
    expiresIn: Optional[int] = None


class MessageResponse(BaseModel):
    message: str
