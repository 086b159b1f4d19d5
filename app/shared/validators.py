"""Shared validation utilities"""

import re
from typing import Optional

EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate a North American or international phone number.

    Keeps the number as typed (trimmed) so labels like "ext. 12" survive, but
    requires 7 to 15 digits in it.

    Raises:
        ValueError: If the number has too few or too many digits
    """
    if not phone:
        return phone

    phone = phone.strip()
    digits = re.sub(r"\D", "", phone)
    if len(digits) < 7 or len(digits) > 15:
        raise ValueError("Phone number must contain between 7 and 15 digits")

    return phone


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    if not re.match(EMAIL_PATTERN, email):
        raise ValueError("Invalid email format")

    return email


def validate_password(password: str, confirm_password: Optional[str] = None) -> str:
    """
    Validate a new account password.

    Raises:
        ValueError: If the confirmation does not match or the password is shorter than 8 characters
    """
    if confirm_password is not None and password != confirm_password:
        raise ValueError("Passwords do not match.")
    if len(password) < 8:
        raise ValueError("Password must be at least 8 characters long.")
    return password
