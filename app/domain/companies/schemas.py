"""Company domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ...shared.validators import validate_email, validate_phone

ServiceTag = Literal["testing", "web", "it"]
ALL_SERVICES: tuple[str, ...] = ("testing", "web", "it")


class ContactEntry(BaseModel):
    """One labeled value of a multi-valued email or phone list"""

    value: str
    label: Optional[str] = None

    @field_validator("value")
    @classmethod
    def strip_value(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Value is required")
        return v


def _check_emails(entries: Optional[list[ContactEntry]]):
    if entries is None:
        return None
    return [ContactEntry(value=validate_email(e.value), label=e.label) for e in entries]


def _check_phones(entries: Optional[list[ContactEntry]]):
    if entries is None:
        return None
    return [ContactEntry(value=validate_phone(e.value), label=e.label) for e in entries]


def _canonical_services(services: Optional[list[str]]):
    """Deduplicate and keep the canonical testing, web, it order"""
    if services is None:
        return None
    return [tag for tag in ALL_SERVICES if tag in set(services)]


class CompanyCreate(BaseModel):
    """Schema for creating a new company"""

    companyName: str
    contactPerson: Optional[str] = None
    clientType: Literal["company", "individual"] = "company"
    emails: list[ContactEntry] = []
    phones: list[ContactEntry] = []
    services: list[ServiceTag] = []
    status: Literal["active", "inactive"] = "active"
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postalCode: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("companyName")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Company name is required")
        return v

    @field_validator("emails")
    @classmethod
    def validate_emails(cls, v):
        return _check_emails(v)

    @field_validator("phones")
    @classmethod
    def validate_phones(cls, v):
        return _check_phones(v)

    @field_validator("services")
    @classmethod
    def validate_services(cls, v):
        return _canonical_services(v)


class CompanyUpdate(BaseModel):
    """Schema for updating an existing company"""

    companyName: Optional[str] = None
    contactPerson: Optional[str] = None
    clientType: Optional[Literal["company", "individual"]] = None
    emails: Optional[list[ContactEntry]] = None
    phones: Optional[list[ContactEntry]] = None
    services: Optional[list[ServiceTag]] = None
    status: Optional[Literal["active", "inactive"]] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postalCode: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("companyName")
    @classmethod
    def validate_name(cls, v):
        if v is not None:
            v = v.strip()
            if not v:
                raise ValueError("Company name cannot be empty")
        return v

    @field_validator("emails")
    @classmethod
    def validate_emails(cls, v):
        return _check_emails(v)

    @field_validator("phones")
    @classmethod
    def validate_phones(cls, v):
        return _check_phones(v)

    @field_validator("services")
    @classmethod
    def validate_services(cls, v):
        return _canonical_services(v)


class CompanyResponse(BaseModel):
    """Canonical in-memory company shape consumed by rendering and filtering"""

    id: str
    companyName: str
    contactPerson: Optional[str] = None
    clientType: str = "company"
    emails: list[ContactEntry] = []
    phones: list[ContactEntry] = []
    services: list[str] = []
    status: str = "active"
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postalCode: Optional[str] = None
    notes: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CompanyStats(BaseModel):
    total: int
    active: int
    inactive: int
    testing: int
