"""
Company read-path normalization

Older company documents carry a single ``service_type`` (where ``multiple``
stands for every service) and single ``email``/``phone`` strings. Every read
goes through ``normalize_company`` so the rest of the code only ever sees the
canonical ``services`` / ``emails`` / ``phones`` shape.
"""

from typing import Optional

from ...models import Company
from .schemas import ALL_SERVICES, CompanyResponse, ContactEntry

LEGACY_CONTACT_LABEL = "Primary"


def normalize_services(services: Optional[list], legacy_service_type: Optional[str]) -> list[str]:
    if services is not None:
        return [tag for tag in ALL_SERVICES if tag in set(services)]
    if legacy_service_type == "multiple":
        return list(ALL_SERVICES)
    if legacy_service_type in ALL_SERVICES:
        return [legacy_service_type]
    return []


def normalize_contacts(entries: Optional[list], legacy_value: Optional[str]) -> list[ContactEntry]:
    if entries is not None:
        normalized = []
        for entry in entries:
            if isinstance(entry, str):
                entry = {"value": entry}
            if entry.get("value"):
                normalized.append(ContactEntry(value=entry["value"], label=entry.get("label")))
        return normalized
    if legacy_value:
        return [ContactEntry(value=legacy_value, label=LEGACY_CONTACT_LABEL)]
    return []


def normalize_company(company: Company) -> CompanyResponse:
    return CompanyResponse(
        id=company.id,
        companyName=company.company_name,
        contactPerson=company.contact_person,
        clientType=company.client_type or "company",
        emails=normalize_contacts(company.emails, company.email),
        phones=normalize_contacts(company.phones, company.phone),
        services=normalize_services(company.services, company.service_type),
        status=company.status or "active",
        address=company.address,
        city=company.city,
        province=company.province,
        postalCode=company.postal_code,
        notes=company.notes,
        createdAt=company.created_at,
        updatedAt=company.updated_at,
    )
