"""Company service - Business logic for company operations"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from .normalize import normalize_company
from .repository import CompanyRepository
from .schemas import CompanyCreate, CompanyResponse, CompanyStats, CompanyUpdate

logger = logging.getLogger(__name__)

# CompanyUpdate field -> Company column
FIELD_MAP = {
    "companyName": "company_name",
    "contactPerson": "contact_person",
    "clientType": "client_type",
    "status": "status",
    "address": "address",
    "city": "city",
    "province": "province",
    "postalCode": "postal_code",
    "notes": "notes",
}


def _matches(text: Optional[str], term: str) -> bool:
    return bool(text) and term in text.lower()


def company_matches_search(company: CompanyResponse, search: str) -> bool:
    """Case-insensitive match on name, contact person and every email/phone value or label"""
    term = search.strip().lower()
    if not term:
        return True
    if _matches(company.companyName, term) or _matches(company.contactPerson, term):
        return True
    for entry in [*company.emails, *company.phones]:
        if _matches(entry.value, term) or _matches(entry.label, term):
            return True
    return False


def filter_companies(
    companies: list[CompanyResponse],
    search: Optional[str] = None,
    service: Optional[str] = None,
    status: Optional[str] = None,
) -> list[CompanyResponse]:
    """Search and filter an already-normalized company list, keeping its order"""
    filtered = companies
    if search:
        filtered = [c for c in filtered if company_matches_search(c, search)]
    if service:
        filtered = [c for c in filtered if service in c.services]
    if status:
        filtered = [c for c in filtered if c.status == status]
    return filtered


def company_stats(companies: list[CompanyResponse]) -> CompanyStats:
    return CompanyStats(
        total=len(companies),
        active=sum(1 for c in companies if c.status == "active"),
        inactive=sum(1 for c in companies if c.status == "inactive"),
        testing=sum(1 for c in companies if "testing" in c.services),
    )


def load_companies(db: Session) -> list[CompanyResponse]:
    """Live-query loader for the companies collection, already normalized"""
    return [normalize_company(c) for c in CompanyRepository.list_companies(db)]


class CompanyService:
    """Service layer for company business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CompanyRepository()

    def list_companies(
        self,
        search: Optional[str] = None,
        service: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[CompanyResponse]:
        companies = [normalize_company(c) for c in self.repo.list_companies(self.db)]
        return filter_companies(companies, search, service, status)

    def get_company(self, company_id: str) -> CompanyResponse:
        company = self.repo.get_company(self.db, company_id)
        if not company:
            raise HTTPException(status_code=404, detail="Company not found")
        return normalize_company(company)

    def company_names(self) -> dict[str, str]:
        """id -> name lookup used by the calendar indicators"""
        return {c.id: c.company_name for c in self.repo.list_companies(self.db)}

    def stats(self) -> CompanyStats:
        return company_stats(self.list_companies())

    def create_company(self, data: CompanyCreate) -> CompanyResponse:
        logger.info(f"📥 Creating company: {data.companyName}")
        company = self.repo.create_company(
            self.db,
            company_name=data.companyName,
            contact_person=data.contactPerson,
            client_type=data.clientType,
            emails=[e.model_dump() for e in data.emails],
            phones=[p.model_dump() for p in data.phones],
            services=list(data.services),
            status=data.status,
            address=data.address,
            city=data.city,
            province=data.province,
            postal_code=data.postalCode,
            notes=data.notes,
        )
        logger.info(f"✅ Company created: {company.id}")
        return normalize_company(company)

    def update_company(self, company_id: str, data: CompanyUpdate) -> CompanyResponse:
        company = self.repo.get_company(self.db, company_id)
        if not company:
            raise HTTPException(status_code=404, detail="Company not found")

        provided = data.model_dump(exclude_unset=True)
        updates = {FIELD_MAP[k]: v for k, v in provided.items() if k in FIELD_MAP}

        # Writes always persist the canonical shape; legacy columns are retired on first edit
        current = normalize_company(company)
        emails = data.emails if data.emails is not None else current.emails
        phones = data.phones if data.phones is not None else current.phones
        services = data.services if data.services is not None else current.services
        updates.update(
            emails=[e.model_dump() for e in emails],
            phones=[p.model_dump() for p in phones],
            services=list(services),
            service_type=None,
            email=None,
            phone=None,
        )

        company = self.repo.update_company(self.db, company, **updates)
        logger.info(f"✅ Company updated: {company_id}")
        return normalize_company(company)

    def delete_company(self, company_id: str) -> dict:
        company = self.repo.get_company(self.db, company_id)
        if not company:
            raise HTTPException(status_code=404, detail="Company not found")

        self.repo.delete_company(self.db, company)
        logger.info(f"🗑️ Company deleted: {company_id}")
        return {"message": "Company deleted"}
