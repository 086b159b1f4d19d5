"""Company router - FastAPI endpoints for company operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_admin
from ...database import get_db
from ...models import User
from .schemas import CompanyCreate, CompanyResponse, CompanyStats, CompanyUpdate
from .service import CompanyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/companies", tags=["Companies"])


def get_company_service(db: Session = Depends(get_db)) -> CompanyService:
    """Dependency injection for CompanyService"""
    return CompanyService(db)


@router.get("", response_model=list[CompanyResponse])
async def get_companies(
    search: Optional[str] = Query(None),
    service_filter: Optional[str] = Query(None, alias="service"),
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: CompanyService = Depends(get_company_service),
):
    """Companies ordered by name, optionally searched and filtered by service or status"""
    return service.list_companies(search=search, service=service_filter, status=status)


@router.get("/stats", response_model=CompanyStats)
async def get_company_stats(
    current_user: User = Depends(get_current_user),
    service: CompanyService = Depends(get_company_service),
):
    return service.stats()


@router.get("/{company_id}", response_model=CompanyResponse)
async def get_company(
    company_id: str,
    current_user: User = Depends(get_current_user),
    service: CompanyService = Depends(get_company_service),
):
    return service.get_company(company_id)


@router.post("", response_model=CompanyResponse, status_code=201)
async def create_company(
    data: CompanyCreate,
    current_user: User = Depends(require_admin),
    service: CompanyService = Depends(get_company_service),
):
    """Create a new company record"""
    return service.create_company(data)


@router.patch("/{company_id}", response_model=CompanyResponse)
async def update_company(
    company_id: str,
    data: CompanyUpdate,
    current_user: User = Depends(require_admin),
    service: CompanyService = Depends(get_company_service),
):
    """Partial update; the record is saved back in the multi-valued shape"""
    return service.update_company(company_id, data)


@router.delete("/{company_id}")
async def delete_company(
    company_id: str,
    current_user: User = Depends(require_admin),
    service: CompanyService = Depends(get_company_service),
):
    return service.delete_company(company_id)
