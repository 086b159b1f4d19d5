"""Company repository - Database operations for companies"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Company
from ...realtime import snapshot_hub


class CompanyRepository:
    """Repository for company database operations"""

    @staticmethod
    def list_companies(db: Session, status: Optional[str] = None) -> list[Company]:
        """Get all companies ordered by name"""
        query = db.query(Company)
        if status:
            query = query.filter(Company.status == status)
        return query.order_by(Company.company_name.asc()).all()

    @staticmethod
    def get_company(db: Session, company_id: str) -> Optional[Company]:
        return db.query(Company).filter(Company.id == company_id).first()

    @staticmethod
    def create_company(db: Session, **company_data) -> Company:
        company = Company(**company_data)
        db.add(company)
        db.commit()
        db.refresh(company)
        snapshot_hub.publish("companies")
        return company

    @staticmethod
    def update_company(db: Session, company: Company, **updates) -> Company:
        """Partial merge - only keys present in ``updates`` are written"""
        for key, value in updates.items():
            if hasattr(company, key):
                setattr(company, key, value)

        db.commit()
        db.refresh(company)
        snapshot_hub.publish("companies")
        return company

    @staticmethod
    def delete_company(db: Session, company: Company) -> None:
        db.delete(company)
        db.commit()
        snapshot_hub.publish("companies")
        # Linked appointments lose their company reference
        snapshot_hub.publish("appointments")
