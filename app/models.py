import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_document_id():
    """Opaque document identifier assigned on creation"""
    return uuid.uuid4().hex


class User(Base):
    """Profile document keyed by the identity provider's uid"""

    __tablename__ = "users"

    uid = Column(String(128), primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=True)
    photo_url = Column(String(500), nullable=True)
    role = Column(String(20), default="user", nullable=False)  # user, admin
    status = Column(String(20), default="active", nullable=False)  # active, suspended, banned
    email_verified = Column(Boolean, default=False, nullable=False)
    auth_provider = Column(String(20), default="email", nullable=False)  # email, google
    account_type = Column(String(20), default="free", nullable=False)
    settings = Column(JSON, nullable=True)  # {"notifications": bool, "newsletter": bool}
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    notifications = relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan"
    )


class Company(Base):
    __tablename__ = "companies"

    id = Column(String(32), primary_key=True, default=generate_document_id)
    company_name = Column(String(255), nullable=False, index=True)
    contact_person = Column(String(255), nullable=True)
    client_type = Column(String(20), default="company", nullable=False)  # company, individual
    # Ordered [{"value": ..., "label": ...}] entries
    emails = Column(JSON, nullable=True)
    phones = Column(JSON, nullable=True)
    services = Column(JSON, nullable=True)  # subset of testing, web, it
    status = Column(String(20), default="active", nullable=False)  # active, inactive
    address = Column(String(500), nullable=True)
    city = Column(String(255), nullable=True)
    province = Column(String(50), nullable=True)
    postal_code = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)
    # Legacy single-valued fields, read through normalize_company() only
    service_type = Column(String(20), nullable=True)  # testing, web, it, multiple
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    appointments = relationship("Appointment", back_populates="company")


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(32), primary_key=True, default=generate_document_id)
    title = Column(String(255), nullable=False)
    company_id = Column(
        String(32), ForeignKey("companies.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # Local noon of the calendar day the appointment occurs on
    appointment_date = Column(DateTime, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)  # HH:MM
    duration = Column(Integer, default=30, nullable=False)  # minutes
    end_time = Column(String(5), nullable=True)  # cached start_time + duration
    service_type = Column(String(20), default="other", nullable=False)
    status = Column(String(20), default="scheduled", nullable=False, index=True)
    location = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    # {"testType", "testingKit", "substances", "cleanCardRequired"} - testing appointments only
    drug_testing = Column(JSON, nullable=True)
    # Incremented on every write; sessions use it to reconcile optimistic edits
    version = Column(Integer, default=1, nullable=False)
    last_mutation_id = Column(String(64), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    company = relationship("Company", back_populates="appointments")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(32), primary_key=True, default=generate_document_id)
    user_id = Column(String(128), ForeignKey("users.uid"), nullable=False)
    type = Column(String(20), default="info", nullable=False)  # info, success, warning, error
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    read_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="notifications")

    __table_args__ = (Index("ix_notifications_user_created", "user_id", "created_at"),)
