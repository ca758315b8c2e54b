from inventa.database.database import Base
from inventa.common.mixins import TimestampMixin
from sqlalchemy import Column, String, Boolean, Index, func
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
import uuid


class Company(Base, TimestampMixin):
    """Relational mirror of the company master record kept in the document store."""
    __tablename__ = "companies"

    id = Column(UUID(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4)
    mongo_id = Column(String(64), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    nit = Column(String(20), unique=True, nullable=False, index=True)
    security_code = Column(String(32), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(30), nullable=False)
    address = Column(String(500), nullable=False)
    registration_status = Column(String(30), nullable=False, default="active")
    dian_registered = Column(Boolean, nullable=False, default=False)
    created_by = Column(String(255), nullable=True)

    memberships = relationship("UserCompany", back_populates="company", passive_deletes=True)

    __table_args__ = (
        Index("uq_companies_name_lower", func.lower(name), unique=True),
    )
