from sqlalchemy import Column, String, Boolean, ForeignKey, UniqueConstraint, Index, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from uuid import uuid4
import enum

from inventa.database.database import Base
from inventa.common.mixins import TimestampMixin


class MembershipRole(str, enum.Enum):
    ADMINISTRATOR = "ADMINISTRATOR"
    EMPLOYEE = "EMPLOYEE"


class User(Base, TimestampMixin):
    """Local profile of an identity-provider user."""
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    external_id = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


class UserCompany(Base, TimestampMixin):
    __tablename__ = "users_companies"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    # External identity id; memberships can exist before the local profile row
    user_id = Column(String(255), nullable=False, index=True)
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(30), nullable=False, default=MembershipRole.EMPLOYEE.value)
    is_default = Column(Boolean, nullable=False, default=False)

    company = relationship("Company", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("user_id", "company_id", name="uq_user_company"),
        # At most one default company per user
        Index(
            "uq_users_companies_single_default",
            "user_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )
