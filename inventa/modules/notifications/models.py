from sqlalchemy import Column, String, Boolean, Text, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4

from inventa.database.database import Base
from inventa.common.mixins import TimestampMixin


class Notification(Base, TimestampMixin):
    """One notification per recipient membership."""
    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    users_companies_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users_companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    company_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    type = Column(String(30), nullable=False, default="alert")
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    category = Column(String(50), nullable=False)
    created_by = Column(String(255), nullable=True)
    read = Column(Boolean, nullable=False, default=False)
