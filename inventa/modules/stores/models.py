from inventa.database.database import Base
from sqlalchemy import Column, String, Boolean, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from sqlalchemy.orm import relationship
from inventa.common.mixins import TenantMixin, TimestampMixin


class Store(Base, TenantMixin, TimestampMixin):
    """A store (area) of a tenant; stock is tracked per store."""
    __tablename__ = "stores"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False)
    address = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    is_main = Column(Boolean, nullable=False, default=False)
    # Cross-reference to the master record in the document store
    mongo_store_id = Column(String(64), unique=True, nullable=True)
    created_by = Column(String(255), nullable=True)

    stocks = relationship("Stock", back_populates="store")

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_store_tenant_name"),
    )
