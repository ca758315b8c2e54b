from inventa.database.database import Base
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from uuid import uuid4
from inventa.common.mixins import TenantMixin, TimestampMixin
from inventa.common.time_utils import utcnow
import enum


class MovementType(str, enum.Enum):
    ENTRADA = "ENTRADA"
    SALIDA = "SALIDA"
    TRANSFERENCIA = "TRANSFERENCIA"


class MovementDirection(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"


class Stock(Base, TenantMixin, TimestampMixin):
    """Existencias de un producto en una tienda."""
    __tablename__ = "stocks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False)
    store_id = Column(UUID(as_uuid=True), ForeignKey("stores.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)

    product = relationship("Product", back_populates="stocks")
    store = relationship("Store", back_populates="stocks")

    __table_args__ = (
        UniqueConstraint("product_id", "store_id", name="uq_stock_product_store"),
        CheckConstraint("quantity >= 0", name="ck_stock_quantity_non_negative"),
    )


class Movement(Base, TenantMixin):
    """
    Immutable audit row. Every stock mutation writes exactly one movement in
    the same transaction; a transfer writes one OUT and one IN row.
    """
    __tablename__ = "movements"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    type = Column(String(20), nullable=False)
    direction = Column(String(3), nullable=False)
    quantity = Column(Integer, nullable=False)

    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False)
    # Store whose stock row changed
    store_id = Column(UUID(as_uuid=True), ForeignKey("stores.id"), nullable=False)
    # Other store of a transfer
    counterpart_store_id = Column(UUID(as_uuid=True), ForeignKey("stores.id"), nullable=True)
    provider_id = Column(UUID(as_uuid=True), ForeignKey("providers.id"), nullable=True)
    sale_id = Column(UUID(as_uuid=True), ForeignKey("sales.id"), nullable=True)

    reference = Column(String(100), nullable=True)
    notes = Column(String(255), nullable=True)
    created_by = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    product = relationship("Product")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_movement_quantity_positive"),
        Index("ix_movements_tenant_created", "tenant_id", "created_at"),
    )
