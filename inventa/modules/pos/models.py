from inventa.database.database import Base
from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint, Numeric, Text
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from inventa.common.mixins import TenantMixin, TimestampMixin
import enum


class SaleStatus(str, enum.Enum):
    COMPLETED = "COMPLETED"


class PaymentMethod(str, enum.Enum):
    EFECTIVO = "efectivo"
    TARJETA = "tarjeta"
    TRANSFERENCIA = "transferencia"
    OTRO = "otro"


class Sale(Base, TenantMixin, TimestampMixin):
    """Venta de punto de venta."""
    __tablename__ = "sales"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    sale_number = Column(String(30), nullable=False)  # V-YYYYMMDD-NNNN
    status = Column(String(20), nullable=False, default=SaleStatus.COMPLETED.value)
    payment_method = Column(String(30), nullable=False)

    store_id = Column(UUID(as_uuid=True), ForeignKey("stores.id"), nullable=False)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=True)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id"), nullable=True)
    cashier_id = Column(String(255), nullable=False)

    currency = Column(String(3), nullable=False, default="COP")
    subtotal = Column(Numeric(15, 2), nullable=False)
    tax = Column(Numeric(15, 2), nullable=False)
    total = Column(Numeric(15, 2), nullable=False)
    notes = Column(Text, nullable=True)

    items = relationship("SaleItem", back_populates="sale", cascade="all, delete-orphan")
    invoice = relationship("Invoice")

    __table_args__ = (
        UniqueConstraint("tenant_id", "sale_number", name="uq_sale_tenant_number"),
    )


class SaleItem(Base, TimestampMixin):
    __tablename__ = "sale_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    sale_id = Column(UUID(as_uuid=True), ForeignKey("sales.id"), nullable=False)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False)

    description = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    subtotal = Column(Numeric(15, 2), nullable=False)  # quantity * unit_price

    sale = relationship("Sale", back_populates="items")
