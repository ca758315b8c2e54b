from inventa.database.database import Base
from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint, Numeric, Text
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from inventa.common.mixins import TenantMixin, TimestampMixin
import enum


class InvoiceStatus(str, enum.Enum):
    DRAFT = "DRAFT"          # Borrador
    PENDING = "PENDING"      # Emitida, pendiente de pago
    PAID = "PAID"            # Pagada completamente
    CANCELLED = "CANCELLED"  # Anulada
    OVERDUE = "OVERDUE"      # Vencida


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Invoice(Base, TenantMixin, TimestampMixin):
    __tablename__ = "invoices"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    invoice_number = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default=InvoiceStatus.DRAFT.value)

    store_id = Column(UUID(as_uuid=True), ForeignKey("stores.id"), nullable=False)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False)
    created_by = Column(String(255), nullable=False)

    currency = Column(String(3), nullable=False, default="COP")
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    tax = Column(Numeric(15, 2), nullable=False, default=0)
    total = Column(Numeric(15, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)

    customer = relationship("Customer")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="invoice", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_number", name="uq_invoice_tenant_number"),
    )

    @property
    def paid_amount(self):
        """Calcular monto pagado"""
        return sum(p.amount for p in self.payments if p.status == PaymentStatus.COMPLETED.value)


class InvoiceItem(Base, TimestampMixin):
    __tablename__ = "invoice_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id"), nullable=False)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False)

    # Snapshot del producto al momento de facturar
    description = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    subtotal = Column(Numeric(15, 2), nullable=False)  # quantity * unit_price

    invoice = relationship("Invoice", back_populates="items")


class Payment(Base, TenantMixin, TimestampMixin):
    __tablename__ = "payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id"), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    method = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    reference = Column(String(100), nullable=True)

    invoice = relationship("Invoice", back_populates="payments")
