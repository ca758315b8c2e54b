from inventa.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from inventa.common.mixins import TenantMixin, TimestampMixin


class Product(Base, TenantMixin, TimestampMixin):
    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    store_id = Column(UUID(as_uuid=True), ForeignKey("stores.id"), nullable=True)
    name = Column(String(100), nullable=False)
    sku = Column(String(50), nullable=False)
    barcode = Column(String(50), nullable=True)  # Código de barras
    description = Column(String(255), nullable=True)
    price = Column(Numeric(15, 2), nullable=False, default=0)  # Precio de venta
    cost = Column(Numeric(15, 2), nullable=False, default=0)  # Precio de costo
    min_stock = Column(Integer, nullable=False, default=0)  # Umbral de reorden

    # Descuento porcentual, opcionalmente limitado a una ventana de fechas
    discount = Column(Numeric(5, 2), nullable=True)
    discount_start_date = Column(DateTime(timezone=True), nullable=True)
    discount_end_date = Column(DateTime(timezone=True), nullable=True)
    discount_minimum_price = Column(Numeric(15, 2), nullable=True)

    expiration_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    stocks = relationship("Stock", back_populates="product")

    __table_args__ = (
        UniqueConstraint("tenant_id", "sku", name="uq_product_tenant_sku"),
    )
