"""
Terceros de la empresa: clientes (ventas facturadas) y proveedores (entradas de inventario).
"""
from inventa.database.database import Base
from sqlalchemy import Column, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from inventa.common.mixins import TenantMixin, TimestampMixin


class Customer(Base, TenantMixin, TimestampMixin):
    __tablename__ = "customers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(200), nullable=False)
    id_number = Column(String(30), nullable=True)  # Cédula o NIT
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    address = Column(String(255), nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "id_number", name="uq_customer_tenant_id_number"),
    )


class Provider(Base, TenantMixin, TimestampMixin):
    __tablename__ = "providers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(200), nullable=False)
    nit = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    address = Column(String(255), nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "nit", name="uq_provider_tenant_nit"),
    )
