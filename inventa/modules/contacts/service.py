from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventa.core.exceptions import DuplicateError, NotFoundError
from inventa.modules.auth.schemas import TenantContext
from inventa.modules.contacts.models import Customer, Provider
from inventa.modules.contacts.schemas import CustomerCreate, ProviderCreate


def _create(db: Session, obj, duplicate_message: str, field: str):
    db.add(obj)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateError(duplicate_message, field=field)
    db.refresh(obj)
    return obj


def create_customer(db: Session, context: TenantContext, data: CustomerCreate) -> Customer:
    customer = Customer(tenant_id=context.tenant_id, **data.model_dump())
    return _create(db, customer, "Ya existe un cliente con este documento", "id_number")


def create_provider(db: Session, context: TenantContext, data: ProviderCreate) -> Provider:
    provider = Provider(tenant_id=context.tenant_id, **data.model_dump())
    return _create(db, provider, "Ya existe un proveedor con este NIT", "nit")


def list_customers(db: Session, context: TenantContext, search: Optional[str] = None) -> List[Customer]:
    query = db.query(Customer).filter(Customer.tenant_id == context.tenant_id)
    if search:
        query = query.filter(Customer.name.ilike(f"%{search}%"))
    return query.order_by(Customer.name).all()


def list_providers(db: Session, context: TenantContext, search: Optional[str] = None) -> List[Provider]:
    query = db.query(Provider).filter(Provider.tenant_id == context.tenant_id)
    if search:
        query = query.filter(Provider.name.ilike(f"%{search}%"))
    return query.order_by(Provider.name).all()


def get_customer(db: Session, context: TenantContext, customer_id: UUID, field: str = "customer_id") -> Customer:
    customer = db.query(Customer).filter(
        Customer.id == customer_id, Customer.tenant_id == context.tenant_id
    ).first()
    if customer is None:
        raise NotFoundError("Cliente no encontrado", field=field)
    return customer


def get_provider(db: Session, context: TenantContext, provider_id: UUID, field: str = "provider_id") -> Provider:
    provider = db.query(Provider).filter(
        Provider.id == provider_id, Provider.tenant_id == context.tenant_id
    ).first()
    if provider is None:
        raise NotFoundError("Proveedor no encontrado", field=field)
    return provider
