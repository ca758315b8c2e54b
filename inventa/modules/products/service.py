from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventa.common.time_utils import utcnow, as_utc
from inventa.core.exceptions import ValidationError, DuplicateError, NotFoundError
from inventa.modules.auth.schemas import TenantContext
from inventa.modules.products.models import Product
from inventa.modules.products.schemas import ProductCreate
from inventa.modules.stores.service import get_store

CENT = Decimal("0.01")


def discount_is_active(product: Product, at: Optional[datetime] = None) -> bool:
    if not product.discount or product.discount <= 0:
        return False
    at = at or utcnow()
    if product.discount_start_date and at < as_utc(product.discount_start_date):
        return False
    if product.discount_end_date and at > as_utc(product.discount_end_date):
        return False
    return True


def effective_price(product: Product, at: Optional[datetime] = None) -> Decimal:
    """Sale price with an active discount applied, never below its minimum price."""
    price = Decimal(product.price)
    if not discount_is_active(product, at):
        return price
    discounted = (price * (Decimal(100) - Decimal(product.discount)) / Decimal(100)).quantize(
        CENT, rounding=ROUND_HALF_UP
    )
    if product.discount_minimum_price:
        discounted = max(discounted, Decimal(product.discount_minimum_price))
    return discounted


def create_product(db: Session, context: TenantContext, data: ProductCreate) -> Product:
    """Crea un producto; el SKU es único por empresa."""
    if db.query(Product.id).filter(Product.sku == data.sku, Product.tenant_id == context.tenant_id).first():
        raise DuplicateError(f"Ya existe un producto con el SKU '{data.sku}' en esta empresa", field="sku")

    if data.store_id is not None:
        get_store(db, context, data.store_id)

    if data.discount_start_date and data.discount_end_date and data.discount_start_date > data.discount_end_date:
        raise ValidationError("La fecha de inicio del descuento debe ser anterior a la fecha de fin",
                              field="discount_start_date")

    product = Product(tenant_id=context.tenant_id, **data.model_dump())
    db.add(product)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateError(f"Ya existe un producto con el SKU '{data.sku}' en esta empresa", field="sku")
    db.refresh(product)
    return product


def list_products(db: Session, context: TenantContext, name: Optional[str] = None,
                  is_active: Optional[bool] = None, limit: int = 50, offset: int = 0) -> List[Product]:
    query = db.query(Product).filter(Product.tenant_id == context.tenant_id)
    if name:
        query = query.filter(Product.name.ilike(f"%{name}%"))
    if is_active is not None:
        query = query.filter(Product.is_active == is_active)
    return query.order_by(Product.name).offset(offset).limit(limit).all()


def get_product(db: Session, context: TenantContext, product_id: UUID, field: str = "product_id") -> Product:
    product = db.query(Product).filter(
        Product.id == product_id,
        Product.tenant_id == context.tenant_id,
    ).first()
    if not product:
        raise NotFoundError("Producto no encontrado", field=field)
    return product
