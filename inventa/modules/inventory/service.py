from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventa.common.time_utils import utcnow
from inventa.core.exceptions import ValidationError, InsufficientStockError, ConflictError
from inventa.modules.auth.schemas import TenantContext
from inventa.modules.contacts.service import get_provider
from inventa.modules.inventory.models import Stock, Movement, MovementType, MovementDirection
from inventa.modules.inventory.schemas import MovementCreate
from inventa.modules.notifications.service import dispatch_admin_notifications
from inventa.modules.products.models import Product
from inventa.modules.products.service import get_product
from inventa.modules.stores.models import Store
from inventa.modules.stores.service import get_store

logger = logging.getLogger(__name__)


# ===== Stock primitives =====
# Stock is never read and then written back; both directions are single
# conditional UPDATE statements.

def available_quantity(db: Session, product_id: UUID, store_id: UUID) -> int:
    quantity = db.query(Stock.quantity).filter(
        Stock.product_id == product_id,
        Stock.store_id == store_id,
    ).scalar()
    return quantity or 0


def decrement_stock(db: Session, product_id: UUID, store_id: UUID, quantity: int) -> bool:
    """Take quantity units out; False when fewer are available."""
    updated = db.query(Stock).filter(
        Stock.product_id == product_id,
        Stock.store_id == store_id,
        Stock.quantity >= quantity,
    ).update(
        {Stock.quantity: Stock.quantity - quantity, Stock.updated_at: utcnow()},
        synchronize_session=False,
    )
    return updated == 1


def increment_stock(db: Session, tenant_id: UUID, product_id: UUID, store_id: UUID, quantity: int,
                    attempts: int = 3) -> None:
    """Add quantity units, creating the stock row when it does not exist yet."""
    for _ in range(attempts):
        updated = db.query(Stock).filter(
            Stock.product_id == product_id,
            Stock.store_id == store_id,
        ).update(
            {Stock.quantity: Stock.quantity + quantity, Stock.updated_at: utcnow()},
            synchronize_session=False,
        )
        if updated:
            return
        try:
            with db.begin_nested():
                db.add(Stock(tenant_id=tenant_id, product_id=product_id, store_id=store_id, quantity=quantity))
            return
        except IntegrityError:
            # Another transaction created the row first; update it instead
            continue
    raise ConflictError("No se pudo actualizar el stock, intenta de nuevo", field="quantity")


def shortage(product: Product, available: int, requested: int) -> dict:
    return {
        "product_id": product.id,
        "product_name": product.name,
        "available": available,
        "requested": requested,
    }


def is_low_stock(db: Session, product: Product, store_id: UUID) -> Tuple[bool, int]:
    quantity = available_quantity(db, product.id, store_id)
    return quantity <= (product.min_stock or 0), quantity


def notify_low_stock(db: Session, context: TenantContext, items: List[Tuple[Product, Store]]) -> None:
    """Best-effort alert to administrators for every (product, store) at or below its minimum."""
    for product, store in items:
        low, quantity = is_low_stock(db, product, store.id)
        if not low:
            continue
        dispatch_admin_notifications(
            db,
            context.tenant_id,
            title="Stock bajo",
            message=(
                f"El producto {product.name} tiene {quantity} unidades en {store.name} "
                f"(mínimo {product.min_stock})."
            ),
            category="stock",
            created_by=context.user_id,
        )


class InventoryService:
    """Service for inventory management operations."""

    def __init__(self, db: Session):
        self.db = db

    def _validate(self, data: MovementCreate) -> MovementType:
        errors = []
        for field, message in (
            ("type", "El tipo de movimiento es obligatorio"),
            ("product_id", "El producto es obligatorio"),
            ("store_id", "La tienda es obligatoria"),
            ("quantity", "La cantidad es obligatoria"),
        ):
            if getattr(data, field) is None:
                errors.append({"field": field, "message": message})
        if errors:
            raise ValidationError(errors=errors)

        try:
            movement_type = MovementType((data.type or "").strip().upper())
        except ValueError:
            raise ValidationError("Tipo de movimiento inválido. Use ENTRADA, SALIDA o TRANSFERENCIA", field="type")

        if isinstance(data.quantity, bool) or not isinstance(data.quantity, int) or data.quantity <= 0:
            raise ValidationError("La cantidad debe ser un número entero mayor a cero", field="quantity")

        if movement_type == MovementType.TRANSFERENCIA:
            if data.destination_store_id is None:
                raise ValidationError("La tienda destino es obligatoria para transferencias",
                                      field="destination_store_id")
            if data.destination_store_id == data.store_id:
                raise ValidationError("No se puede transferir a la misma tienda", field="destination_store_id")
        return movement_type

    def record_movement(self, context: TenantContext, data: MovementCreate) -> List[Movement]:
        """
        Apply a stock movement and write its audit rows in one transaction.

        Raises:
            ValidationError: bad type or quantity, inactive product.
            NotFoundError: product, store or provider outside the tenant.
            InsufficientStockError: outbound quantity above the available stock.
        """
        movement_type = self._validate(data)
        db = self.db

        product = get_product(db, context, data.product_id)
        if not product.is_active:
            raise ValidationError(
                f"El producto '{product.name}' está inactivo y no se pueden realizar movimientos",
                field="product_id",
            )
        store = get_store(db, context, data.store_id)
        destination = None
        if movement_type == MovementType.TRANSFERENCIA:
            destination = get_store(db, context, data.destination_store_id, field="destination_store_id")
        provider_id = None
        if movement_type == MovementType.ENTRADA and data.provider_id is not None:
            provider_id = get_provider(db, context, data.provider_id).id

        quantity = data.quantity
        common = dict(
            tenant_id=context.tenant_id,
            type=movement_type.value,
            quantity=quantity,
            product_id=product.id,
            reference=data.reference,
            notes=data.notes,
            created_by=context.user_id,
        )
        movements = []
        try:
            if movement_type in (MovementType.SALIDA, MovementType.TRANSFERENCIA):
                available = available_quantity(db, product.id, store.id)
                if available < quantity:
                    raise InsufficientStockError([shortage(product, available, quantity)])
                if not decrement_stock(db, product.id, store.id, quantity):
                    # Lost a race with a concurrent movement
                    available = available_quantity(db, product.id, store.id)
                    raise InsufficientStockError([shortage(product, available, quantity)])
                movements.append(Movement(
                    **common,
                    direction=MovementDirection.OUT.value,
                    store_id=store.id,
                    counterpart_store_id=destination.id if destination else None,
                ))

            if movement_type in (MovementType.ENTRADA, MovementType.TRANSFERENCIA):
                target = destination or store
                increment_stock(db, context.tenant_id, product.id, target.id, quantity)
                movements.append(Movement(
                    **common,
                    direction=MovementDirection.IN.value,
                    store_id=target.id,
                    counterpart_store_id=store.id if destination else None,
                    provider_id=provider_id,
                ))

            db.add_all(movements)
            db.commit()
        except Exception:
            db.rollback()
            raise

        for movement in movements:
            db.refresh(movement)
        logger.info(
            f"{movement_type.value} of {quantity} x {product.sku} at store {store.id} "
            f"recorded by {context.user_id}"
        )

        if movement_type in (MovementType.SALIDA, MovementType.TRANSFERENCIA):
            notify_low_stock(db, context, [(product, store)])
        return movements

    def get_product_stock(self, context: TenantContext, product_id: UUID) -> dict:
        product = get_product(self.db, context, product_id)
        rows = self.db.query(Stock.store_id, Store.name, Stock.quantity).join(
            Store, Store.id == Stock.store_id
        ).filter(
            Stock.product_id == product.id,
            Stock.tenant_id == context.tenant_id,
        ).order_by(Store.name).all()

        total = sum(quantity for _, _, quantity in rows)
        return {
            "product_id": product.id,
            "product_name": product.name,
            "min_stock": product.min_stock,
            "total_quantity": total,
            "status": "bajo" if total <= product.min_stock else "normal",
            "stores": [
                {"store_id": store_id, "store_name": name, "quantity": quantity}
                for store_id, name, quantity in rows
            ],
        }

    def list_low_stock(self, context: TenantContext) -> List[dict]:
        """Active products whose total stock is at or below their minimum."""
        total = func.coalesce(func.sum(Stock.quantity), 0)
        rows = self.db.query(Product, total).outerjoin(
            Stock, Stock.product_id == Product.id
        ).filter(
            Product.tenant_id == context.tenant_id,
            Product.is_active.is_(True),
        ).group_by(Product.id).having(total <= Product.min_stock).order_by(Product.name).all()

        return [
            {
                "product_id": product.id,
                "product_name": product.name,
                "sku": product.sku,
                "min_stock": product.min_stock,
                "total_quantity": int(quantity),
            }
            for product, quantity in rows
        ]

    def list_movements(
        self,
        context: TenantContext,
        product_id: Optional[UUID] = None,
        store_id: Optional[UUID] = None,
        movement_type: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Movement]:
        query = self.db.query(Movement).filter(Movement.tenant_id == context.tenant_id)
        if product_id:
            query = query.filter(Movement.product_id == product_id)
        if store_id:
            query = query.filter(Movement.store_id == store_id)
        if movement_type:
            query = query.filter(Movement.type == movement_type.upper())
        if start_date:
            query = query.filter(Movement.created_at >= start_date)
        if end_date:
            query = query.filter(Movement.created_at <= end_date)
        return query.order_by(Movement.created_at.desc()).offset(offset).limit(limit).all()
