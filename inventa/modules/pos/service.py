"""
Point-of-sale settlement.

A sale is one relational transaction: sale and items, one conditional stock
decrement and one SALIDA movement per line, and, when a customer is given,
a paid invoice with its payment. Anything failing rolls all of it back.
"""
from collections import OrderedDict
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional
from uuid import UUID, uuid4
import logging

from sqlalchemy.orm import Session, selectinload

from inventa.common.concurrency import run_with_retry
from inventa.core.config import settings
from inventa.core.exceptions import ValidationError, InsufficientStockError, NotFoundError
from inventa.modules.auth.schemas import TenantContext
from inventa.modules.contacts.service import get_customer
from inventa.modules.inventory.models import Movement, MovementType, MovementDirection
from inventa.modules.inventory.service import available_quantity, decrement_stock, shortage, notify_low_stock
from inventa.modules.invoices.models import Invoice
from inventa.modules.invoices.service import create_paid_invoice
from inventa.modules.pos.models import Sale, SaleItem, SaleStatus, PaymentMethod
from inventa.modules.pos.schemas import SaleCreate
from inventa.modules.products.service import get_product, effective_price
from inventa.modules.sequences.service import next_sale_number
from inventa.modules.stores.service import get_store

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def compute_totals(lines: List[dict], tax_rate: Decimal = None):
    """subtotal = sum(unit_price * quantity); tax rounded half-up to the cent."""
    tax_rate = settings.TAX_RATE if tax_rate is None else tax_rate
    subtotal = sum((line["subtotal"] for line in lines), Decimal("0")).quantize(CENT, rounding=ROUND_HALF_UP)
    tax = (subtotal * Decimal(tax_rate)).quantize(CENT, rounding=ROUND_HALF_UP)
    return subtotal, tax, subtotal + tax


class SaleService:
    """Service for point-of-sale operations."""

    def __init__(self, db: Session):
        self.db = db

    def _prepare(self, context: TenantContext, data: SaleCreate) -> dict:
        """Resolve and validate everything the sale needs before any write."""
        db = self.db
        if not data.items:
            raise ValidationError("El carrito está vacío", field="items")

        errors = []
        if data.store_id is None:
            errors.append({"field": "store_id", "message": "La tienda es obligatoria"})
        method = (data.payment_method or "").strip().lower()
        if not method:
            errors.append({"field": "payment_method", "message": "El método de pago es obligatorio"})
        elif method not in {m.value for m in PaymentMethod}:
            errors.append({"field": "payment_method", "message": "Método de pago inválido"})
        for index, item in enumerate(data.items):
            if item.product_id is None:
                errors.append({"field": f"items.{index}.product_id", "message": "El producto es obligatorio"})
            if item.quantity is None or item.quantity <= 0:
                errors.append({"field": f"items.{index}.quantity",
                               "message": "La cantidad debe ser un número entero mayor a cero"})
            if item.unit_price is not None and item.unit_price < 0:
                errors.append({"field": f"items.{index}.unit_price", "message": "El precio no puede ser negativo"})
        if errors:
            raise ValidationError(errors=errors)

        store = get_store(db, context, data.store_id)
        customer = get_customer(db, context, data.customer_id) if data.customer_id else None

        products = {}
        lines = []
        for index, item in enumerate(data.items):
            product = products.get(item.product_id)
            if product is None:
                product = get_product(db, context, item.product_id, field=f"items.{index}.product_id")
                if not product.is_active:
                    raise ValidationError(f"El producto '{product.name}' está inactivo",
                                          field=f"items.{index}.product_id")
                products[product.id] = product

            unit_price = item.unit_price if item.unit_price is not None else effective_price(product)
            unit_price = Decimal(unit_price).quantize(CENT, rounding=ROUND_HALF_UP)
            lines.append({
                "product": product,
                "product_id": product.id,
                "description": product.name,
                "quantity": item.quantity,
                "unit_price": unit_price,
                "subtotal": (unit_price * item.quantity).quantize(CENT, rounding=ROUND_HALF_UP),
            })

        # Repeated products are checked against their combined quantity
        requested = OrderedDict()
        for line in lines:
            requested[line["product_id"]] = requested.get(line["product_id"], 0) + line["quantity"]
        shortages = []
        for product_id, quantity in requested.items():
            available = available_quantity(db, product_id, store.id)
            if available < quantity:
                shortages.append(shortage(products[product_id], available, quantity))
        if shortages:
            raise InsufficientStockError(shortages)

        subtotal, tax, total = compute_totals(lines)
        return {
            "store": store,
            "customer": customer,
            "payment_method": method,
            "products": list(products.values()),
            "lines": lines,
            "subtotal": subtotal,
            "tax": tax,
            "total": total,
        }

    def _execute(self, context: TenantContext, data: SaleCreate, prepared: dict) -> Sale:
        db = self.db
        store = prepared["store"]
        customer = prepared["customer"]
        lines = prepared["lines"]
        try:
            sale_number = next_sale_number(db, context.tenant_id)
            sale = Sale(
                id=uuid4(),
                tenant_id=context.tenant_id,
                sale_number=sale_number,
                status=SaleStatus.COMPLETED.value,
                payment_method=prepared["payment_method"],
                store_id=store.id,
                customer_id=customer.id if customer else None,
                cashier_id=context.user_id,
                currency=settings.CURRENCY,
                subtotal=prepared["subtotal"],
                tax=prepared["tax"],
                total=prepared["total"],
                notes=data.notes,
            )
            sale.items = [
                SaleItem(
                    product_id=line["product_id"],
                    description=line["description"],
                    quantity=line["quantity"],
                    unit_price=line["unit_price"],
                    subtotal=line["subtotal"],
                )
                for line in lines
            ]
            db.add(sale)
            # Movements reference the sale row without a relationship
            db.flush()

            for line in lines:
                product = line["product"]
                if not decrement_stock(db, product.id, store.id, line["quantity"]):
                    available = available_quantity(db, product.id, store.id)
                    raise InsufficientStockError([shortage(product, available, line["quantity"])])
                db.add(Movement(
                    tenant_id=context.tenant_id,
                    type=MovementType.SALIDA.value,
                    direction=MovementDirection.OUT.value,
                    quantity=line["quantity"],
                    product_id=product.id,
                    store_id=store.id,
                    sale_id=sale.id,
                    reference=f"Venta {sale_number}",
                    created_by=context.user_id,
                ))

            if customer is not None:
                sale.invoice = create_paid_invoice(
                    db,
                    tenant_id=context.tenant_id,
                    store_id=store.id,
                    customer_id=customer.id,
                    lines=lines,
                    subtotal=prepared["subtotal"],
                    tax=prepared["tax"],
                    total=prepared["total"],
                    payment_method=prepared["payment_method"],
                    created_by=context.user_id,
                    reference=f"Venta {sale_number}",
                )

            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(sale)
        return sale

    def process_sale(self, context: TenantContext, data: SaleCreate) -> Sale:
        """
        Settle a cart.

        Raises:
            ValidationError: empty cart, bad quantities or payment method.
            NotFoundError: store, product or customer outside the tenant.
            InsufficientStockError: every short product, reported together.
        """
        prepared = self._prepare(context, data)
        sale = run_with_retry(
            self.db,
            lambda: self._execute(context, data, prepared),
            attempts=settings.SALE_RETRY_ATTEMPTS,
        )
        logger.info(f"Sale {sale.sale_number} ({sale.total} {sale.currency}) completed by {context.user_id}")

        notify_low_stock(self.db, context, [(product, prepared["store"]) for product in prepared["products"]])
        return sale

    def get_sale(self, context: TenantContext, sale_id: UUID) -> Sale:
        sale = self._query(context).filter(Sale.id == sale_id).first()
        if sale is None:
            raise NotFoundError("Venta no encontrada", field="sale_id")
        return sale

    def list_sales(self, context: TenantContext, store_id: Optional[UUID] = None,
                   limit: int = 50, offset: int = 0) -> List[Sale]:
        query = self._query(context)
        if store_id:
            query = query.filter(Sale.store_id == store_id)
        return query.order_by(Sale.created_at.desc(), Sale.sale_number.desc()).offset(offset).limit(limit).all()

    def _query(self, context: TenantContext):
        return self.db.query(Sale).options(
            selectinload(Sale.items),
            selectinload(Sale.invoice).selectinload(Invoice.items),
            selectinload(Sale.invoice).selectinload(Invoice.payments),
        ).filter(Sale.tenant_id == context.tenant_id)
