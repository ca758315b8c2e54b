"""
Tests para el módulo POS (ventas)

Cubren:
- Aritmética de la venta (subtotal, IVA, total)
- Descuento de stock y movimiento SALIDA por línea
- Faltantes reportados juntos, sin escrituras parciales
- Factura pagada cuando la venta tiene cliente
- Reintento ante conflictos de concurrencia
"""

import re
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError

from conftest import add_stock
from inventa.common.time_utils import utcnow
from inventa.core.exceptions import ValidationError, InsufficientStockError, NotFoundError
from inventa.modules.contacts.schemas import CustomerCreate
from inventa.modules.contacts.service import create_customer
from inventa.modules.inventory.models import Stock, Movement
from inventa.modules.invoices.models import Invoice, InvoiceStatus, PaymentStatus
from inventa.modules.notifications.models import Notification
from inventa.modules.pos import service as pos_service
from inventa.modules.pos.models import Sale, SaleStatus
from inventa.modules.pos.schemas import SaleCreate, SaleItemCreate
from inventa.modules.pos.service import SaleService, compute_totals
from inventa.modules.products.schemas import ProductCreate
from inventa.modules.products.service import create_product, effective_price


def _quantity(db_session, product_id, store_id):
    db_session.expire_all()
    return db_session.query(Stock.quantity).filter(
        Stock.product_id == product_id, Stock.store_id == store_id
    ).scalar()


def _sale(store_id, *items, **extra):
    return SaleCreate(
        store_id=store_id,
        payment_method=extra.pop("payment_method", "efectivo"),
        items=[SaleItemCreate(product_id=product_id, quantity=quantity) for product_id, quantity in items],
        **extra,
    )


@pytest.fixture
def stocked_product(db_session, tenant, product):
    add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 5)
    return product


@pytest.fixture
def second_product(db_session, tenant):
    product = create_product(db_session, tenant["context"], ProductCreate(
        name="Aceite Premier 1L", sku="ACE-1000", price=Decimal("12500"), min_stock=0,
    ))
    add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 10)
    return product


class TestComputeTotals:
    """Tests para el cálculo de totales"""

    def test_tax_is_rounded_half_up_to_the_cent(self):
        lines = [{"subtotal": Decimal("0.05")}]
        subtotal, tax, total = compute_totals(lines, Decimal("0.19"))
        assert (subtotal, tax, total) == (Decimal("0.05"), Decimal("0.01"), Decimal("0.06"))

    def test_total_is_subtotal_plus_tax(self):
        lines = [{"subtotal": Decimal("1999.99")}, {"subtotal": Decimal("333.33")}]
        subtotal, tax, total = compute_totals(lines)
        assert subtotal == Decimal("2333.32")
        assert tax == Decimal("443.33")
        assert total == subtotal + tax


class TestProcessSale:
    """Tests para SaleService.process_sale"""

    def test_two_units_at_one_thousand(self, db_session, tenant, stocked_product):
        sale = SaleService(db_session).process_sale(
            tenant["context"], _sale(tenant["store_id"], (stocked_product.id, 2))
        )

        assert sale.subtotal == Decimal("2000")
        assert sale.tax == Decimal("380")
        assert sale.total == Decimal("2380")
        assert sale.status == SaleStatus.COMPLETED.value
        assert sale.cashier_id == "user_admin"
        assert _quantity(db_session, stocked_product.id, tenant["store_id"]) == 3

        movements = db_session.query(Movement).filter(Movement.type == "SALIDA").all()
        assert len(movements) == 1
        assert movements[0].quantity == 2
        assert movements[0].sale_id == sale.id
        assert movements[0].reference == f"Venta {sale.sale_number}"

    def test_subtotal_matches_items(self, db_session, tenant, stocked_product, second_product):
        sale = SaleService(db_session).process_sale(
            tenant["context"],
            _sale(tenant["store_id"], (stocked_product.id, 1), (second_product.id, 3)),
        )
        assert sale.subtotal == sum(item.unit_price * item.quantity for item in sale.items)
        assert sale.total == sale.subtotal + sale.tax
        assert sale.subtotal == Decimal("38500")

    def test_sale_numbers_increase_per_day(self, db_session, tenant, stocked_product):
        service = SaleService(db_session)
        first = service.process_sale(tenant["context"], _sale(tenant["store_id"], (stocked_product.id, 1)))
        second = service.process_sale(tenant["context"], _sale(tenant["store_id"], (stocked_product.id, 1)))

        assert re.fullmatch(r"V-\d{8}-0001", first.sale_number)
        assert second.sale_number == first.sale_number[:-4] + "0002"

    def test_explicit_unit_price(self, db_session, tenant, stocked_product):
        data = SaleCreate(
            store_id=tenant["store_id"],
            payment_method="tarjeta",
            items=[SaleItemCreate(product_id=stocked_product.id, quantity=1, unit_price=Decimal("850.50"))],
        )
        sale = SaleService(db_session).process_sale(tenant["context"], data)
        assert sale.subtotal == Decimal("850.50")
        assert sale.tax == Decimal("161.60")

    def test_active_discount_is_applied(self, db_session, tenant):
        product = create_product(db_session, tenant["context"], ProductCreate(
            name="Café Sello Rojo", sku="CAF-250", price=Decimal("10000"), discount=Decimal("10"),
            discount_start_date=utcnow() - timedelta(days=1),
            discount_end_date=utcnow() + timedelta(days=1),
        ))
        add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 3)

        sale = SaleService(db_session).process_sale(tenant["context"], _sale(tenant["store_id"], (product.id, 1)))
        assert sale.items[0].unit_price == Decimal("9000")

    def test_shortages_are_reported_together(self, db_session, tenant, stocked_product, second_product):
        with pytest.raises(InsufficientStockError) as exc_info:
            SaleService(db_session).process_sale(
                tenant["context"],
                _sale(tenant["store_id"], (stocked_product.id, 6), (second_product.id, 11)),
            )

        assert len(exc_info.value.errors) == 2
        assert all("Faltante: 1" in e["message"] for e in exc_info.value.errors)
        assert db_session.query(Sale).count() == 0

    def test_repeated_product_lines_are_combined(self, db_session, tenant, stocked_product):
        with pytest.raises(InsufficientStockError) as exc_info:
            SaleService(db_session).process_sale(
                tenant["context"],
                _sale(tenant["store_id"], (stocked_product.id, 3), (stocked_product.id, 3)),
            )

        assert exc_info.value.shortages[0]["requested"] == 6
        assert _quantity(db_session, stocked_product.id, tenant["store_id"]) == 5

    def test_failure_mid_sale_rolls_everything_back(self, db_session, tenant, stocked_product, second_product):
        inserted = []

        def fail_on_second_movement(mapper, connection, target):
            inserted.append(target)
            if len(inserted) == 2:
                raise RuntimeError("movement insert failed")

        event.listen(Movement, "before_insert", fail_on_second_movement)
        try:
            with pytest.raises(RuntimeError):
                SaleService(db_session).process_sale(
                    tenant["context"],
                    _sale(tenant["store_id"], (stocked_product.id, 2), (second_product.id, 2)),
                )
        finally:
            event.remove(Movement, "before_insert", fail_on_second_movement)

        assert db_session.query(Sale).count() == 0
        assert db_session.query(Movement).filter(Movement.type == "SALIDA").count() == 0
        assert _quantity(db_session, stocked_product.id, tenant["store_id"]) == 5
        assert _quantity(db_session, second_product.id, tenant["store_id"]) == 10

    def test_concurrency_conflict_is_retried(self, db_session, tenant, stocked_product, monkeypatch):
        real_next_sale_number = pos_service.next_sale_number
        attempts = []

        def conflicting_once(db, tenant_id, at=None):
            attempts.append(1)
            if len(attempts) == 1:
                raise IntegrityError("INSERT INTO sales", {}, Exception("duplicate sale_number"))
            return real_next_sale_number(db, tenant_id, at=at)

        monkeypatch.setattr(pos_service, "next_sale_number", conflicting_once)

        sale = SaleService(db_session).process_sale(
            tenant["context"], _sale(tenant["store_id"], (stocked_product.id, 1))
        )
        assert len(attempts) == 2
        assert sale.sale_number.endswith("-0001")
        assert _quantity(db_session, stocked_product.id, tenant["store_id"]) == 4

    def test_sale_with_customer_issues_paid_invoice(self, db_session, tenant, stocked_product):
        customer = create_customer(db_session, tenant["context"],
                                   CustomerCreate(name="María López", id_number="1020304050"))
        sale = SaleService(db_session).process_sale(
            tenant["context"],
            _sale(tenant["store_id"], (stocked_product.id, 2), customer_id=customer.id, payment_method="Tarjeta"),
        )

        invoice = db_session.query(Invoice).one()
        assert sale.invoice_id == invoice.id
        assert invoice.status == InvoiceStatus.PAID.value
        assert invoice.total == sale.total
        assert re.fullmatch(r"F\d{6}-0001", invoice.invoice_number)
        assert len(invoice.items) == 1
        assert invoice.payments[0].status == PaymentStatus.COMPLETED.value
        assert invoice.payments[0].amount == Decimal("2380")
        assert invoice.payments[0].method == "tarjeta"

    def test_sale_without_customer_has_no_invoice(self, db_session, tenant, stocked_product):
        sale = SaleService(db_session).process_sale(
            tenant["context"], _sale(tenant["store_id"], (stocked_product.id, 1))
        )
        assert sale.invoice_id is None
        assert db_session.query(Invoice).count() == 0

    def test_low_stock_after_sale_notifies(self, db_session, tenant, stocked_product):
        SaleService(db_session).process_sale(tenant["context"], _sale(tenant["store_id"], (stocked_product.id, 4)))
        assert db_session.query(Notification).filter(Notification.category == "stock").count() == 1

    def test_empty_cart(self, db_session, tenant):
        with pytest.raises(ValidationError) as exc_info:
            SaleService(db_session).process_sale(tenant["context"], SaleCreate(store_id=tenant["store_id"],
                                                                               payment_method="efectivo"))
        assert exc_info.value.errors[0]["field"] == "items"

    def test_invalid_payment_method_and_quantity(self, db_session, tenant, stocked_product):
        with pytest.raises(ValidationError) as exc_info:
            SaleService(db_session).process_sale(
                tenant["context"],
                _sale(tenant["store_id"], (stocked_product.id, 0), payment_method="bitcoin"),
            )
        assert {e["field"] for e in exc_info.value.errors} == {"payment_method", "items.0.quantity"}

    def test_customer_of_another_company(self, db_session, tenant, other_tenant, stocked_product):
        customer = create_customer(db_session, other_tenant["context"], CustomerCreate(name="Cliente Ajeno"))
        with pytest.raises(NotFoundError):
            SaleService(db_session).process_sale(
                tenant["context"],
                _sale(tenant["store_id"], (stocked_product.id, 1), customer_id=customer.id),
            )


class TestEffectivePrice:

    def test_expired_discount_is_ignored(self, db_session, tenant):
        product = create_product(db_session, tenant["context"], ProductCreate(
            name="Leche", sku="LEC-1", price=Decimal("4000"), discount=Decimal("50"),
            discount_end_date=utcnow() - timedelta(hours=1),
        ))
        assert effective_price(product) == Decimal("4000")

    def test_minimum_price_floor(self, db_session, tenant):
        product = create_product(db_session, tenant["context"], ProductCreate(
            name="Pan", sku="PAN-1", price=Decimal("5000"), discount=Decimal("80"),
            discount_minimum_price=Decimal("2500"),
        ))
        assert effective_price(product) == Decimal("2500")


class TestSaleEndpoints:
    """Tests de integración para /sales"""

    def test_create_and_fetch_sale(self, client, tenant, stocked_product):
        payload = {
            "store_id": str(tenant["store_id"]),
            "payment_method": "efectivo",
            "items": [{"product_id": str(stocked_product.id), "quantity": 2}],
        }
        response = client.post("/sales", json=payload, headers=tenant["headers"])
        assert response.status_code == 201
        data = response.json()["data"]
        assert Decimal(data["total"]) == Decimal("2380")
        assert data["items"][0]["quantity"] == 2

        response = client.get(f"/sales/{data['id']}", headers=tenant["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["sale_number"] == data["sale_number"]

        response = client.get("/sales", headers=tenant["headers"])
        assert len(response.json()["data"]) == 1

    def test_insufficient_stock_is_400(self, client, tenant, stocked_product):
        payload = {
            "store_id": str(tenant["store_id"]),
            "payment_method": "efectivo",
            "items": [{"product_id": str(stocked_product.id), "quantity": 9}],
        }
        response = client.post("/sales", json=payload, headers=tenant["headers"])
        assert response.status_code == 400
        assert "Faltante: 4" in response.json()["errors"][0]["message"]

    def test_malformed_body_is_400(self, client, tenant):
        response = client.post("/sales", json={"items": "no-es-lista"}, headers=tenant["headers"])
        assert response.status_code == 400
        assert response.json()["success"] is False
