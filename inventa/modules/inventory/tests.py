"""
Tests para el módulo de Inventario

Cubren:
- ENTRADA, SALIDA y TRANSFERENCIA con su registro de movimientos
- Stock nunca negativo (actualización condicional)
- Alertas de stock bajo
- Consultas de stock por producto y productos con stock bajo
"""

import pytest
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from conftest import add_stock
from inventa.core.exceptions import ValidationError, InsufficientStockError, NotFoundError
from inventa.modules.contacts.schemas import ProviderCreate
from inventa.modules.contacts.service import create_provider
from inventa.modules.inventory import service as inventory_service
from inventa.modules.inventory.models import Stock, Movement
from inventa.modules.inventory.schemas import MovementCreate
from inventa.modules.inventory.service import InventoryService, decrement_stock, increment_stock
from inventa.modules.notifications.models import Notification
from inventa.modules.stores.schemas import StoreCreate
from inventa.modules.stores.service import create_store


def _quantity(db_session, product_id, store_id):
    db_session.expire_all()
    return db_session.query(Stock.quantity).filter(
        Stock.product_id == product_id, Stock.store_id == store_id
    ).scalar()


@pytest.fixture
def second_store(db_session, document_store, tenant):
    return create_store(db_session, document_store, tenant["context"], StoreCreate(name="Sucursal Norte"))


class TestStockPrimitives:
    """Tests para las actualizaciones condicionales de stock"""

    def test_decrement_refuses_to_go_negative(self, db_session, tenant, product):
        add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 3)

        assert decrement_stock(db_session, product.id, tenant["store_id"], 4) is False
        assert decrement_stock(db_session, product.id, tenant["store_id"], 3) is True
        db_session.commit()
        assert _quantity(db_session, product.id, tenant["store_id"]) == 0

    def test_decrement_without_stock_row(self, db_session, tenant, product):
        assert decrement_stock(db_session, product.id, tenant["store_id"], 1) is False

    def test_increment_creates_then_updates(self, db_session, tenant, product):
        increment_stock(db_session, tenant["tenant_id"], product.id, tenant["store_id"], 2)
        increment_stock(db_session, tenant["tenant_id"], product.id, tenant["store_id"], 5)
        db_session.commit()

        assert _quantity(db_session, product.id, tenant["store_id"]) == 7
        assert db_session.query(Stock).count() == 1

    def test_database_rejects_negative_quantity(self, db_session, tenant, product):
        add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 1)
        with pytest.raises(IntegrityError):
            db_session.query(Stock).update({Stock.quantity: -1}, synchronize_session=False)
        db_session.rollback()


class TestRecordMovement:
    """Tests para InventoryService.record_movement"""

    def test_entrada_creates_stock_and_movement(self, db_session, tenant, product):
        movements = add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 10)

        assert len(movements) == 1
        assert movements[0].type == "ENTRADA"
        assert movements[0].direction == "IN"
        assert movements[0].created_by == "user_admin"
        assert _quantity(db_session, product.id, tenant["store_id"]) == 10

    def test_entrada_with_provider(self, db_session, tenant, product):
        provider = create_provider(db_session, tenant["context"], ProviderCreate(name="Distribuidora XYZ",
                                                                                 nit="800999888-1"))
        movements = InventoryService(db_session).record_movement(tenant["context"], MovementCreate(
            type="entrada", product_id=product.id, store_id=tenant["store_id"], quantity=4,
            provider_id=provider.id, reference="OC-001",
        ))
        assert movements[0].provider_id == provider.id
        assert movements[0].reference == "OC-001"

    def test_salida_decrements(self, db_session, tenant, product):
        add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 10)
        movements = InventoryService(db_session).record_movement(tenant["context"], MovementCreate(
            type="SALIDA", product_id=product.id, store_id=tenant["store_id"], quantity=4,
        ))

        assert movements[0].direction == "OUT"
        assert movements[0].quantity == 4
        assert _quantity(db_session, product.id, tenant["store_id"]) == 6

    def test_salida_insufficient_changes_nothing(self, db_session, tenant, product):
        add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 3)

        with pytest.raises(InsufficientStockError) as exc_info:
            InventoryService(db_session).record_movement(tenant["context"], MovementCreate(
                type="SALIDA", product_id=product.id, store_id=tenant["store_id"], quantity=5,
            ))

        message = exc_info.value.errors[0]["message"]
        assert "Disponible: 3" in message
        assert "Faltante: 2" in message
        assert _quantity(db_session, product.id, tenant["store_id"]) == 3
        assert db_session.query(Movement).filter(Movement.direction == "OUT").count() == 0

    def test_lost_race_is_detected_by_the_conditional_update(self, db_session, tenant, product, monkeypatch):
        """Una lectura desactualizada no permite sobrevender"""
        add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 5)
        real_available = inventory_service.available_quantity
        calls = []

        def stale_then_real(db, product_id, store_id):
            calls.append(1)
            return 100 if len(calls) == 1 else real_available(db, product_id, store_id)

        monkeypatch.setattr(inventory_service, "available_quantity", stale_then_real)

        with pytest.raises(InsufficientStockError) as exc_info:
            InventoryService(db_session).record_movement(tenant["context"], MovementCreate(
                type="SALIDA", product_id=product.id, store_id=tenant["store_id"], quantity=8,
            ))

        assert exc_info.value.shortages[0]["available"] == 5
        assert _quantity(db_session, product.id, tenant["store_id"]) == 5
        assert db_session.query(Movement).count() == 1

    def test_repeated_salidas_exhaust_stock_exactly(self, db_session, tenant, product):
        add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 5)
        service = InventoryService(db_session)

        succeeded, failed = 0, 0
        for _ in range(7):
            try:
                service.record_movement(tenant["context"], MovementCreate(
                    type="SALIDA", product_id=product.id, store_id=tenant["store_id"], quantity=1,
                ))
                succeeded += 1
            except InsufficientStockError:
                failed += 1

        assert (succeeded, failed) == (5, 2)
        assert _quantity(db_session, product.id, tenant["store_id"]) == 0

    def test_transferencia_moves_stock_between_stores(self, db_session, tenant, product, second_store):
        add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 10)
        movements = InventoryService(db_session).record_movement(tenant["context"], MovementCreate(
            type="TRANSFERENCIA", product_id=product.id, store_id=tenant["store_id"],
            destination_store_id=second_store.id, quantity=4,
        ))

        out_leg, in_leg = movements
        assert (out_leg.direction, out_leg.store_id, out_leg.counterpart_store_id) == \
            ("OUT", tenant["store_id"], second_store.id)
        assert (in_leg.direction, in_leg.store_id, in_leg.counterpart_store_id) == \
            ("IN", second_store.id, tenant["store_id"])
        assert _quantity(db_session, product.id, tenant["store_id"]) == 6
        assert _quantity(db_session, product.id, second_store.id) == 4

    def test_transferencia_to_same_store(self, db_session, tenant, product):
        with pytest.raises(ValidationError) as exc_info:
            InventoryService(db_session).record_movement(tenant["context"], MovementCreate(
                type="TRANSFERENCIA", product_id=product.id, store_id=tenant["store_id"],
                destination_store_id=tenant["store_id"], quantity=1,
            ))
        assert exc_info.value.errors[0]["field"] == "destination_store_id"

    def test_transferencia_insufficient_leaves_destination_untouched(self, db_session, tenant, product,
                                                                      second_store):
        add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 2)
        with pytest.raises(InsufficientStockError):
            InventoryService(db_session).record_movement(tenant["context"], MovementCreate(
                type="TRANSFERENCIA", product_id=product.id, store_id=tenant["store_id"],
                destination_store_id=second_store.id, quantity=3,
            ))
        assert _quantity(db_session, product.id, second_store.id) is None

    def test_missing_fields_are_reported_together(self, db_session, tenant):
        with pytest.raises(ValidationError) as exc_info:
            InventoryService(db_session).record_movement(tenant["context"], MovementCreate())
        assert {e["field"] for e in exc_info.value.errors} == {"type", "product_id", "store_id", "quantity"}

    @pytest.mark.parametrize("movement_type,quantity,field", [
        ("AJUSTE", 1, "type"),
        ("SALIDA", 0, "quantity"),
        ("SALIDA", -3, "quantity"),
    ])
    def test_invalid_type_or_quantity(self, db_session, tenant, product, movement_type, quantity, field):
        with pytest.raises(ValidationError) as exc_info:
            InventoryService(db_session).record_movement(tenant["context"], MovementCreate(
                type=movement_type, product_id=product.id, store_id=tenant["store_id"], quantity=quantity,
            ))
        assert exc_info.value.errors[0]["field"] == field

    def test_inactive_product(self, db_session, tenant, product):
        product.is_active = False
        db_session.commit()
        with pytest.raises(ValidationError):
            add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 1)

    def test_product_of_another_company(self, db_session, tenant, other_tenant, product):
        with pytest.raises(NotFoundError):
            add_stock(db_session, other_tenant["context"], product.id, other_tenant["store_id"], 1)

    def test_every_stock_change_has_one_movement(self, db_session, tenant, product, second_store):
        service = InventoryService(db_session)
        context = tenant["context"]
        add_stock(db_session, context, product.id, tenant["store_id"], 10)
        service.record_movement(context, MovementCreate(
            type="SALIDA", product_id=product.id, store_id=tenant["store_id"], quantity=3))
        service.record_movement(context, MovementCreate(
            type="TRANSFERENCIA", product_id=product.id, store_id=tenant["store_id"],
            destination_store_id=second_store.id, quantity=2))
        add_stock(db_session, context, product.id, second_store.id, 1)

        for stock in db_session.query(Stock).all():
            incoming = db_session.query(func.coalesce(func.sum(Movement.quantity), 0)).filter(
                Movement.product_id == stock.product_id, Movement.store_id == stock.store_id,
                Movement.direction == "IN").scalar()
            outgoing = db_session.query(func.coalesce(func.sum(Movement.quantity), 0)).filter(
                Movement.product_id == stock.product_id, Movement.store_id == stock.store_id,
                Movement.direction == "OUT").scalar()
            assert stock.quantity == incoming - outgoing


class TestLowStock:
    """Alertas y consultas de stock bajo"""

    def test_salida_below_minimum_notifies_admins(self, db_session, tenant, product):
        add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 5)
        InventoryService(db_session).record_movement(tenant["context"], MovementCreate(
            type="SALIDA", product_id=product.id, store_id=tenant["store_id"], quantity=3,
        ))

        notification = db_session.query(Notification).filter(Notification.category == "stock").one()
        assert notification.users_companies_id == tenant["context"].membership_id
        assert "Arroz Diana 500g" in notification.message

    def test_entrada_does_not_notify(self, db_session, tenant, product):
        add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 1)
        assert db_session.query(Notification).filter(Notification.category == "stock").count() == 0

    def test_product_stock_summary(self, db_session, tenant, product, second_store):
        add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 1)
        summary = InventoryService(db_session).get_product_stock(tenant["context"], product.id)
        assert summary["total_quantity"] == 1
        assert summary["status"] == "bajo"

        add_stock(db_session, tenant["context"], product.id, second_store.id, 5)
        summary = InventoryService(db_session).get_product_stock(tenant["context"], product.id)
        assert summary["total_quantity"] == 6
        assert summary["status"] == "normal"
        assert len(summary["stores"]) == 2

    def test_low_stock_list_includes_products_without_stock(self, db_session, tenant, product):
        items = InventoryService(db_session).list_low_stock(tenant["context"])
        assert [item["sku"] for item in items] == ["ARZ-500"]
        assert items[0]["total_quantity"] == 0

        add_stock(db_session, tenant["context"], product.id, tenant["store_id"], 10)
        assert InventoryService(db_session).list_low_stock(tenant["context"]) == []


class TestInventoryEndpoints:
    """Tests de integración para /movements y /stock"""

    def test_create_and_list_movements(self, client, tenant, product):
        payload = {"type": "ENTRADA", "product_id": str(product.id), "store_id": str(tenant["store_id"]),
                   "quantity": 7}
        response = client.post("/movements", json=payload, headers=tenant["headers"])
        assert response.status_code == 201
        assert response.json()["data"][0]["quantity"] == 7

        response = client.get("/movements", params={"type": "ENTRADA"}, headers=tenant["headers"])
        assert len(response.json()["data"]) == 1

        response = client.get(f"/stock/product/{product.id}", headers=tenant["headers"])
        assert response.json()["data"]["total_quantity"] == 7

    def test_insufficient_stock_is_400(self, client, tenant, product):
        payload = {"type": "SALIDA", "product_id": str(product.id), "store_id": str(tenant["store_id"]),
                   "quantity": 1}
        response = client.post("/movements", json=payload, headers=tenant["headers"])
        assert response.status_code == 400
        assert "Faltante: 1" in response.json()["errors"][0]["message"]

    def test_other_company_cannot_see_product(self, client, tenant, other_tenant, product):
        response = client.get(f"/stock/product/{product.id}", headers=other_tenant["headers"])
        assert response.status_code == 404

    def test_header_for_company_without_membership(self, client, tenant, other_tenant):
        headers = {**tenant["headers"], "X-Company-ID": str(other_tenant["tenant_id"])}
        response = client.get("/stock/low", headers=headers)
        assert response.status_code == 403
