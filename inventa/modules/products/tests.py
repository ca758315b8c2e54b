"""
Tests para el módulo de Productos
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from inventa.common.time_utils import utcnow
from inventa.core.exceptions import DuplicateError, ValidationError, NotFoundError
from inventa.modules.products.schemas import ProductCreate
from inventa.modules.products.service import create_product, discount_is_active, list_products


class TestProductService:
    """Tests para el servicio de productos"""

    def test_sku_is_unique_per_company(self, db_session, tenant, other_tenant, product):
        with pytest.raises(DuplicateError):
            create_product(db_session, tenant["context"],
                           ProductCreate(name="Otro arroz", sku="ARZ-500", price=Decimal("1")))

        # Another company may reuse it
        reused = create_product(db_session, other_tenant["context"],
                                ProductCreate(name="Arroz", sku="ARZ-500", price=Decimal("1")))
        assert reused.tenant_id == other_tenant["tenant_id"]

    def test_store_must_belong_to_company(self, db_session, tenant, other_tenant):
        with pytest.raises(NotFoundError):
            create_product(db_session, tenant["context"], ProductCreate(
                name="Sal", sku="SAL-1", price=Decimal("900"), store_id=other_tenant["store_id"],
            ))

    def test_discount_dates_must_be_ordered(self, db_session, tenant):
        with pytest.raises(ValidationError):
            create_product(db_session, tenant["context"], ProductCreate(
                name="Sal", sku="SAL-1", price=Decimal("900"), discount=Decimal("5"),
                discount_start_date=utcnow() + timedelta(days=2),
                discount_end_date=utcnow() + timedelta(days=1),
            ))

    def test_future_discount_is_not_active(self, db_session, tenant):
        product = create_product(db_session, tenant["context"], ProductCreate(
            name="Sal", sku="SAL-1", price=Decimal("900"), discount=Decimal("5"),
            discount_start_date=utcnow() + timedelta(days=1),
        ))
        assert discount_is_active(product) is False
        assert discount_is_active(product, at=utcnow() + timedelta(days=2)) is True

    def test_list_filters_by_name(self, db_session, tenant, product):
        create_product(db_session, tenant["context"], ProductCreate(name="Azúcar", sku="AZU-1", price=Decimal("3000")))
        assert [p.sku for p in list_products(db_session, tenant["context"], name="arroz")] == ["ARZ-500"]


class TestProductEndpoints:

    def test_create_and_get(self, client, tenant):
        response = client.post("/products", json={"name": "Panela", "sku": "PAN-500", "price": "2500"},
                               headers=tenant["headers"])
        assert response.status_code == 201
        product_id = response.json()["data"]["id"]

        response = client.get(f"/products/{product_id}", headers=tenant["headers"])
        assert response.json()["data"]["sku"] == "PAN-500"

    def test_blank_name_is_400(self, client, tenant):
        response = client.post("/products", json={"name": " ", "sku": "X-1", "price": "10"},
                               headers=tenant["headers"])
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "name"
