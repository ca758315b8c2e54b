"""
Tests para el módulo de Tiendas
"""

import pytest
from pymongo.errors import OperationFailure
from sqlalchemy import event

from conftest import auth_headers
from inventa.core.config import settings
from inventa.core.exceptions import (
    ValidationError, DuplicateError, PermissionDeniedError, PrimaryWriteError, SecondaryWriteError,
)
from inventa.modules.auth.schemas import TenantContext
from inventa.modules.company import documents as company_documents
from inventa.modules.stores.models import Store
from inventa.modules.stores.schemas import StoreCreate
from inventa.modules.stores.service import create_store, list_stores


class TestCreateStore:
    """Tests para create_store"""

    def test_creates_store_in_both_stores(self, db_session, document_store, tenant):
        store = create_store(db_session, document_store, tenant["context"],
                             StoreCreate(name="Sucursal Norte", phone="3109876543"))

        assert store.is_main is False
        assert store.phone == "+573109876543"
        assert store.address == "Calle 10 # 5-20, Bogotá"
        document = document_store.find_one(company_documents.STORES, {"name": "Sucursal Norte"})
        assert document["_id"] == store.mongo_store_id

    def test_main_store_is_listed_first(self, db_session, document_store, tenant):
        create_store(db_session, document_store, tenant["context"], StoreCreate(name="A Sucursal"))
        stores = list_stores(db_session, tenant["context"])
        assert stores[0].is_main is True
        assert [s.name for s in stores] == [settings.DEFAULT_STORE_NAME, "A Sucursal"]

    def test_name_is_required(self, db_session, document_store, tenant):
        with pytest.raises(ValidationError):
            create_store(db_session, document_store, tenant["context"], StoreCreate(name="   "))

    def test_duplicate_name_in_same_company(self, db_session, document_store, tenant):
        with pytest.raises(DuplicateError):
            create_store(db_session, document_store, tenant["context"],
                         StoreCreate(name=settings.DEFAULT_STORE_NAME.upper()))

    def test_employees_cannot_create_stores(self, db_session, document_store, tenant):
        context = TenantContext(**{**tenant["context"].model_dump(), "role": "EMPLOYEE"})
        with pytest.raises(PermissionDeniedError):
            create_store(db_session, document_store, context, StoreCreate(name="Sucursal Norte"))

    def test_plan_store_limit(self, db_session, document_store, tenant):
        for index in range(settings.DEFAULT_PLAN_STORE_LIMIT - 1):
            create_store(db_session, document_store, tenant["context"], StoreCreate(name=f"Sucursal {index}"))

        with pytest.raises(PermissionDeniedError) as exc_info:
            create_store(db_session, document_store, tenant["context"], StoreCreate(name="Una más"))
        assert exc_info.value.errors[0]["field"] == "store_limit"
        assert db_session.query(Store).count() == settings.DEFAULT_PLAN_STORE_LIMIT

    def test_primary_failure_writes_nothing(self, db_session, document_store, tenant):
        document_store.fail_on[("insert", company_documents.STORES)] = OperationFailure("not primary")
        with pytest.raises(PrimaryWriteError):
            create_store(db_session, document_store, tenant["context"], StoreCreate(name="Sucursal Norte"))
        assert db_session.query(Store).count() == 1

    def test_mirror_failure_deletes_primary_record(self, db_session, document_store, tenant):
        def fail_insert(mapper, connection, target):
            raise RuntimeError("store mirror failed")

        event.listen(Store, "before_insert", fail_insert)
        try:
            with pytest.raises(SecondaryWriteError):
                create_store(db_session, document_store, tenant["context"], StoreCreate(name="Sucursal Norte"))
        finally:
            event.remove(Store, "before_insert", fail_insert)

        assert document_store.find_one(company_documents.STORES, {"name": "Sucursal Norte"}) is None
        assert document_store.count(company_documents.STORES) == 1


class TestStoreEndpoints:

    def test_create_and_list(self, client, tenant):
        response = client.post("/stores", json={"name": "Sucursal Norte"}, headers=tenant["headers"])
        assert response.status_code == 201

        response = client.get("/stores", headers=tenant["headers"])
        assert [s["name"] for s in response.json()["data"]] == [settings.DEFAULT_STORE_NAME, "Sucursal Norte"]

    def test_current_subscription(self, client, tenant):
        response = client.get("/subscriptions/current", headers=tenant["headers"])
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["plan_code"] == settings.DEFAULT_PLAN_CODE
        assert data["store_limit"] == settings.DEFAULT_PLAN_STORE_LIMIT

    def test_stranger_is_forbidden(self, client, tenant):
        response = client.get("/stores", headers=auth_headers("stranger", tenant["tenant_id"]))
        assert response.status_code == 403
