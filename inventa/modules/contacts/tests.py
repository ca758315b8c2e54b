"""
Tests para el módulo de Contactos (clientes y proveedores)
"""

import pytest

from inventa.core.exceptions import DuplicateError, NotFoundError
from inventa.modules.contacts.schemas import CustomerCreate, ProviderCreate
from inventa.modules.contacts.service import (
    create_customer, create_provider, get_customer, list_customers, list_providers,
)


class TestContactService:

    def test_customer_document_is_unique_per_company(self, db_session, tenant, other_tenant):
        create_customer(db_session, tenant["context"], CustomerCreate(name="María López", id_number="1020304050"))
        with pytest.raises(DuplicateError):
            create_customer(db_session, tenant["context"], CustomerCreate(name="Otra", id_number="1020304050"))

        create_customer(db_session, other_tenant["context"], CustomerCreate(name="María", id_number="1020304050"))

    def test_provider_nit_is_unique_per_company(self, db_session, tenant):
        create_provider(db_session, tenant["context"], ProviderCreate(name="Distribuidora XYZ", nit="800999888-1"))
        with pytest.raises(DuplicateError):
            create_provider(db_session, tenant["context"], ProviderCreate(name="Otra", nit="800999888-1"))

    def test_search_and_isolation(self, db_session, tenant, other_tenant):
        customer = create_customer(db_session, tenant["context"],
                                   CustomerCreate(name="María López", phone="3001112233"))
        assert customer.phone == "+573001112233"
        assert [c.name for c in list_customers(db_session, tenant["context"], search="lópez")] == ["María López"]
        assert list_customers(db_session, other_tenant["context"]) == []
        assert list_providers(db_session, tenant["context"]) == []

        with pytest.raises(NotFoundError):
            get_customer(db_session, other_tenant["context"], customer.id)


class TestContactEndpoints:

    def test_create_customer_and_provider(self, client, tenant):
        response = client.post("/customers", json={"name": "María López", "email": "maria@correo.test"},
                               headers=tenant["headers"])
        assert response.status_code == 201

        response = client.post("/providers", json={"name": "Proveedor", "email": "no-es-correo"},
                               headers=tenant["headers"])
        assert response.status_code == 400
