"""
Tests para suscripciones y cambio de plan
"""

import pytest

from conftest import auth_headers
from inventa.core.config import settings
from inventa.core.exceptions import ValidationError, PermissionDeniedError
from inventa.modules.auth.schemas import TenantContext
from inventa.modules.stores.schemas import StoreCreate
from inventa.modules.stores.service import create_store
from inventa.modules.subscriptions.crud import change_plan, get_active_subscription
from inventa.modules.subscriptions.models import Subscription, SubscriptionStatus
from inventa.modules.subscriptions.schemas import PlanChange


def _plan(stores, code="pro", name="Profesional", workers=25, invoices=5000):
    return PlanChange(plan_code=code, plan_name=name,
                      limits={"workers": workers, "invoices": invoices, "stores": stores})


def _fill_store_limit(db_session, document_store, context):
    for index in range(settings.DEFAULT_PLAN_STORE_LIMIT - 1):
        create_store(db_session, document_store, context, StoreCreate(name=f"Sucursal {index}"))


class TestChangePlan:
    """Tests para change_plan"""

    def test_new_plan_replaces_the_active_one(self, db_session, tenant):
        previous = get_active_subscription(db_session, tenant["tenant_id"])
        subscription = change_plan(db_session, tenant["context"], _plan(stores=10))

        assert subscription.id != previous.id
        assert subscription.plan_code == "pro"
        assert (subscription.worker_limit, subscription.invoice_limit, subscription.store_limit) == (25, 5000, 10)
        assert get_active_subscription(db_session, tenant["tenant_id"]).id == subscription.id

        statuses = sorted(s for (s,) in db_session.query(Subscription.status).filter(
            Subscription.tenant_id == tenant["tenant_id"]
        ))
        assert statuses == [SubscriptionStatus.ACTIVE.value, SubscriptionStatus.CANCELLED.value]

    def test_raised_store_limit_allows_another_store(self, db_session, document_store, tenant):
        _fill_store_limit(db_session, document_store, tenant["context"])
        with pytest.raises(PermissionDeniedError):
            create_store(db_session, document_store, tenant["context"], StoreCreate(name="Sucursal Extra"))

        change_plan(db_session, tenant["context"], _plan(stores=settings.DEFAULT_PLAN_STORE_LIMIT + 1))

        store = create_store(db_session, document_store, tenant["context"], StoreCreate(name="Sucursal Extra"))
        assert store.name == "Sucursal Extra"

    def test_limit_below_existing_stores_is_rejected(self, db_session, document_store, tenant):
        create_store(db_session, document_store, tenant["context"], StoreCreate(name="Sucursal Norte"))

        with pytest.raises(ValidationError) as exc_info:
            change_plan(db_session, tenant["context"], _plan(stores=1))
        assert exc_info.value.errors[0]["field"] == "limits.stores"
        assert get_active_subscription(db_session, tenant["tenant_id"]).plan_code == settings.DEFAULT_PLAN_CODE

    def test_employees_cannot_change_plan(self, db_session, tenant):
        context = TenantContext(**{**tenant["context"].model_dump(), "role": "EMPLOYEE"})
        with pytest.raises(PermissionDeniedError):
            change_plan(db_session, context, _plan(stores=10))

    def test_other_tenants_are_untouched(self, db_session, tenant, other_tenant):
        change_plan(db_session, tenant["context"], _plan(stores=10))
        other = get_active_subscription(db_session, other_tenant["tenant_id"])
        assert other.store_limit == settings.DEFAULT_PLAN_STORE_LIMIT


class TestSubscriptionEndpoints:

    def test_change_plan(self, client, tenant):
        payload = {"plan_code": "pro", "plan_name": "Profesional",
                   "limits": {"workers": 25, "invoices": 5000, "stores": 10}}
        response = client.put("/subscriptions/current", json=payload, headers=tenant["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["store_limit"] == 10

        response = client.get("/subscriptions/current", headers=tenant["headers"])
        assert response.json()["data"]["plan_code"] == "pro"

    def test_limits_must_be_positive(self, client, tenant):
        payload = {"plan_code": "pro", "plan_name": "Profesional",
                   "limits": {"workers": 25, "invoices": 5000, "stores": 0}}
        response = client.put("/subscriptions/current", json=payload, headers=tenant["headers"])
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "limits.stores"

    def test_stranger_cannot_change_plan(self, client, tenant):
        payload = {"plan_code": "pro", "plan_name": "Profesional",
                   "limits": {"workers": 1, "invoices": 1, "stores": 5}}
        response = client.put("/subscriptions/current", json=payload,
                              headers=auth_headers("stranger", tenant["tenant_id"]))
        assert response.status_code == 403
