"""
Tests para el módulo de Empresas (aprovisionamiento)

Cubren:
- Validación de entrada y unicidad de NIT / nombre
- Transacción atómica en el almacén de documentos
- Compensación cuando falla un paso relacional
- Una sola empresa predeterminada por usuario
- Flujo completo vía HTTP
"""

import pytest
from pymongo.errors import OperationFailure
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError

from conftest import auth_headers, company_payload
from inventa.common.saga import CompensationStack
from inventa.core.config import settings
from inventa.core.exceptions import (
    ValidationError, DuplicateError, PrimaryWriteError, SecondaryWriteError, ConfigurationError,
)
from inventa.database.documents import get_document_store
from inventa.main import app
from inventa.modules.auth.models import User, UserCompany, MembershipRole
from inventa.modules.auth.schemas import Principal
from inventa.modules.company import documents as company_documents
from inventa.modules.company import service as company_service
from inventa.modules.company.models import Company
from inventa.modules.company.schemas import TenantCreate
from inventa.modules.company.service import (
    SECURITY_CODE_ALPHABET, build_redirect_url, generate_security_code, provision_tenant,
)
from inventa.modules.notifications.models import Notification
from inventa.modules.stores.models import Store
from inventa.modules.subscriptions.models import Subscription


def _counts(db_session):
    return {
        "companies": db_session.query(Company).count(),
        "memberships": db_session.query(UserCompany).count(),
        "stores": db_session.query(Store).count(),
        "subscriptions": db_session.query(Subscription).count(),
    }


# ===== TESTS DE UTILIDADES =====

class TestCompensationStack:
    """Tests para la pila de compensaciones"""

    def test_runs_newest_first(self):
        calls = []
        stack = CompensationStack("test")
        stack.push("a", lambda: calls.append("a"))
        stack.push("b", lambda: calls.append("b"))
        stack.push("c", lambda: calls.append("c"))

        assert stack.pending == ["c", "b", "a"]
        assert stack.run() == []
        assert calls == ["c", "b", "a"]

    def test_failed_action_does_not_stop_the_rest(self):
        calls = []

        def broken():
            raise RuntimeError("boom")

        stack = CompensationStack("test")
        stack.push("first", lambda: calls.append("first"))
        stack.push("broken", broken)
        stack.push("last", lambda: calls.append("last"))

        assert stack.run() == ["broken"]
        assert calls == ["last", "first"]

    def test_actions_run_once(self):
        calls = []
        stack = CompensationStack("test")
        stack.push("a", lambda: calls.append("a"))
        stack.run()
        stack.run()
        assert calls == ["a"]
        assert len(stack) == 0

    def test_clear_discards_pending(self):
        calls = []
        stack = CompensationStack("test")
        stack.push("a", lambda: calls.append("a"))
        stack.clear()
        stack.run()
        assert calls == []


class TestHelpers:

    def test_security_code_alphabet_and_length(self):
        code = generate_security_code()
        assert len(code) == settings.SECURITY_CODE_LENGTH
        assert all(char in SECURITY_CODE_ALPHABET for char in code)

    def test_redirect_url_is_percent_encoded(self):
        assert build_redirect_url("Acme SAS") == "/inventory/Acme%20SAS/dashboard"
        assert build_redirect_url("A/B & Co") == "/inventory/A%2FB%20%26%20Co/dashboard"


# ===== TESTS DE SERVICIO =====

class TestProvisionTenant:
    """Tests para provision_tenant"""

    def test_provision_creates_every_record(self, db_session, document_store, principal):
        """Empresa, tienda principal, membresía, perfil y suscripción"""
        result = provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))

        company = db_session.query(Company).filter(Company.id == result["tenant_id"]).one()
        assert company.mongo_id == result["external_tenant_id"]
        assert company.nit == "900123456-7"
        assert company.phone == "+573001234567"

        store = db_session.query(Store).filter(Store.id == result["store_id"]).one()
        assert store.is_main is True
        assert store.name == settings.DEFAULT_STORE_NAME
        assert store.address == company.address
        assert store.mongo_store_id == result["external_store_id"]

        membership = db_session.query(UserCompany).filter(UserCompany.company_id == company.id).one()
        assert membership.user_id == principal.external_id
        assert membership.role == MembershipRole.ADMINISTRATOR.value
        assert membership.is_default is True

        subscription = db_session.query(Subscription).filter(Subscription.tenant_id == company.id).one()
        assert subscription.plan_code == settings.DEFAULT_PLAN_CODE
        assert subscription.status == "active"

        assert db_session.query(User).filter(User.external_id == principal.external_id).count() == 1
        assert document_store.count(company_documents.COMPANIES) == 1
        assert document_store.count(company_documents.STORES) == 1
        assert result["redirect_url"] == "/inventory/Acme%20SAS/dashboard"

    def test_company_document_carries_security_code_and_secondary_id(self, db_session, document_store, principal):
        result = provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))
        document = document_store.find_one(company_documents.COMPANIES, {"nit": "900123456-7"})
        company = db_session.query(Company).filter(Company.id == result["tenant_id"]).one()

        assert document["security_code"] == company.security_code
        assert document["metadata"]["secondary_id"] == str(result["tenant_id"])
        store_document = document_store.find_one(company_documents.STORES, {"company_id": document["_id"]})
        assert store_document is not None

    def test_admins_are_notified(self, db_session, document_store, principal):
        provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))
        notification = db_session.query(Notification).one()
        assert notification.category == "company"
        assert "Acme SAS" in notification.message

    def test_missing_fields_are_reported_together(self, db_session, document_store, principal):
        with pytest.raises(ValidationError) as exc_info:
            provision_tenant(db_session, document_store, principal, TenantCreate(company_name="  "))

        fields = {error["field"] for error in exc_info.value.errors}
        assert fields == {"company_name", "nit", "company_email", "company_phone", "company_address"}
        assert document_store.count(company_documents.COMPANIES) == 0

    def test_malformed_nit_and_email(self, db_session, document_store, principal):
        data = TenantCreate(**company_payload(nit="900123456", company_email="no-es-correo"))
        with pytest.raises(ValidationError) as exc_info:
            provision_tenant(db_session, document_store, principal, data)

        fields = {error["field"] for error in exc_info.value.errors}
        assert fields == {"nit", "company_email"}

    def test_duplicate_nit_writes_nothing(self, db_session, document_store, principal):
        provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))
        before = _counts(db_session)

        with pytest.raises(DuplicateError) as exc_info:
            provision_tenant(db_session, document_store, principal,
                             TenantCreate(**company_payload(company_name="Otra SAS")))

        assert [e["field"] for e in exc_info.value.errors] == ["nit"]
        assert _counts(db_session) == before
        assert document_store.count(company_documents.COMPANIES) == 1

    def test_duplicate_name_is_case_insensitive(self, db_session, document_store, principal):
        provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))

        with pytest.raises(DuplicateError) as exc_info:
            provision_tenant(db_session, document_store, principal,
                             TenantCreate(**company_payload(company_name="ACME sas", nit="800111222-3")))

        assert [e["field"] for e in exc_info.value.errors] == ["company_name"]
        assert document_store.count(company_documents.COMPANIES) == 1

    def test_nit_and_name_matching_different_companies(self, db_session, document_store, principal):
        """Ambos conflictos se reportan aunque correspondan a empresas distintas"""
        provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))
        provision_tenant(db_session, document_store, principal,
                         TenantCreate(**company_payload(company_name="Beta SAS", nit="800111222-3")))

        with pytest.raises(DuplicateError) as exc_info:
            provision_tenant(db_session, document_store, principal,
                             TenantCreate(**company_payload(company_name="Beta SAS")))

        assert {e["field"] for e in exc_info.value.errors} == {"nit", "company_name"}

    def test_duplicate_nit_in_document_store_only(self, db_session, document_store, principal):
        """Un NIT que solo existe en el almacén de documentos también se rechaza"""
        document_store.insert_one(company_documents.COMPANIES, {"nit": "900123456-7", "name": "Huérfana"})

        with pytest.raises(DuplicateError):
            provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))
        assert db_session.query(Company).count() == 0

    def test_name_taken_between_check_and_mirror_insert(self, db_session, document_store, principal, monkeypatch):
        """Otra solicitud registra el mismo nombre después de la verificación: 409 y compensación"""
        provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))
        before = _counts(db_session)
        monkeypatch.setattr(company_service, "check_company_uniqueness", lambda db, nit, name: None)

        with pytest.raises(DuplicateError) as exc_info:
            provision_tenant(db_session, document_store, principal,
                             TenantCreate(**company_payload(nit="800111222-3")))

        assert exc_info.value.status_code == 409
        assert [e["field"] for e in exc_info.value.errors] == ["company_name"]
        assert _counts(db_session) == before
        assert document_store.count(company_documents.COMPANIES) == 1
        assert document_store.count(company_documents.STORES) == 1
        assert document_store.find_one(company_documents.COMPANIES, {"nit": "800111222-3"}) is None

    def test_store_insert_failure_aborts_primary_transaction(self, db_session, document_store, principal):
        document_store.fail_on[("insert", company_documents.STORES)] = OperationFailure("write conflict")

        with pytest.raises(PrimaryWriteError):
            provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))

        assert document_store.count(company_documents.COMPANIES) == 0
        assert document_store.count(company_documents.STORES) == 0
        assert _counts(db_session) == {"companies": 0, "memberships": 0, "stores": 0, "subscriptions": 0}

    def test_missing_store_id_aborts_primary_transaction(self, db_session, document_store, principal):
        document_store.none_id_for.add(company_documents.STORES)

        with pytest.raises(PrimaryWriteError):
            provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))
        assert document_store.count(company_documents.COMPANIES) == 0

    def test_commit_failure_writes_nothing(self, db_session, document_store, principal):
        document_store.commit_error = OperationFailure("transaction aborted")

        with pytest.raises(PrimaryWriteError):
            provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))
        assert document_store.count(company_documents.COMPANIES) == 0
        assert db_session.query(Company).count() == 0

    def test_subscription_failure_is_compensated(self, db_session, document_store, principal):
        """Si falla la suscripción, no queda rastro en ninguno de los dos almacenes"""
        def fail_insert(mapper, connection, target):
            raise RuntimeError("subscription insert failed")

        event.listen(Subscription, "before_insert", fail_insert)
        try:
            with pytest.raises(SecondaryWriteError) as exc_info:
                provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))
        finally:
            event.remove(Subscription, "before_insert", fail_insert)

        assert exc_info.value.error_id
        assert exc_info.value.errors[0]["message"] == "Error interno del servidor"
        assert _counts(db_session) == {"companies": 0, "memberships": 0, "stores": 0, "subscriptions": 0}
        assert db_session.query(User).count() == 0
        assert document_store.count(company_documents.COMPANIES) == 0
        assert document_store.count(company_documents.STORES) == 0

    def test_membership_failure_is_compensated(self, db_session, document_store, principal):
        def fail_insert(mapper, connection, target):
            raise RuntimeError("membership insert failed")

        event.listen(UserCompany, "before_insert", fail_insert)
        try:
            with pytest.raises(SecondaryWriteError):
                provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))
        finally:
            event.remove(UserCompany, "before_insert", fail_insert)

        assert db_session.query(Company).count() == 0
        assert document_store.count(company_documents.COMPANIES) == 0

    def test_failed_compensation_still_reports_original_error(self, db_session, document_store, principal):
        def fail_insert(mapper, connection, target):
            raise RuntimeError("subscription insert failed")

        document_store.fail_on[("delete", company_documents.STORES)] = OperationFailure("unreachable")
        event.listen(Subscription, "before_insert", fail_insert)
        try:
            with pytest.raises(SecondaryWriteError):
                provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))
        finally:
            event.remove(Subscription, "before_insert", fail_insert)

        # Remaining compensations still ran
        assert db_session.query(Company).count() == 0
        assert document_store.count(company_documents.COMPANIES) == 0
        assert document_store.count(company_documents.STORES) == 1

    def test_compensation_restores_previous_default(self, db_session, document_store, principal):
        first = provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))

        def fail_insert(mapper, connection, target):
            raise RuntimeError("subscription insert failed")

        event.listen(Subscription, "before_insert", fail_insert)
        try:
            with pytest.raises(SecondaryWriteError):
                provision_tenant(db_session, document_store, principal,
                                 TenantCreate(**company_payload(company_name="Beta SAS", nit="800111222-3")))
        finally:
            event.remove(Subscription, "before_insert", fail_insert)

        membership = db_session.query(UserCompany).filter(UserCompany.user_id == principal.external_id).one()
        assert membership.company_id == first["tenant_id"]
        assert membership.is_default is True
        # The profile existed before, so it survives
        assert db_session.query(User).count() == 1


class TestDefaultMembership:
    """Una sola membresía predeterminada por usuario"""

    def test_new_tenant_demotes_previous_default(self, db_session, document_store, principal):
        first = provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))
        second = provision_tenant(db_session, document_store, principal,
                                  TenantCreate(**company_payload(company_name="Beta SAS", nit="800111222-3")))

        memberships = {
            m.company_id: m for m in
            db_session.query(UserCompany).filter(UserCompany.user_id == principal.external_id)
        }
        assert memberships[first["tenant_id"]].is_default is False
        assert memberships[second["tenant_id"]].is_default is True

    def test_other_users_are_untouched(self, db_session, document_store, principal):
        provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))
        other = Principal(external_id="user_other", first_name="Luis", last_name="Díaz")
        provision_tenant(db_session, document_store, other,
                         TenantCreate(**company_payload(company_name="Beta SAS", nit="800111222-3")))

        defaults = db_session.query(UserCompany).filter(UserCompany.is_default.is_(True)).count()
        assert defaults == 2

    def test_second_default_row_is_rejected_by_the_database(self, db_session, tenant, principal):
        other = Company(mongo_id="x" * 24, name="Otra", nit="800111222-3", security_code="ABCDEFGH",
                             email="o@otra.test", phone="3000000000", address="Calle 1")
        db_session.add(other)
        db_session.commit()

        db_session.add(UserCompany(user_id=principal.external_id, company_id=other.id,
                                   role=MembershipRole.EMPLOYEE.value, is_default=True))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()


# ===== TESTS DE ENDPOINTS =====

class TestTenantEndpoints:
    """Tests de integración para /tenants"""

    def test_end_to_end_provisioning(self, client):
        headers = auth_headers("user_1")
        response = client.post("/tenants", json=company_payload(), headers=headers)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["tenant_id"] and data["store_id"]
        assert data["redirect_url"] == "/inventory/Acme%20SAS/dashboard"

        response = client.get(f"/tenants/{data['tenant_id']}/membership", headers=headers)
        assert response.status_code == 200
        membership = response.json()["data"]
        assert membership["role"] == "ADMINISTRATOR"
        assert membership["is_default"] is True

    def test_requires_token(self, client):
        response = client.post("/tenants", json=company_payload())
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_invalid_token(self, client):
        response = client.post("/tenants", json=company_payload(),
                               headers={"Authorization": "Bearer no-es-un-jwt"})
        assert response.status_code == 401

    def test_validation_errors_use_envelope(self, client):
        response = client.post("/tenants", json={"company_name": "Acme SAS"}, headers=auth_headers("user_1"))
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert {"nit", "company_email", "company_phone", "company_address"} <= {e["field"] for e in body["errors"]}
        assert "error_id" not in body

    def test_error_envelope_is_documented(self, client):
        schema = client.get("/openapi.json").json()
        assert set(schema["components"]["schemas"]["ErrorResponse"]["properties"]) == {"success", "errors", "error_id"}
        responses = schema["paths"]["/tenants"]["post"]["responses"]
        assert responses["409"]["content"]["application/json"]["schema"] == {"$ref": "#/components/schemas/ErrorResponse"}

    def test_duplicate_returns_409(self, client):
        headers = auth_headers("user_1")
        client.post("/tenants", json=company_payload(), headers=headers)
        response = client.post("/tenants", json=company_payload(), headers=headers)
        assert response.status_code == 409

    def test_secondary_failure_returns_error_id(self, client, db_session):
        def fail_insert(mapper, connection, target):
            raise RuntimeError("subscription insert failed")

        event.listen(Subscription, "before_insert", fail_insert)
        try:
            response = client.post("/tenants", json=company_payload(), headers=auth_headers("user_1"))
        finally:
            event.remove(Subscription, "before_insert", fail_insert)

        assert response.status_code == 500
        body = response.json()
        assert body["error_id"]
        assert body["errors"][0]["message"] == "Error interno del servidor"
        assert "subscription" not in response.text

    def test_missing_document_store_configuration(self, client, monkeypatch):
        monkeypatch.setattr(settings, "MONGODB_DB", None)
        app.dependency_overrides.pop(get_document_store)

        response = client.post("/tenants", json=company_payload(), headers=auth_headers("user_1"))
        assert response.status_code == 500
        assert response.json()["error_id"]

        with pytest.raises(ConfigurationError):
            get_document_store()

    def test_my_companies_and_default_switch(self, client):
        headers = auth_headers("user_1")
        first = client.post("/tenants", json=company_payload(), headers=headers).json()["data"]
        second = client.post(
            "/tenants",
            json=company_payload(company_name="Beta SAS", nit="800111222-3"),
            headers=headers,
        ).json()["data"]

        mine = client.get("/tenants/mine", headers=headers).json()["data"]
        assert [m["company_id"] for m in mine] == [second["tenant_id"], first["tenant_id"]]

        response = client.post(f"/tenants/{first['tenant_id']}/default", headers=headers)
        assert response.status_code == 200
        assert response.json()["data"]["is_default"] is True

        mine = client.get("/tenants/mine", headers=headers).json()["data"]
        assert [m["is_default"] for m in mine] == [True, False]
        assert mine[0]["company_id"] == first["tenant_id"]

    def test_membership_of_foreign_company(self, client, tenant):
        response = client.get(f"/tenants/{tenant['tenant_id']}/membership", headers=auth_headers("stranger"))
        assert response.status_code == 404
