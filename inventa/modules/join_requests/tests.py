"""
Tests para solicitudes de unión a empresas

Cubren:
- Validación de NIT y código de seguridad
- Idempotencia mientras hay una solicitud pendiente
- Espera de 24 horas después de un rechazo
- Aprobación y rechazo por administradores
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from conftest import auth_headers
from inventa.common.time_utils import utcnow
from inventa.core.exceptions import (
    ValidationError, NotFoundError, AuthError, DuplicateError,
    PermissionDeniedError, ConflictError, JoinCooldownError,
)
from inventa.modules.auth.models import UserCompany, MembershipRole
from inventa.modules.auth.schemas import Principal
from inventa.modules.company.models import Company
from inventa.modules.join_requests.models import JoinRequest, JoinRequestStatus
from inventa.modules.join_requests.schemas import JoinRequestCreate
from inventa.modules.join_requests import service as join_service
from inventa.modules.join_requests.service import request_join, resolve_join_request, check_cooldown
from inventa.modules.notifications.models import Notification


@pytest.fixture
def requester():
    return Principal(external_id="user_requester", first_name="Carlos", last_name="Ruiz",
                     email="carlos@correo.test")


@pytest.fixture
def security_code(db_session, tenant):
    return db_session.query(Company.security_code).filter(Company.id == tenant["tenant_id"]).scalar()


def _rejected_request(db_session, tenant, requester, hours_ago=0, created_at=None):
    join_request = JoinRequest(
        user_id=requester.external_id,
        company_id=tenant["tenant_id"],
        first_name=requester.first_name,
        last_name=requester.last_name,
        status=JoinRequestStatus.REJECTED.value,
        created_at=created_at or utcnow() - timedelta(hours=hours_ago),
    )
    db_session.add(join_request)
    db_session.commit()
    return join_request


class TestRequestJoin:
    """Tests para request_join"""

    def test_creates_pending_request(self, db_session, document_store, tenant, requester, security_code):
        result = request_join(db_session, document_store, requester,
                              JoinRequestCreate(nit="900123456-7", security_code=security_code))

        assert result["status"] == "pending"
        assert result["company_name"] == "Acme SAS"
        join_request = db_session.query(JoinRequest).one()
        assert join_request.id == result["join_request_id"]
        assert join_request.first_name == "Carlos"
        assert join_request.email == "carlos@correo.test"

    def test_administrators_are_notified(self, db_session, document_store, tenant, requester, security_code):
        request_join(db_session, document_store, requester,
                     JoinRequestCreate(nit="900123456-7", security_code=security_code))

        notification = db_session.query(Notification).filter(Notification.category == "join_request").one()
        assert notification.users_companies_id == tenant["context"].membership_id
        assert "Carlos Ruiz (carlos@correo.test)" in notification.message
        assert "la empresa Acme SAS" in notification.message

    def test_notification_uses_the_name_the_requester_typed(self, db_session, document_store, tenant, requester,
                                                            security_code):
        request_join(db_session, document_store, requester,
                     JoinRequestCreate(nit="900123456-7", security_code=security_code, company_name=" Acme "))

        notification = db_session.query(Notification).filter(Notification.category == "join_request").one()
        assert "la empresa Acme." in notification.message

    def test_code_is_case_and_whitespace_insensitive(self, db_session, document_store, tenant, requester,
                                                     security_code):
        result = request_join(db_session, document_store, requester,
                              JoinRequestCreate(nit=" 900123456-7 ", security_code=f"  {security_code.lower()} "))
        assert result["status"] == "pending"

    def test_pending_request_is_returned_again(self, db_session, document_store, tenant, requester, security_code):
        data = JoinRequestCreate(nit="900123456-7", security_code=security_code)
        first = request_join(db_session, document_store, requester, data)
        second = request_join(db_session, document_store, requester, data)

        assert first["join_request_id"] == second["join_request_id"]
        assert db_session.query(JoinRequest).count() == 1

    def test_missing_fields(self, db_session, document_store, requester):
        with pytest.raises(ValidationError) as exc_info:
            request_join(db_session, document_store, requester, JoinRequestCreate())
        assert {e["field"] for e in exc_info.value.errors} == {"nit", "security_code"}

    def test_unknown_nit(self, db_session, document_store, tenant, requester):
        with pytest.raises(NotFoundError):
            request_join(db_session, document_store, requester,
                         JoinRequestCreate(nit="800000000-1", security_code="ABCDEFGH"))

    def test_wrong_security_code(self, db_session, document_store, tenant, requester):
        with pytest.raises(AuthError):
            request_join(db_session, document_store, requester,
                         JoinRequestCreate(nit="900123456-7", security_code="ZZZZZZZZ"))
        assert db_session.query(JoinRequest).count() == 0

    def test_existing_member_cannot_request(self, db_session, document_store, tenant, principal, security_code):
        with pytest.raises(DuplicateError):
            request_join(db_session, document_store, principal,
                         JoinRequestCreate(nit="900123456-7", security_code=security_code))

    def test_cooldown_after_rejection(self, db_session, document_store, tenant, requester, security_code):
        _rejected_request(db_session, tenant, requester, hours_ago=1)

        with pytest.raises(JoinCooldownError) as exc_info:
            request_join(db_session, document_store, requester,
                         JoinRequestCreate(nit="900123456-7", security_code=security_code))
        assert "24 horas" in exc_info.value.errors[0]["message"]
        assert exc_info.value.status_code == 400

    def test_cooldown_expires(self, db_session, document_store, tenant, requester, security_code):
        _rejected_request(db_session, tenant, requester, hours_ago=24.1)

        result = request_join(db_session, document_store, requester,
                              JoinRequestCreate(nit="900123456-7", security_code=security_code))
        assert result["status"] == "pending"

    def test_cooldown_boundary_is_exactly_24_hours(self, db_session, document_store, tenant, requester,
                                                   security_code, monkeypatch):
        """Un segundo antes del plazo se rechaza; justo a las 24 horas se acepta"""
        rejected_at = utcnow().replace(microsecond=0) - timedelta(days=3)
        _rejected_request(db_session, tenant, requester, created_at=rejected_at)
        data = JoinRequestCreate(nit="900123456-7", security_code=security_code)

        monkeypatch.setattr(join_service, "utcnow", lambda: rejected_at + timedelta(hours=24, seconds=-1))
        with pytest.raises(JoinCooldownError):
            request_join(db_session, document_store, requester, data)

        monkeypatch.setattr(join_service, "utcnow", lambda: rejected_at + timedelta(hours=24))
        result = request_join(db_session, document_store, requester, data)
        assert result["status"] == "pending"

    def test_cooldown_uses_latest_rejection(self, db_session, tenant, requester):
        _rejected_request(db_session, tenant, requester, hours_ago=72)
        _rejected_request(db_session, tenant, requester, hours_ago=2)

        with pytest.raises(JoinCooldownError):
            check_cooldown(db_session, requester.external_id, tenant["tenant_id"])


class TestResolveJoinRequest:
    """Tests para resolve_join_request"""

    @pytest.fixture
    def pending(self, db_session, document_store, tenant, requester, security_code):
        result = request_join(db_session, document_store, requester,
                              JoinRequestCreate(nit="900123456-7", security_code=security_code))
        return result["join_request_id"]

    def test_approve_creates_employee_membership(self, db_session, principal, requester, tenant, pending):
        join_request = resolve_join_request(db_session, principal, pending, "approve")

        assert join_request.status == "approved"
        assert join_request.resolved_by == principal.external_id
        assert join_request.resolved_at is not None
        membership = db_session.query(UserCompany).filter(
            UserCompany.user_id == requester.external_id
        ).one()
        assert membership.role == MembershipRole.EMPLOYEE.value
        assert membership.is_default is False
        assert membership.company_id == tenant["tenant_id"]

        notification = db_session.query(Notification).filter(
            Notification.users_companies_id == membership.id
        ).one()
        assert notification.title == "Solicitud aprobada"

    def test_reject_creates_no_membership(self, db_session, principal, requester, pending):
        join_request = resolve_join_request(db_session, principal, pending, "REJECT")

        assert join_request.status == "rejected"
        assert db_session.query(UserCompany).filter(UserCompany.user_id == requester.external_id).count() == 0

    def test_only_administrators_resolve(self, db_session, requester, pending):
        with pytest.raises(PermissionDeniedError):
            resolve_join_request(db_session, requester, pending, "approve")

    def test_invalid_action(self, db_session, principal, pending):
        with pytest.raises(ValidationError):
            resolve_join_request(db_session, principal, pending, "maybe")

    def test_already_resolved(self, db_session, principal, pending):
        resolve_join_request(db_session, principal, pending, "reject")
        with pytest.raises(ConflictError):
            resolve_join_request(db_session, principal, pending, "approve")

    def test_unknown_request(self, db_session, principal, tenant):
        with pytest.raises(NotFoundError):
            resolve_join_request(db_session, principal, uuid4(), "approve")


class TestJoinRequestEndpoints:
    """Tests de integración para /tenants/join y /tenants/join-requests"""

    def test_join_list_and_approve(self, client, tenant, security_code):
        requester_headers = auth_headers("user_requester", given_name="Carlos", family_name="Ruiz")
        response = client.post("/tenants/join", json={"nit": "900123456-7", "security_code": security_code},
                               headers=requester_headers)
        assert response.status_code == 201
        request_id = response.json()["data"]["join_request_id"]

        response = client.get("/tenants/join-requests", params={"status": "pending"}, headers=tenant["headers"])
        assert response.status_code == 200
        listed = response.json()["data"]
        assert [r["id"] for r in listed] == [request_id]

        response = client.post(f"/tenants/join-requests/{request_id}/resolve", json={"action": "approve"},
                               headers=tenant["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "approved"

        # The new member can now act inside the company, but not as an administrator
        employee_headers = auth_headers("user_requester", tenant["tenant_id"])
        assert client.get("/stores", headers=employee_headers).status_code == 200
        assert client.get("/tenants/join-requests", headers=employee_headers).status_code == 403

    def test_wrong_code_is_401(self, client, tenant):
        response = client.post("/tenants/join", json={"nit": "900123456-7", "security_code": "ZZZZZZZZ"},
                               headers=auth_headers("user_requester"))
        assert response.status_code == 401
        assert response.json()["errors"][0]["field"] == "security_code"

    def test_company_header_is_required(self, client, tenant):
        response = client.get("/tenants/join-requests", headers=auth_headers("user_admin"))
        assert response.status_code == 400
