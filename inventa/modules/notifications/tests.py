"""
Tests para notificaciones

Las notificaciones nunca afectan el resultado de la operación que las genera.
"""

from uuid import uuid4

from conftest import company_payload
from inventa.core.config import settings
from inventa.modules.company.schemas import TenantCreate
from inventa.modules.company.service import provision_tenant
from inventa.modules.company.models import Company
from inventa.modules.notifications import service as notification_service
from inventa.modules.notifications import tasks
from inventa.modules.notifications.models import Notification
from inventa.modules.notifications.service import notify_memberships, dispatch_admin_notifications


class TestFanOut:
    """Tests para el envío de notificaciones"""

    def test_failed_recipient_does_not_block_the_others(self, db_session, tenant):
        created = notify_memberships(
            db_session,
            tenant["tenant_id"],
            [uuid4(), tenant["context"].membership_id],
            title="Prueba",
            message="Mensaje",
            category="test",
        )

        assert created == 1
        assert db_session.query(Notification).filter(Notification.category == "test").count() == 1

    def test_dispatch_swallows_errors(self, db_session, tenant, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("queue unavailable")

        monkeypatch.setattr(notification_service, "fan_out_to_admins", broken)
        assert dispatch_admin_notifications(db_session, tenant["tenant_id"], "T", "M", "test") == 0

    def test_provisioning_succeeds_when_notifications_fail(self, db_session, document_store, principal,
                                                           monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("notifications down")

        monkeypatch.setattr(notification_service, "fan_out_to_admins", broken)
        result = provision_tenant(db_session, document_store, principal, TenantCreate(**company_payload()))

        assert db_session.query(Company).filter(Company.id == result["tenant_id"]).count() == 1
        assert db_session.query(Notification).count() == 0

    def test_async_mode_queues_a_task(self, db_session, tenant, monkeypatch):
        queued = []
        monkeypatch.setattr(settings, "NOTIFICATIONS_ASYNC", True)
        monkeypatch.setattr(tasks.fan_out_admin_notifications, "delay", lambda *args: queued.append(args))

        result = dispatch_admin_notifications(db_session, tenant["tenant_id"], "T", "M", "test", "user_admin")

        assert result is None
        assert queued == [(str(tenant["tenant_id"]), "T", "M", "test", "user_admin")]


class TestNotificationEndpoints:

    def test_list_and_mark_read(self, client, tenant):
        response = client.get("/notifications", headers=tenant["headers"])
        notifications = response.json()["data"]
        assert [n["category"] for n in notifications] == ["company"]

        response = client.patch(f"/notifications/{notifications[0]['id']}/read", headers=tenant["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["read"] is True

        response = client.get("/notifications", params={"unread_only": True}, headers=tenant["headers"])
        assert response.json()["data"] == []

    def test_cannot_read_someone_elses_notification(self, client, tenant, other_tenant):
        notification_id = client.get("/notifications", headers=tenant["headers"]).json()["data"][0]["id"]
        response = client.patch(f"/notifications/{notification_id}/read", headers=other_tenant["headers"])
        assert response.status_code == 404

    def test_toggle_read_back_to_unread(self, client, tenant):
        notification_id = client.get("/notifications", headers=tenant["headers"]).json()["data"][0]["id"]

        response = client.patch(f"/notifications/{notification_id}", json={"read": True}, headers=tenant["headers"])
        assert response.json()["data"]["read"] is True

        response = client.patch(f"/notifications/{notification_id}", json={"read": False}, headers=tenant["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["read"] is False
        unread = client.get("/notifications", params={"unread_only": True}, headers=tenant["headers"]).json()
        assert [n["id"] for n in unread["data"]] == [notification_id]

    def test_read_flag_is_required(self, client, tenant):
        notification_id = client.get("/notifications", headers=tenant["headers"]).json()["data"][0]["id"]
        response = client.patch(f"/notifications/{notification_id}", json={}, headers=tenant["headers"])
        assert response.status_code == 400

    def test_delete_notification(self, client, db_session, tenant):
        notification_id = client.get("/notifications", headers=tenant["headers"]).json()["data"][0]["id"]

        response = client.delete(f"/notifications/{notification_id}", headers=tenant["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["deleted"] is True
        assert db_session.query(Notification).count() == 0
        assert client.get("/notifications", headers=tenant["headers"]).json()["data"] == []

        response = client.delete(f"/notifications/{notification_id}", headers=tenant["headers"])
        assert response.status_code == 404

    def test_cannot_delete_someone_elses_notification(self, client, db_session, tenant, other_tenant):
        notification_id = client.get("/notifications", headers=tenant["headers"]).json()["data"][0]["id"]

        response = client.delete(f"/notifications/{notification_id}", headers=other_tenant["headers"])
        assert response.status_code == 404
        response = client.patch(f"/notifications/{notification_id}", json={"read": True},
                                headers=other_tenant["headers"])
        assert response.status_code == 404
        assert db_session.query(Notification).filter(Notification.read.is_(False)).count() == 2
