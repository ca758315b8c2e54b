from typing import List
from uuid import UUID
from fastapi import APIRouter, Query

from inventa.common.schemas import ApiResponse, ok
from inventa.dependencies.dbDependencies import db_dependency
from inventa.dependencies.companyDependencies import TenantDependency
from inventa.modules.notifications import service
from inventa.modules.notifications.schemas import NotificationOut, NotificationUpdate

notifications_router = APIRouter(prefix="/notifications", tags=["Notifications"])


@notifications_router.get("", response_model=ApiResponse[List[NotificationOut]])
def list_notifications(
    db: db_dependency,
    context: TenantDependency,
    unread_only: bool = Query(False, description="Solo notificaciones no leídas"),
):
    """Notificaciones del usuario en la empresa actual."""
    notifications = service.list_notifications(db, context, unread_only)
    return ok([NotificationOut.model_validate(n) for n in notifications])


@notifications_router.patch("/{notification_id}", response_model=ApiResponse[NotificationOut])
def update_notification(notification_id: UUID, data: NotificationUpdate, db: db_dependency,
                        context: TenantDependency):
    """Marcar como leída o no leída."""
    notification = service.set_read(db, context, notification_id, data.read)
    return ok(NotificationOut.model_validate(notification))


@notifications_router.patch("/{notification_id}/read", response_model=ApiResponse[NotificationOut])
def mark_read(notification_id: UUID, db: db_dependency, context: TenantDependency):
    notification = service.mark_read(db, context, notification_id)
    return ok(NotificationOut.model_validate(notification))


@notifications_router.delete("/{notification_id}", response_model=ApiResponse[dict])
def delete_notification(notification_id: UUID, db: db_dependency, context: TenantDependency):
    service.delete_notification(db, context, notification_id)
    return ok({"id": str(notification_id), "deleted": True})
