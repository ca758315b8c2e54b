"""
Notification fan-out.

Notifications never take part in the outcome of the operation that spawns
them: every recipient row is written under its own savepoint, failures are
logged and counted, and nothing here raises to the caller.
"""
from typing import Iterable, List, Optional
from uuid import UUID
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventa.core.config import settings
from inventa.core.exceptions import NotFoundError
from inventa.modules.auth.models import UserCompany, MembershipRole
from inventa.modules.auth.schemas import TenantContext
from inventa.modules.notifications.models import Notification

logger = logging.getLogger(__name__)


def notify_memberships(
    db: Session,
    company_id: UUID,
    membership_ids: Iterable[UUID],
    title: str,
    message: str,
    category: str,
    created_by: Optional[str] = None,
) -> int:
    """Create one notification per membership. Returns how many were stored."""
    created = 0
    failed = 0
    for membership_id in membership_ids:
        try:
            with db.begin_nested():
                db.add(Notification(
                    users_companies_id=membership_id,
                    company_id=company_id,
                    title=title,
                    message=message,
                    category=category,
                    created_by=created_by,
                ))
            created += 1
        except SQLAlchemyError as e:
            failed += 1
            logger.warning(f"Notification for membership {membership_id} failed: {e}")

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not commit notifications for company {company_id}: {e}")
        return 0

    if failed:
        logger.warning(f"{failed} notification(s) failed for company {company_id}")
    return created


def fan_out_to_admins(
    db: Session,
    company_id: UUID,
    title: str,
    message: str,
    category: str,
    created_by: Optional[str] = None,
) -> int:
    """Notify every ADMINISTRATOR membership of the company."""
    admin_ids: List[UUID] = [
        membership_id for (membership_id,) in db.query(UserCompany.id).filter(
            UserCompany.company_id == company_id,
            UserCompany.role == MembershipRole.ADMINISTRATOR.value,
        )
    ]
    return notify_memberships(db, company_id, admin_ids, title, message, category, created_by)


def dispatch_admin_notifications(
    db: Session,
    company_id: UUID,
    title: str,
    message: str,
    category: str,
    created_by: Optional[str] = None,
) -> Optional[int]:
    """
    Run the admin fan-out inline, or queue it on the notifications worker
    when NOTIFICATIONS_ASYNC is enabled. Errors are logged, never raised.
    """
    try:
        if settings.NOTIFICATIONS_ASYNC:
            from inventa.modules.notifications.tasks import fan_out_admin_notifications
            fan_out_admin_notifications.delay(str(company_id), title, message, category, created_by)
            return None
        return fan_out_to_admins(db, company_id, title, message, category, created_by)
    except Exception as e:
        db.rollback()
        logger.error(f"Notification dispatch failed for company {company_id}: {e}")
        return 0


def list_notifications(db: Session, context: TenantContext, unread_only: bool = False) -> List[Notification]:
    query = db.query(Notification).filter(Notification.users_companies_id == context.membership_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return query.order_by(Notification.created_at.desc()).all()


def _own_notification(db: Session, context: TenantContext, notification_id: UUID) -> Notification:
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.users_companies_id == context.membership_id,
    ).first()
    if notification is None:
        raise NotFoundError("Notificación no encontrada")
    return notification


def set_read(db: Session, context: TenantContext, notification_id: UUID, read: bool) -> Notification:
    notification = _own_notification(db, context, notification_id)
    notification.read = read
    db.commit()
    db.refresh(notification)
    return notification


def mark_read(db: Session, context: TenantContext, notification_id: UUID) -> Notification:
    return set_read(db, context, notification_id, True)


def delete_notification(db: Session, context: TenantContext, notification_id: UUID) -> None:
    notification = _own_notification(db, context, notification_id)
    db.delete(notification)
    db.commit()
    logger.info(f"Notification {notification_id} deleted by {context.user_id}")
