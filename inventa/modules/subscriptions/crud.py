"""
CRUD operations for subscription management.
"""
from typing import Optional
from uuid import UUID
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventa.core.config import settings
from inventa.core.exceptions import ValidationError, NotFoundError, PermissionDeniedError, ConflictError
from inventa.modules.auth.schemas import TenantContext
from inventa.modules.stores.models import Store
from .models import Subscription, SubscriptionStatus
from .schemas import PlanChange

logger = logging.getLogger(__name__)


def build_default_subscription(tenant_id: UUID, user_id: str) -> Subscription:
    """Suscripción inicial con el plan por defecto; el llamador la persiste."""
    return Subscription(
        tenant_id=tenant_id,
        user_id=user_id,
        plan_code=settings.DEFAULT_PLAN_CODE,
        plan_name=settings.DEFAULT_PLAN_NAME,
        worker_limit=settings.DEFAULT_PLAN_WORKER_LIMIT,
        invoice_limit=settings.DEFAULT_PLAN_INVOICE_LIMIT,
        store_limit=settings.DEFAULT_PLAN_STORE_LIMIT,
        status=SubscriptionStatus.ACTIVE.value,
    )


def get_active_subscription(db: Session, tenant_id: UUID) -> Optional[Subscription]:
    """Obtener la suscripción activa de un tenant."""
    return db.query(Subscription).filter(
        Subscription.tenant_id == tenant_id,
        Subscription.status == SubscriptionStatus.ACTIVE.value,
    ).first()


def change_plan(db: Session, context: TenantContext, data: PlanChange) -> Subscription:
    """
    Cambiar el plan de la empresa.

    The active subscription is cancelled and the new one inserted in the same
    commit, so the tenant never has two active plans. A concurrent change
    loses on the partial unique index and gets a ConflictError.
    """
    if not context.is_admin:
        raise PermissionDeniedError("Solo los administradores pueden cambiar el plan")

    current = get_active_subscription(db, context.tenant_id)
    if current is None:
        raise NotFoundError("No se encontró una suscripción activa para esta empresa")

    plan_code = data.plan_code.strip()
    plan_name = data.plan_name.strip()
    if not plan_code or not plan_name:
        raise ValidationError("El código y el nombre del plan son obligatorios", field="plan_code")

    store_count = db.query(func.count(Store.id)).filter(Store.tenant_id == context.tenant_id).scalar()
    if data.limits.stores < store_count:
        raise ValidationError(
            f"La empresa ya tiene {store_count} tiendas; el plan debe permitir al menos esa cantidad",
            field="limits.stores",
        )

    try:
        current.status = SubscriptionStatus.CANCELLED.value
        db.flush()
        subscription = Subscription(
            tenant_id=context.tenant_id,
            user_id=context.user_id,
            plan_code=plan_code,
            plan_name=plan_name,
            worker_limit=data.limits.workers,
            invoice_limit=data.limits.invoices,
            store_limit=data.limits.stores,
            status=SubscriptionStatus.ACTIVE.value,
        )
        db.add(subscription)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("El plan se está modificando en otra solicitud", field="plan_code")

    db.refresh(subscription)
    logger.info(
        f"Tenant {context.tenant_id} moved from plan {current.plan_code} to {subscription.plan_code} "
        f"by {context.user_id}"
    )
    return subscription
