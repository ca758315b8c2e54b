"""
Models for subscription management.
"""
from sqlalchemy import Column, String, Integer, Index, text
from sqlalchemy.dialects.postgresql import UUID
from inventa.database.database import Base
from inventa.common.mixins import TenantMixin, TimestampMixin
import uuid
from enum import Enum


class SubscriptionStatus(str, Enum):
    """Estados de suscripción."""
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"


class Subscription(Base, TenantMixin, TimestampMixin):
    """Plan assigned to a tenant, with its usage limits."""
    __tablename__ = "subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4)
    # External identity of the user who owns the subscription
    user_id = Column(String(255), nullable=False)

    plan_code = Column(String(50), nullable=False)
    plan_name = Column(String(100), nullable=False)

    # Límites del plan
    worker_limit = Column(Integer, nullable=False)
    invoice_limit = Column(Integer, nullable=False)
    store_limit = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=SubscriptionStatus.ACTIVE.value)

    __table_args__ = (
        # One active subscription per tenant
        Index(
            "uq_subscriptions_active_tenant",
            "tenant_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )
