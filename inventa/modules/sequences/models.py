from sqlalchemy import Column, String, Integer, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4

from inventa.database.database import Base
from inventa.common.mixins import TenantMixin, TimestampMixin


class DocumentSequence(Base, TenantMixin, TimestampMixin):
    """Per-day counter for human-readable document numbers."""
    __tablename__ = "document_sequences"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    namespace = Column(String(30), nullable=False)  # sale, invoice
    day = Column(String(8), nullable=False)  # YYYYMMDD
    last_value = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("tenant_id", "namespace", "day", name="uq_document_sequence_tenant_namespace_day"),
    )
