"""
Document numbering.

Numbers come from a counter row per (tenant, namespace, day) that is only
ever advanced with ``UPDATE ... SET last_value = last_value + 1``. The
update locks the row until the surrounding transaction ends, so concurrent
sales are serialized on it instead of reading the same "last number".
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventa.common.time_utils import utcnow
from inventa.core.exceptions import ConflictError
from inventa.modules.sequences.models import DocumentSequence

SALE_NAMESPACE = "sale"
INVOICE_NAMESPACE = "invoice"


def next_value(db: Session, tenant_id: UUID, namespace: str, day: str, attempts: int = 3) -> int:
    criteria = (
        DocumentSequence.tenant_id == tenant_id,
        DocumentSequence.namespace == namespace,
        DocumentSequence.day == day,
    )
    for _ in range(attempts):
        updated = db.query(DocumentSequence).filter(*criteria).update(
            {DocumentSequence.last_value: DocumentSequence.last_value + 1},
            synchronize_session=False,
        )
        if updated:
            return db.query(DocumentSequence.last_value).filter(*criteria).scalar()
        try:
            with db.begin_nested():
                db.add(DocumentSequence(tenant_id=tenant_id, namespace=namespace, day=day, last_value=1))
            return 1
        except IntegrityError:
            # First number of the day taken concurrently; advance the existing row
            continue
    raise ConflictError("No se pudo generar el número de documento, intenta de nuevo")


def next_document_number(db: Session, tenant_id: UUID, namespace: str, prefix: str,
                         day_format: str, pad: int = 4, at: Optional[datetime] = None) -> str:
    at = at or utcnow()
    value = next_value(db, tenant_id, namespace, at.strftime("%Y%m%d"))
    return f"{prefix}{at.strftime(day_format)}-{value:0{pad}d}"


def next_sale_number(db: Session, tenant_id: UUID, at: Optional[datetime] = None) -> str:
    """V-YYYYMMDD-NNNN"""
    return next_document_number(db, tenant_id, SALE_NAMESPACE, "V-", "%Y%m%d", at=at)


def next_invoice_number(db: Session, tenant_id: UUID, at: Optional[datetime] = None) -> str:
    """FYYMMDD-NNNN"""
    return next_document_number(db, tenant_id, INVOICE_NAMESPACE, "F", "%y%m%d", at=at)
