from decimal import Decimal
from typing import List
from uuid import UUID

from sqlalchemy.orm import Session

from inventa.core.config import settings
from inventa.modules.invoices.models import Invoice, InvoiceItem, Payment, InvoiceStatus, PaymentStatus
from inventa.modules.sequences.service import next_invoice_number


def create_paid_invoice(
    db: Session,
    tenant_id: UUID,
    store_id: UUID,
    customer_id: UUID,
    lines: List[dict],
    subtotal: Decimal,
    tax: Decimal,
    total: Decimal,
    payment_method: str,
    created_by: str,
    reference: str = None,
) -> Invoice:
    """
    Add an invoice already settled by a completed payment for its total.

    Nothing is committed here; the caller owns the transaction.
    """
    invoice = Invoice(
        tenant_id=tenant_id,
        invoice_number=next_invoice_number(db, tenant_id),
        status=InvoiceStatus.PAID.value,
        store_id=store_id,
        customer_id=customer_id,
        created_by=created_by,
        currency=settings.CURRENCY,
        subtotal=subtotal,
        tax=tax,
        total=total,
    )
    invoice.items = [
        InvoiceItem(
            product_id=line["product_id"],
            description=line["description"],
            quantity=line["quantity"],
            unit_price=line["unit_price"],
            subtotal=line["subtotal"],
        )
        for line in lines
    ]
    invoice.payments = [
        Payment(
            tenant_id=tenant_id,
            amount=total,
            method=payment_method,
            status=PaymentStatus.COMPLETED.value,
            reference=reference,
        )
    ]
    db.add(invoice)
    return invoice
