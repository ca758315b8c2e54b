from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from uuid import UUID
from decimal import Decimal
from datetime import datetime


class InvoiceItemOut(BaseModel):
    product_id: UUID
    description: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    model_config = ConfigDict(from_attributes=True)


class PaymentOut(BaseModel):
    id: UUID
    amount: Decimal
    method: str
    status: str
    reference: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class InvoiceOut(BaseModel):
    id: UUID
    invoice_number: str
    status: str
    store_id: UUID
    customer_id: UUID
    currency: str
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    created_at: datetime
    items: List[InvoiceItemOut] = []
    payments: List[PaymentOut] = []

    model_config = ConfigDict(from_attributes=True)
