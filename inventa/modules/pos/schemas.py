from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from uuid import UUID
from decimal import Decimal
from datetime import datetime

from inventa.modules.invoices.schemas import InvoiceOut


class SaleItemCreate(BaseModel):
    product_id: Optional[UUID] = None
    quantity: Optional[int] = None
    unit_price: Optional[Decimal] = Field(default=None, description="Precio explícito; por defecto el del producto")


class SaleCreate(BaseModel):
    items: List[SaleItemCreate] = []
    store_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None


class SaleItemOut(BaseModel):
    product_id: UUID
    description: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

    model_config = ConfigDict(from_attributes=True)


class SaleOut(BaseModel):
    id: UUID
    sale_number: str
    status: str
    payment_method: str
    store_id: UUID
    customer_id: Optional[UUID] = None
    invoice_id: Optional[UUID] = None
    cashier_id: str
    currency: str
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    notes: Optional[str] = None
    created_at: datetime
    items: List[SaleItemOut] = []
    invoice: Optional[InvoiceOut] = None

    model_config = ConfigDict(from_attributes=True)
