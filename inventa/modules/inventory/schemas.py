from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from uuid import UUID
from datetime import datetime


class MovementCreate(BaseModel):
    """
    Registro de un movimiento de inventario.

    Required fields are validated by the service so all missing ones are
    reported together.
    """
    type: Optional[str] = None
    product_id: Optional[UUID] = None
    store_id: Optional[UUID] = None
    quantity: Optional[int] = None
    destination_store_id: Optional[UUID] = None
    provider_id: Optional[UUID] = None
    reference: Optional[str] = None
    notes: Optional[str] = None


class MovementOut(BaseModel):
    id: UUID
    type: str
    direction: str
    quantity: int
    product_id: UUID
    store_id: UUID
    counterpart_store_id: Optional[UUID] = None
    provider_id: Optional[UUID] = None
    sale_id: Optional[UUID] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_by: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StoreStock(BaseModel):
    store_id: UUID
    store_name: str
    quantity: int


class ProductStockSummary(BaseModel):
    product_id: UUID
    product_name: str
    min_stock: int
    total_quantity: int
    status: str  # normal | bajo
    stores: List[StoreStock]


class LowStockItem(BaseModel):
    product_id: UUID
    product_name: str
    sku: str
    min_stock: int
    total_quantity: int
