from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from uuid import UUID
from decimal import Decimal
from datetime import datetime, date, timezone


class ProductCreate(BaseModel):
    name: str
    sku: str
    barcode: Optional[str] = None
    description: Optional[str] = None
    store_id: Optional[UUID] = None
    price: Decimal = Field(..., ge=0)
    cost: Decimal = Field(default=Decimal("0"), ge=0)
    min_stock: int = Field(default=0, ge=0)
    discount: Optional[Decimal] = Field(default=None, ge=0, le=100, description="Porcentaje de descuento")
    discount_start_date: Optional[datetime] = None
    discount_end_date: Optional[datetime] = None
    discount_minimum_price: Optional[Decimal] = Field(default=None, ge=0)
    expiration_date: Optional[date] = None

    @field_validator("name", "sku")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Este campo es obligatorio")
        return v.strip()

    @field_validator("discount_start_date", "discount_end_date")
    @classmethod
    def assume_utc(cls, v):
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class ProductOut(BaseModel):
    id: UUID
    name: str
    sku: str
    barcode: Optional[str] = None
    description: Optional[str] = None
    store_id: Optional[UUID] = None
    price: Decimal
    cost: Decimal
    min_stock: int
    discount: Optional[Decimal] = None
    discount_start_date: Optional[datetime] = None
    discount_end_date: Optional[datetime] = None
    discount_minimum_price: Optional[Decimal] = None
    expiration_date: Optional[date] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
