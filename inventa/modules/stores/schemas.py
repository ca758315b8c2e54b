from pydantic import BaseModel, ConfigDict
from typing import Optional
from uuid import UUID
from datetime import datetime


class StoreCreate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None


class StoreOut(BaseModel):
    id: UUID
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    is_main: bool
    mongo_store_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
