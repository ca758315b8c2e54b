from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from datetime import datetime


class SubscriptionOut(BaseModel):
    id: UUID
    tenant_id: UUID
    plan_code: str
    plan_name: str
    worker_limit: int
    invoice_limit: int
    store_limit: int
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PlanLimits(BaseModel):
    workers: int = Field(..., gt=0, description="Máximo de empleados")
    invoices: int = Field(..., gt=0, description="Máximo de facturas")
    stores: int = Field(..., gt=0, description="Máximo de tiendas")


class PlanChange(BaseModel):
    plan_code: str = Field(..., min_length=1, max_length=50)
    plan_name: str = Field(..., min_length=1, max_length=100)
    limits: PlanLimits
