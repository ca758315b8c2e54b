from pydantic import BaseModel, ConfigDict
from typing import Optional
from uuid import UUID
from datetime import datetime


class JoinRequestCreate(BaseModel):
    nit: Optional[str] = None
    security_code: Optional[str] = None
    company_name: Optional[str] = None


class JoinRequestSubmitted(BaseModel):
    status: str
    company_name: str
    join_request_id: UUID


class JoinRequestResolve(BaseModel):
    action: Optional[str] = None


class JoinRequestOut(BaseModel):
    id: UUID
    user_id: str
    company_id: UUID
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    status: str
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
