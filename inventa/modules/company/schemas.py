from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from uuid import UUID


class TenantCreate(BaseModel):
    """
    Datos para registrar una empresa.

    Every field is optional at the schema level so the service can report all
    missing required fields at once instead of the first one.
    """
    company_name: Optional[str] = None
    nit: Optional[str] = Field(default=None, description="NIT con dígito de verificación (ej: 900123456-7)")
    company_email: Optional[str] = None
    company_phone: Optional[str] = None
    company_address: Optional[str] = None
    store_name: Optional[str] = None
    store_address: Optional[str] = None
    store_phone: Optional[str] = None


class TenantProvisioned(BaseModel):
    tenant_id: UUID
    store_id: UUID
    external_tenant_id: str
    external_store_id: str
    company_name: str
    redirect_url: str


class MembershipOut(BaseModel):
    id: UUID
    company_id: UUID
    company_name: Optional[str] = None
    role: str
    is_default: bool

    model_config = ConfigDict(from_attributes=True)
