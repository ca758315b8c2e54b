from pydantic import BaseModel
from typing import Optional
from uuid import UUID


class Principal(BaseModel):
    """Authenticated user as asserted by the identity provider."""
    external_id: str
    first_name: str = "SinNombre"
    last_name: str = "SinApellido"
    email: Optional[str] = None
    phone: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class TenantContext(BaseModel):
    """Request-scoped tenant context, passed explicitly to every service call."""
    principal: Principal
    tenant_id: UUID
    role: str
    membership_id: UUID

    @property
    def user_id(self) -> str:
        return self.principal.external_id

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMINISTRATOR"
