from typing import List
from uuid import UUID
from fastapi import APIRouter, status

from inventa.common.schemas import ApiResponse, ok
from inventa.dependencies.dbDependencies import db_dependency, document_store_dependency
from inventa.dependencies.userDependencies import principal_dependency
from inventa.modules.company import service
from inventa.modules.company.schemas import TenantCreate, TenantProvisioned, MembershipOut

company_router = APIRouter(prefix="/tenants", tags=["Companies"])


@company_router.post("", response_model=ApiResponse[TenantProvisioned], status_code=status.HTTP_201_CREATED)
def provision_tenant(
    data: TenantCreate,
    db: db_dependency,
    documents: document_store_dependency,
    principal: principal_dependency,
):
    """
    Registrar una empresa con su tienda principal.

    El usuario autenticado queda como ADMINISTRATOR y la empresa pasa a ser
    su empresa por defecto.
    """
    return ok(service.provision_tenant(db, documents, principal, data))


@company_router.get("/mine", response_model=ApiResponse[List[MembershipOut]])
def get_my_companies(db: db_dependency, principal: principal_dependency):
    """Empresas a las que pertenece el usuario, la predeterminada primero."""
    return ok(service.list_my_companies(db, principal))


@company_router.get("/{tenant_id}/membership", response_model=ApiResponse[MembershipOut])
def get_membership(tenant_id: UUID, db: db_dependency, principal: principal_dependency):
    return ok(service.get_membership(db, principal, tenant_id))


@company_router.post("/{tenant_id}/default", response_model=ApiResponse[MembershipOut])
def set_default_company(tenant_id: UUID, db: db_dependency, principal: principal_dependency):
    """Marcar una empresa como predeterminada; las demás dejan de serlo."""
    return ok(service.set_default_company(db, principal, tenant_id))
