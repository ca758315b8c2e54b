from typing import List, Optional
from fastapi import APIRouter, Query, status

from inventa.common.schemas import ApiResponse, ok
from inventa.dependencies.dbDependencies import db_dependency
from inventa.dependencies.companyDependencies import TenantDependency
from inventa.modules.contacts import service
from inventa.modules.contacts.schemas import CustomerCreate, CustomerOut, ProviderCreate, ProviderOut

customers_router = APIRouter(prefix="/customers", tags=["Contacts"])
providers_router = APIRouter(prefix="/providers", tags=["Contacts"])


@customers_router.post("", response_model=ApiResponse[CustomerOut], status_code=status.HTTP_201_CREATED)
def create_customer(data: CustomerCreate, db: db_dependency, context: TenantDependency):
    return ok(CustomerOut.model_validate(service.create_customer(db, context, data)))


@customers_router.get("", response_model=ApiResponse[List[CustomerOut]])
def list_customers(db: db_dependency, context: TenantDependency,
                   search: Optional[str] = Query(None, description="Buscar por nombre")):
    return ok([CustomerOut.model_validate(c) for c in service.list_customers(db, context, search)])


@providers_router.post("", response_model=ApiResponse[ProviderOut], status_code=status.HTTP_201_CREATED)
def create_provider(data: ProviderCreate, db: db_dependency, context: TenantDependency):
    return ok(ProviderOut.model_validate(service.create_provider(db, context, data)))


@providers_router.get("", response_model=ApiResponse[List[ProviderOut]])
def list_providers(db: db_dependency, context: TenantDependency,
                   search: Optional[str] = Query(None, description="Buscar por nombre")):
    return ok([ProviderOut.model_validate(p) for p in service.list_providers(db, context, search)])
