from typing import List
from fastapi import APIRouter, status

from inventa.common.schemas import ApiResponse, ok
from inventa.dependencies.dbDependencies import db_dependency, document_store_dependency
from inventa.dependencies.companyDependencies import TenantDependency, AdminDependency
from inventa.modules.stores import service
from inventa.modules.stores.schemas import StoreCreate, StoreOut

stores_router = APIRouter(prefix="/stores", tags=["Stores"])


@stores_router.post("", response_model=ApiResponse[StoreOut], status_code=status.HTTP_201_CREATED)
def create_store(data: StoreCreate, db: db_dependency, documents: document_store_dependency,
                 context: AdminDependency):
    """
    Crear una tienda. Solo administradores, dentro del límite del plan.
    """
    store = service.create_store(db, documents, context, data)
    return ok(StoreOut.model_validate(store))


@stores_router.get("", response_model=ApiResponse[List[StoreOut]])
def list_stores(db: db_dependency, context: TenantDependency):
    return ok([StoreOut.model_validate(s) for s in service.list_stores(db, context)])
