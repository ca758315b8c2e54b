from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Query, status

from inventa.common.schemas import ApiResponse, ok
from inventa.core.config import settings
from inventa.dependencies.dbDependencies import db_dependency
from inventa.dependencies.companyDependencies import TenantDependency
from inventa.modules.products import service
from inventa.modules.products.schemas import ProductCreate, ProductOut

product_router = APIRouter(prefix="/products", tags=["Products"])


@product_router.post("", response_model=ApiResponse[ProductOut], status_code=status.HTTP_201_CREATED)
def create_product(data: ProductCreate, db: db_dependency, context: TenantDependency):
    product = service.create_product(db, context, data)
    return ok(ProductOut.model_validate(product))


@product_router.get("", response_model=ApiResponse[List[ProductOut]])
def list_products(
    db: db_dependency,
    context: TenantDependency,
    name: Optional[str] = Query(None, description="Filtrar por nombre"),
    is_active: Optional[bool] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
):
    products = service.list_products(db, context, name=name, is_active=is_active, limit=limit, offset=offset)
    return ok([ProductOut.model_validate(p) for p in products])


@product_router.get("/{product_id}", response_model=ApiResponse[ProductOut])
def get_product(product_id: UUID, db: db_dependency, context: TenantDependency):
    return ok(ProductOut.model_validate(service.get_product(db, context, product_id)))
