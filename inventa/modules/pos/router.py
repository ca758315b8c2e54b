from fastapi import APIRouter, Query, status
from typing import List, Optional
from uuid import UUID

from inventa.common.schemas import ApiResponse, ok
from inventa.core.config import settings
from inventa.dependencies.dbDependencies import db_dependency
from inventa.dependencies.companyDependencies import TenantDependency
from inventa.modules.pos.service import SaleService
from inventa.modules.pos.schemas import SaleCreate, SaleOut

sales_router = APIRouter(prefix="/sales", tags=["POS"])


@sales_router.post("", response_model=ApiResponse[SaleOut], status_code=status.HTTP_201_CREATED)
def create_sale(data: SaleCreate, db: db_dependency, context: TenantDependency):
    """
    Registrar una venta.

    Descuenta stock, registra un movimiento SALIDA por línea y, si hay
    cliente, emite la factura pagada.
    """
    sale = SaleService(db).process_sale(context, data)
    return ok(SaleOut.model_validate(sale))


@sales_router.get("", response_model=ApiResponse[List[SaleOut]])
def list_sales(
    db: db_dependency,
    context: TenantDependency,
    store_id: Optional[UUID] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
):
    sales = SaleService(db).list_sales(context, store_id=store_id, limit=limit, offset=offset)
    return ok([SaleOut.model_validate(s) for s in sales])


@sales_router.get("/{sale_id}", response_model=ApiResponse[SaleOut])
def get_sale(sale_id: UUID, db: db_dependency, context: TenantDependency):
    return ok(SaleOut.model_validate(SaleService(db).get_sale(context, sale_id)))
