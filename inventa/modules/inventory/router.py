from fastapi import APIRouter, Query, status
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from inventa.common.schemas import ApiResponse, ok
from inventa.core.config import settings
from inventa.dependencies.dbDependencies import db_dependency
from inventa.dependencies.companyDependencies import TenantDependency
from inventa.modules.inventory.service import InventoryService
from inventa.modules.inventory.schemas import MovementCreate, MovementOut, ProductStockSummary, LowStockItem

stock_router = APIRouter(prefix="/stock", tags=["Inventory"])
movements_router = APIRouter(prefix="/movements", tags=["Inventory"])


@stock_router.get("/product/{product_id}", response_model=ApiResponse[ProductStockSummary])
def get_product_stock(product_id: UUID, db: db_dependency, context: TenantDependency):
    """Stock de un producto por tienda, con total y estado."""
    return ok(InventoryService(db).get_product_stock(context, product_id))


@stock_router.get("/low", response_model=ApiResponse[List[LowStockItem]])
def get_low_stock(db: db_dependency, context: TenantDependency):
    """Productos con stock total igual o menor a su mínimo."""
    return ok(InventoryService(db).list_low_stock(context))


@movements_router.post("", response_model=ApiResponse[List[MovementOut]], status_code=status.HTTP_201_CREATED)
def create_movement(data: MovementCreate, db: db_dependency, context: TenantDependency):
    """
    Registrar una ENTRADA, SALIDA o TRANSFERENCIA.

    Una transferencia devuelve dos movimientos: salida del origen y entrada al destino.
    """
    movements = InventoryService(db).record_movement(context, data)
    return ok([MovementOut.model_validate(m) for m in movements])


@movements_router.get("", response_model=ApiResponse[List[MovementOut]])
def list_movements(
    db: db_dependency,
    context: TenantDependency,
    product_id: Optional[UUID] = Query(None),
    store_id: Optional[UUID] = Query(None),
    movement_type: Optional[str] = Query(None, alias="type"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
):
    movements = InventoryService(db).list_movements(
        context,
        product_id=product_id,
        store_id=store_id,
        movement_type=movement_type,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return ok([MovementOut.model_validate(m) for m in movements])
