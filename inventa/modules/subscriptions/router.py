"""
API Router for subscription management.
"""
from fastapi import APIRouter

from inventa.common.schemas import ApiResponse, ok
from inventa.core.exceptions import NotFoundError
from inventa.dependencies.dbDependencies import db_dependency
from inventa.dependencies.companyDependencies import TenantDependency, AdminDependency

from . import crud, schemas

router = APIRouter(
    prefix="/subscriptions",
    tags=["Subscriptions"],
)


@router.get("/current", response_model=ApiResponse[schemas.SubscriptionOut])
def get_current_subscription(db: db_dependency, context: TenantDependency):
    """
    Obtener la suscripción activa de la empresa actual.
    """
    subscription = crud.get_active_subscription(db, context.tenant_id)
    if subscription is None:
        raise NotFoundError("No se encontró una suscripción activa para esta empresa")
    return ok(schemas.SubscriptionOut.model_validate(subscription))


@router.put("/current", response_model=ApiResponse[schemas.SubscriptionOut])
def change_current_plan(data: schemas.PlanChange, db: db_dependency, context: AdminDependency):
    """
    Cambiar el plan y los límites de la empresa actual (solo administradores).
    """
    subscription = crud.change_plan(db, context, data)
    return ok(schemas.SubscriptionOut.model_validate(subscription))
