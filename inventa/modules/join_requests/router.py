from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Query, status

from inventa.common.schemas import ApiResponse, ok
from inventa.dependencies.dbDependencies import db_dependency, document_store_dependency
from inventa.dependencies.userDependencies import principal_dependency
from inventa.dependencies.companyDependencies import AdminDependency
from inventa.modules.join_requests import service
from inventa.modules.join_requests.schemas import (
    JoinRequestCreate, JoinRequestSubmitted, JoinRequestResolve, JoinRequestOut,
)

join_requests_router = APIRouter(prefix="/tenants", tags=["Join Requests"])


@join_requests_router.post("/join", response_model=ApiResponse[JoinRequestSubmitted],
                           status_code=status.HTTP_201_CREATED)
def request_join(data: JoinRequestCreate, db: db_dependency, documents: document_store_dependency,
                 principal: principal_dependency):
    """
    Solicitar unirse a una empresa con su NIT y código de seguridad.
    """
    return ok(service.request_join(db, documents, principal, data))


@join_requests_router.get("/join-requests", response_model=ApiResponse[List[JoinRequestOut]])
def list_join_requests(
    db: db_dependency,
    context: AdminDependency,
    status_filter: Optional[str] = Query(None, alias="status", description="pending, approved o rejected"),
):
    requests = service.list_join_requests(db, context, status_filter)
    return ok([JoinRequestOut.model_validate(r) for r in requests])


@join_requests_router.post("/join-requests/{request_id}/resolve", response_model=ApiResponse[JoinRequestOut])
def resolve_join_request(request_id: UUID, data: JoinRequestResolve, db: db_dependency,
                         principal: principal_dependency):
    """Aprobar o rechazar una solicitud pendiente (solo administradores)."""
    join_request = service.resolve_join_request(db, principal, request_id, data.action)
    return ok(JoinRequestOut.model_validate(join_request))
