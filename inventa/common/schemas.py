from typing import Generic, List, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class ErrorItem(BaseModel):
    field: str
    message: str


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T


class ErrorResponse(BaseModel):
    success: bool = False
    errors: List[ErrorItem]
    error_id: Optional[str] = None


# Documented on every route; bodies are produced by the handlers in main
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Datos inválidos o stock insuficiente"},
    401: {"model": ErrorResponse, "description": "Credenciales inválidas"},
    403: {"model": ErrorResponse, "description": "Sin permisos en la empresa"},
    404: {"model": ErrorResponse, "description": "Not found"},
    409: {"model": ErrorResponse, "description": "Conflicto o registro duplicado"},
    500: {"model": ErrorResponse, "description": "Error interno del servidor"},
}


def ok(data) -> dict:
    return {"success": True, "data": data}


def error_body(errors: List[dict], error_id: Optional[str] = None) -> dict:
    body = ErrorResponse(errors=[ErrorItem(**error) for error in errors], error_id=error_id)
    return body.model_dump(exclude_none=True)
