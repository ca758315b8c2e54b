"""
Error taxonomy shared by every module.

Domain errors are HTTPExceptions so services can raise them the same way they
raise plain HTTP errors; the handlers in ``inventa.main`` render them as
``{"success": false, "errors": [...]}``.
"""
from typing import List, Optional, Dict
from uuid import uuid4
from fastapi import HTTPException, status


def new_error_id() -> str:
    """Correlation value logged next to infrastructure failures."""
    return uuid4().hex[:12]


class AppError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_field = "general"

    def __init__(self, message: str = "", errors: Optional[List[Dict[str, str]]] = None,
                 field: Optional[str] = None, error_id: Optional[str] = None):
        if errors is None:
            errors = [{"field": field or self.default_field, "message": message}]
        self.errors = errors
        self.error_id = error_id
        super().__init__(status_code=self.status_code, detail=errors)

    @property
    def message(self) -> str:
        return "; ".join(e["message"] for e in self.errors)

    def __str__(self):
        return f"{self.__class__.__name__}: {self.message}"


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class InsufficientStockError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_field = "quantity"

    def __init__(self, shortages: List[Dict], message: Optional[str] = None):
        # shortages: [{"product_id", "product_name", "available", "requested"}]
        self.shortages = shortages
        errors = [
            {
                "field": str(s["product_id"]),
                "message": (
                    f"Stock insuficiente para '{s['product_name']}'. "
                    f"Disponible: {s['available']}, Solicitado: {s['requested']}, "
                    f"Faltante: {s['requested'] - s['available']}"
                ),
            }
            for s in shortages
        ]
        if message:
            errors = [{"field": "quantity", "message": message}]
        super().__init__(errors=errors)


class JoinCooldownError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, retry_after, hours: int = 24):
        self.retry_after = retry_after
        super().__init__(
            f"No puedes solicitar unirte a esta empresa hasta que hayan pasado {hours} horas "
            "desde tu última solicitud rechazada."
        )


class AuthError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDeniedError(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class DuplicateError(AppError):
    status_code = status.HTTP_409_CONFLICT


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


class InfrastructureError(AppError):
    """Store failure. The caller only ever sees a generic message."""

    public_message = "Error interno del servidor"

    def __init__(self, message: str = "", error_id: Optional[str] = None):
        self.internal_message = message
        super().__init__(self.public_message, error_id=error_id or new_error_id())

    def __str__(self):
        return f"{self.__class__.__name__}[{self.error_id}]: {self.internal_message}"


class PrimaryWriteError(InfrastructureError):
    pass


class SecondaryWriteError(InfrastructureError):
    pass


class ConfigurationError(InfrastructureError):
    public_message = "Configuración del servidor incompleta"
