"""
Dependencias de autenticación para FastAPI.

Tokens are issued by the external identity provider; this service only
verifies them and never manages credentials or sessions itself.
"""
from typing import Optional
from uuid import UUID
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import jwt
import logging

from inventa.core.config import settings
from inventa.core.exceptions import AuthError, PermissionDeniedError, ValidationError
from inventa.database.database import get_db
from inventa.modules.auth.models import UserCompany, MembershipRole
from inventa.modules.auth.schemas import Principal, TenantContext

logger = logging.getLogger(__name__)

# Security scheme
security = HTTPBearer(auto_error=False)


def decode_identity_token(token: str) -> Principal:
    """Verify an identity-provider token and map its claims to a Principal."""
    try:
        payload = jwt.decode(
            token,
            settings.IDP_JWT_SECRET,
            algorithms=[settings.IDP_JWT_ALGORITHM],
            audience=settings.IDP_JWT_AUDIENCE,
            issuer=settings.IDP_JWT_ISSUER,
            options={"verify_aud": settings.IDP_JWT_AUDIENCE is not None},
        )
    except jwt.PyJWTError as e:
        logger.info(f"Rejected identity token: {e}")
        raise AuthError("No se pudieron validar las credenciales", field="authorization")

    external_id = payload.get("sub")
    if not external_id:
        raise AuthError("No se pudieron validar las credenciales", field="authorization")

    return Principal(
        external_id=str(external_id),
        first_name=payload.get("given_name") or "SinNombre",
        last_name=payload.get("family_name") or "SinApellido",
        email=payload.get("email"),
        phone=payload.get("phone_number"),
    )


def get_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    """Obtener el usuario autenticado desde el token Bearer."""
    if credentials is None:
        raise AuthError("No se encontró un usuario autenticado", field="authorization")
    return decode_identity_token(credentials.credentials)


def get_tenant_context(
    request: Request,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
) -> TenantContext:
    """
    Resolve the tenant from the X-Company-ID header and verify the caller
    belongs to it.
    """
    company_id_str = request.headers.get("X-Company-ID")
    if not company_id_str:
        raise ValidationError("Se requiere el header X-Company-ID", field="X-Company-ID")
    try:
        tenant_id = UUID(company_id_str)
    except ValueError:
        raise ValidationError("ID de empresa inválido", field="X-Company-ID")

    membership = db.query(UserCompany).filter(
        UserCompany.user_id == principal.external_id,
        UserCompany.company_id == tenant_id,
    ).first()
    if membership is None:
        raise PermissionDeniedError("No tienes acceso a esta empresa", field="X-Company-ID")

    return TenantContext(
        principal=principal,
        tenant_id=tenant_id,
        role=membership.role,
        membership_id=membership.id,
    )


def require_admin(context: TenantContext = Depends(get_tenant_context)) -> TenantContext:
    if context.role != MembershipRole.ADMINISTRATOR.value:
        raise PermissionDeniedError("Solo los administradores pueden realizar esta acción")
    return context
