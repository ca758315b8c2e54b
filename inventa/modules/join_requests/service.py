"""
Join requests: a user who knows a company's NIT and security code asks to
become a member; an administrator approves or rejects the request.
"""
from datetime import timedelta
from typing import List, Optional
from uuid import UUID
import logging
import secrets

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventa.common.time_utils import utcnow, as_utc
from inventa.core.config import settings
from inventa.core.exceptions import (
    ValidationError, NotFoundError, AuthError, DuplicateError,
    PermissionDeniedError, ConflictError, JoinCooldownError,
)
from inventa.database.documents import DocumentStore
from inventa.modules.auth.models import UserCompany, MembershipRole
from inventa.modules.auth.schemas import Principal, TenantContext
from inventa.modules.company import documents as company_documents
from inventa.modules.company.models import Company
from inventa.modules.join_requests.models import JoinRequest, JoinRequestStatus
from inventa.modules.join_requests.schemas import JoinRequestCreate
from inventa.modules.notifications.service import dispatch_admin_notifications, notify_memberships

logger = logging.getLogger(__name__)

RESOLVE_ACTIONS = {
    "approve": JoinRequestStatus.APPROVED.value,
    "reject": JoinRequestStatus.REJECTED.value,
}


def _security_codes_match(supplied: str, stored: str) -> bool:
    return secrets.compare_digest(
        supplied.strip().upper().encode("utf-8"),
        (stored or "").strip().upper().encode("utf-8"),
    )


def _find_pending(db: Session, user_id: str, company_id: UUID) -> Optional[JoinRequest]:
    return db.query(JoinRequest).filter(
        JoinRequest.user_id == user_id,
        JoinRequest.company_id == company_id,
        JoinRequest.status == JoinRequestStatus.PENDING.value,
    ).first()


def check_cooldown(db: Session, user_id: str, company_id: UUID) -> None:
    """Reject a new request while the latest rejection is younger than the cooldown."""
    last_rejected = db.query(JoinRequest).filter(
        JoinRequest.user_id == user_id,
        JoinRequest.company_id == company_id,
        JoinRequest.status == JoinRequestStatus.REJECTED.value,
    ).order_by(JoinRequest.created_at.desc()).first()
    if last_rejected is None:
        return

    cooldown = timedelta(hours=settings.JOIN_REQUEST_COOLDOWN_HOURS)
    retry_after = as_utc(last_rejected.created_at) + cooldown
    if utcnow() < retry_after:
        raise JoinCooldownError(retry_after, hours=settings.JOIN_REQUEST_COOLDOWN_HOURS)


def request_join(db: Session, documents: DocumentStore, principal: Principal, data: JoinRequestCreate) -> dict:
    """
    Submit a join request.

    Re-submitting while a request is pending returns that request instead
    of creating another one.
    """
    nit = (data.nit or "").strip()
    security_code = (data.security_code or "").strip()
    errors = []
    if not nit:
        errors.append({"field": "nit", "message": "El NIT es obligatorio"})
    if not security_code:
        errors.append({"field": "security_code", "message": "El código de seguridad es obligatorio"})
    if errors:
        raise ValidationError(errors=errors)

    company_doc = company_documents.find_company_by_nit(documents, nit)
    if company_doc is None:
        raise NotFoundError("No se encontró una empresa con este NIT", field="nit")

    company = db.query(Company).filter(Company.mongo_id == company_doc["_id"]).first()
    if company is None:
        logger.warning(f"Company document {company_doc['_id']} has no relational mirror")
        raise NotFoundError("No se encontró una empresa con este NIT", field="nit")

    if not _security_codes_match(security_code, company.security_code):
        raise AuthError("Código de seguridad incorrecto", field="security_code")

    user_id = principal.external_id
    if db.query(UserCompany.id).filter(
        UserCompany.user_id == user_id,
        UserCompany.company_id == company.id,
    ).first():
        raise DuplicateError("Ya perteneces a esta empresa", field="nit")

    check_cooldown(db, user_id, company.id)

    pending = _find_pending(db, user_id, company.id)
    if pending is not None:
        return _submitted(pending, company)

    join_request = JoinRequest(
        user_id=user_id,
        company_id=company.id,
        first_name=principal.first_name,
        last_name=principal.last_name,
        email=principal.email,
        phone=principal.phone,
        status=JoinRequestStatus.PENDING.value,
    )
    db.add(join_request)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent submission won the pending slot
        db.rollback()
        pending = _find_pending(db, user_id, company.id)
        if pending is None:
            raise
        return _submitted(pending, company)
    db.refresh(join_request)
    logger.info(f"Join request {join_request.id} created by {user_id} for company {company.id}")

    # The requester's own spelling of the company name, as typed in the form
    requested_name = (data.company_name or "").strip() or company.name
    contact = f" ({principal.email})" if principal.email else ""
    dispatch_admin_notifications(
        db,
        company.id,
        title="Nueva solicitud de unión",
        message=(
            f"{principal.full_name}{contact} solicitó unirse a la empresa {requested_name}. "
            f"Revisa y decide aprobar o rechazar la solicitud."
        ),
        category="join_request",
        created_by=user_id,
    )
    return _submitted(join_request, company)


def _submitted(join_request: JoinRequest, company: Company) -> dict:
    return {
        "status": join_request.status,
        "company_name": company.name,
        "join_request_id": join_request.id,
    }


def resolve_join_request(db: Session, principal: Principal, request_id: UUID, action: Optional[str]) -> JoinRequest:
    """Approve or reject a pending request. Only administrators of its company may."""
    join_request = db.query(JoinRequest).filter(JoinRequest.id == request_id).first()
    if join_request is None:
        raise NotFoundError("No se encontró la solicitud de unión", field="request_id")

    is_admin = db.query(UserCompany.id).filter(
        UserCompany.user_id == principal.external_id,
        UserCompany.company_id == join_request.company_id,
        UserCompany.role == MembershipRole.ADMINISTRATOR.value,
    ).first()
    if not is_admin:
        raise PermissionDeniedError("No tienes permisos para aprobar o rechazar esta solicitud")

    new_status = RESOLVE_ACTIONS.get((action or "").strip().lower())
    if new_status is None:
        raise ValidationError("La acción debe ser 'approve' o 'reject'", field="action")

    if join_request.status != JoinRequestStatus.PENDING.value:
        raise ConflictError(f"La solicitud ya fue resuelta ({join_request.status})", field="status")

    join_request.status = new_status
    join_request.resolved_by = principal.external_id
    join_request.resolved_at = utcnow()

    membership = None
    if new_status == JoinRequestStatus.APPROVED.value:
        membership = db.query(UserCompany).filter(
            UserCompany.user_id == join_request.user_id,
            UserCompany.company_id == join_request.company_id,
        ).first()
        if membership is None:
            membership = UserCompany(
                user_id=join_request.user_id,
                company_id=join_request.company_id,
                role=MembershipRole.EMPLOYEE.value,
                is_default=False,
            )
            db.add(membership)

    db.commit()
    db.refresh(join_request)
    logger.info(f"Join request {join_request.id} {new_status} by {principal.external_id}")

    if membership is not None:
        try:
            notify_memberships(
                db,
                join_request.company_id,
                [membership.id],
                title="Solicitud aprobada",
                message="Tu solicitud de unión fue aprobada.",
                category="join_request",
                created_by=principal.external_id,
            )
        except Exception as e:
            db.rollback()
            logger.error(f"Approval notification failed for request {join_request.id}: {e}")

    return join_request


def list_join_requests(db: Session, context: TenantContext, status: Optional[str] = None) -> List[JoinRequest]:
    if not context.is_admin:
        raise PermissionDeniedError("Solo los administradores pueden ver las solicitudes")
    query = db.query(JoinRequest).filter(JoinRequest.company_id == context.tenant_id)
    if status:
        query = query.filter(JoinRequest.status == status)
    return query.order_by(JoinRequest.created_at.desc()).all()
