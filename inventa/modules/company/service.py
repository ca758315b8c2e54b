"""
Tenant provisioning.

A company is written first to the document store (company + default store in
one multi-document transaction) and then mirrored into the relational store
step by step. Each relational step commits on its own and registers the
action that undoes it; if any step fails, the registered actions run newest
first and the caller gets a SecondaryWriteError.
"""
from typing import Dict, List, Optional
from urllib.parse import quote
from uuid import UUID, uuid4
import logging
import secrets

from pymongo.errors import PyMongoError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventa.common.saga import CompensationStack
from inventa.common.time_utils import utcnow
from inventa.common.validators import validate_company_nit, validate_email_address, format_colombia_phone
from inventa.core.config import settings
from inventa.core.exceptions import (
    AppError, ValidationError, DuplicateError, ConflictError, NotFoundError,
    PrimaryWriteError, SecondaryWriteError,
)
from inventa.database.documents import DocumentStore
from inventa.modules.auth.models import User, UserCompany, MembershipRole
from inventa.modules.auth.schemas import Principal
from inventa.modules.company import documents as company_documents
from inventa.modules.company.models import Company
from inventa.modules.company.schemas import TenantCreate
from inventa.modules.notifications.service import dispatch_admin_notifications
from inventa.modules.stores.models import Store
from inventa.modules.subscriptions.crud import build_default_subscription
from inventa.modules.subscriptions.models import Subscription

logger = logging.getLogger(__name__)

# No 0/O or 1/I/L, so codes survive being read aloud or copied by hand
SECURITY_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"

REQUIRED_FIELDS = {
    "company_name": "El nombre de la empresa es obligatorio",
    "nit": "El NIT es obligatorio",
    "company_email": "El correo de la empresa es obligatorio",
    "company_phone": "El teléfono de la empresa es obligatorio",
    "company_address": "La dirección de la empresa es obligatoria",
}


def generate_security_code(length: Optional[int] = None) -> str:
    length = length or settings.SECURITY_CODE_LENGTH
    return "".join(secrets.choice(SECURITY_CODE_ALPHABET) for _ in range(length))


def build_redirect_url(company_name: str) -> str:
    return f"/inventory/{quote(company_name, safe='')}/dashboard"


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_tenant_input(data: TenantCreate) -> Dict[str, str]:
    """
    Return the normalized input or raise ValidationError listing every problem.
    """
    values = {name: _clean(getattr(data, name)) for name in TenantCreate.model_fields}

    errors = [
        {"field": name, "message": message}
        for name, message in REQUIRED_FIELDS.items()
        if not values[name]
    ]
    if errors:
        raise ValidationError(errors=errors)

    if not validate_company_nit(values["nit"]):
        errors.append({"field": "nit", "message": "NIT inválido. Formato: 900123456-7"})
    if not validate_email_address(values["company_email"]):
        errors.append({"field": "company_email", "message": "Correo electrónico inválido"})
    if errors:
        raise ValidationError(errors=errors)

    values["company_phone"] = format_colombia_phone(values["company_phone"])
    values["store_name"] = values["store_name"] or settings.DEFAULT_STORE_NAME
    values["store_address"] = values["store_address"] or values["company_address"]
    values["store_phone"] = format_colombia_phone(values["store_phone"] or values["company_phone"])
    return values


DUPLICATE_NIT = {"field": "nit", "message": "Ya existe una empresa registrada con este NIT"}
DUPLICATE_NAME = {"field": "company_name", "message": "Ya existe una empresa registrada con este nombre"}


def find_company_duplicates(db: Session, nit: str, name: str) -> List[dict]:
    errors = []
    if db.query(Company.id).filter(Company.nit == nit).first():
        errors.append(dict(DUPLICATE_NIT))
    if db.query(Company.id).filter(func.lower(Company.name) == name.lower()).first():
        errors.append(dict(DUPLICATE_NAME))
    return errors


def check_company_uniqueness(db: Session, nit: str, name: str) -> None:
    """
    NIT and name are checked independently so that a row matching one and a
    different row matching the other both get reported.
    """
    errors = find_company_duplicates(db, nit, name)
    if errors:
        raise DuplicateError(errors=errors)


def _write_primary_records(documents: DocumentStore, company_doc: dict, store_doc: dict) -> tuple:
    """Insert company and default store in one document-store transaction."""
    try:
        with documents.transaction() as session:
            if company_documents.find_company_by_nit(documents, company_doc["nit"], session=session):
                raise DuplicateError("Ya existe una empresa registrada con este NIT", field="nit")

            company_mongo_id = company_documents.insert_company(documents, company_doc, session=session)
            if not company_mongo_id:
                raise PrimaryWriteError("Company insert returned no id")

            store_mongo_id = company_documents.insert_store(
                documents, {**store_doc, "company_id": company_mongo_id}, session=session
            )
            if not store_mongo_id:
                raise PrimaryWriteError("Store insert returned no id")
    except AppError as e:
        if isinstance(e, PrimaryWriteError):
            logger.error(f"Primary transaction aborted: {e}")
        raise
    except PyMongoError as e:
        error = PrimaryWriteError(f"Primary transaction failed: {e}")
        logger.error(str(error))
        raise error from e

    return company_mongo_id, store_mongo_id


def _delete_committed(db: Session, model, *criteria) -> None:
    try:
        db.query(model).filter(*criteria).delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise


def _insert_company_mirror(db: Session, tenant_id: UUID, company_mongo_id: str, values: dict,
                           security_code: str, principal: Principal):
    db.add(Company(
        id=tenant_id,
        mongo_id=company_mongo_id,
        name=values["company_name"],
        nit=values["nit"],
        security_code=security_code,
        email=values["company_email"],
        phone=values["company_phone"],
        address=values["company_address"],
        registration_status="active",
        dian_registered=False,
        created_by=principal.external_id,
    ))
    db.commit()
    return lambda: _delete_committed(db, Company, Company.id == tenant_id)


def _insert_default_membership(db: Session, tenant_id: UUID, principal: Principal):
    """
    Add the ADMINISTRATOR default membership and demote the user's other
    memberships in the same commit, so a user never has two defaults.
    """
    user_id = principal.external_id
    previous_defaults = [
        membership_id for (membership_id,) in db.query(UserCompany.id).filter(
            UserCompany.user_id == user_id,
            UserCompany.is_default.is_(True),
        )
    ]
    if previous_defaults:
        db.query(UserCompany).filter(UserCompany.id.in_(previous_defaults)).update(
            {UserCompany.is_default: False}, synchronize_session=False
        )

    membership = UserCompany(
        user_id=user_id,
        company_id=tenant_id,
        role=MembershipRole.ADMINISTRATOR.value,
        is_default=True,
    )
    db.add(membership)
    db.commit()
    membership_id = membership.id

    def undo():
        try:
            db.query(UserCompany).filter(UserCompany.id == membership_id).delete(synchronize_session=False)
            if previous_defaults:
                db.query(UserCompany).filter(UserCompany.id.in_(previous_defaults)).update(
                    {UserCompany.is_default: True}, synchronize_session=False
                )
            db.commit()
        except Exception:
            db.rollback()
            raise

    return undo


def _ensure_user_profile(db: Session, principal: Principal):
    """Create the local profile if missing; only a profile created here is undone."""
    existing = db.query(User.id).filter(User.external_id == principal.external_id).first()
    if existing:
        return None

    user = User(
        external_id=principal.external_id,
        first_name=principal.first_name,
        last_name=principal.last_name,
        email=principal.email,
        phone=principal.phone,
    )
    db.add(user)
    db.commit()
    user_id = user.id
    return lambda: _delete_committed(db, User, User.id == user_id)


def _insert_subscription_and_store(db: Session, tenant_id: UUID, store_id: UUID,
                                   store_mongo_id: str, values: dict, principal: Principal):
    db.add_all([
        build_default_subscription(tenant_id, principal.external_id),
        Store(
            id=store_id,
            tenant_id=tenant_id,
            name=values["store_name"],
            address=values["store_address"],
            phone=values["store_phone"],
            is_main=True,
            mongo_store_id=store_mongo_id,
            created_by=principal.external_id,
        ),
    ])
    db.commit()

    def undo():
        try:
            db.query(Store).filter(Store.id == store_id).delete(synchronize_session=False)
            db.query(Subscription).filter(Subscription.tenant_id == tenant_id).delete(synchronize_session=False)
            db.commit()
        except Exception:
            db.rollback()
            raise

    return undo


def _compensate(compensations: CompensationStack, tenant_id: UUID, step: str, cause: Exception) -> SecondaryWriteError:
    error = SecondaryWriteError(f"Provisioning step '{step}' failed for tenant {tenant_id}: {cause}")
    compensations.error_id = error.error_id
    logger.error(str(error))
    failed = compensations.run()
    if failed:
        logger.error(f"Provisioning of {tenant_id} left residue after compensation: {failed}")
    return error


def provision_tenant(db: Session, documents: DocumentStore, principal: Principal, data: TenantCreate) -> dict:
    """
    Create a company, its default store, the creator's ADMINISTRATOR
    membership, profile and default subscription.

    Raises:
        ValidationError: missing or malformed fields (nothing written).
        DuplicateError: NIT or name already registered (nothing written), also
            when a concurrent provisioning wins the mirror insert (compensated).
        PrimaryWriteError: the document-store transaction aborted (nothing written).
        SecondaryWriteError: a relational step failed; committed writes were compensated.
    """
    values = validate_tenant_input(data)
    check_company_uniqueness(db, values["nit"], values["company_name"])

    tenant_id = uuid4()
    store_id = uuid4()
    security_code = generate_security_code()
    now = utcnow()

    company_doc = {
        "name": values["company_name"],
        "nit": values["nit"],
        "address": values["company_address"],
        "phone": values["company_phone"],
        "email": values["company_email"],
        "security_code": security_code,
        "created_by": principal.external_id,
        "created_at": now,
        "metadata": {
            "secondary_id": str(tenant_id),
            "status": "active",
            "dian_registered": False,
        },
    }
    store_doc = {
        "name": values["store_name"],
        "address": values["store_address"],
        "phone": values["store_phone"],
        "created_by": principal.external_id,
        "created_at": now,
    }

    company_mongo_id, store_mongo_id = _write_primary_records(documents, company_doc, store_doc)
    logger.info(f"Primary records committed for '{values['company_name']}' ({company_mongo_id})")

    compensations = CompensationStack("provision_tenant")
    compensations.push("delete primary company", lambda: company_documents.delete_company(documents, company_mongo_id))
    compensations.push("delete primary store", lambda: company_documents.delete_store(documents, store_mongo_id))

    steps = (
        ("insert company mirror",
         lambda: _insert_company_mirror(db, tenant_id, company_mongo_id, values, security_code, principal)),
        ("insert default membership",
         lambda: _insert_default_membership(db, tenant_id, principal)),
        ("ensure user profile",
         lambda: _ensure_user_profile(db, principal)),
        ("insert subscription and store mirror",
         lambda: _insert_subscription_and_store(db, tenant_id, store_id, store_mongo_id, values, principal)),
    )

    current = None
    try:
        for description, step in steps:
            current = description
            undo = step()
            if undo is not None:
                compensations.push(description, undo)
    except IntegrityError as e:
        db.rollback()
        if current != "insert company mirror":
            raise _compensate(compensations, tenant_id, current, e) from e
        # A concurrent provisioning took the NIT or name after the uniqueness check
        logger.warning(f"Company mirror for {tenant_id} lost a uniqueness race: {e.orig}")
        failed = compensations.run()
        if failed:
            logger.error(f"Provisioning of {tenant_id} left residue after compensation: {failed}")
        errors = find_company_duplicates(db, values["nit"], values["company_name"])
        if errors:
            raise DuplicateError(errors=errors) from e
        raise ConflictError("La empresa se está registrando en otra solicitud", field="company_name") from e
    except Exception as e:
        db.rollback()
        raise _compensate(compensations, tenant_id, current, e) from e

    compensations.clear()
    logger.info(f"Tenant {tenant_id} provisioned by {principal.external_id}")

    dispatch_admin_notifications(
        db,
        tenant_id,
        title="Empresa creada",
        message=f"La empresa {values['company_name']} fue creada por {principal.full_name}.",
        category="company",
        created_by=principal.external_id,
    )

    return {
        "tenant_id": tenant_id,
        "store_id": store_id,
        "external_tenant_id": company_mongo_id,
        "external_store_id": store_mongo_id,
        "company_name": values["company_name"],
        "redirect_url": build_redirect_url(values["company_name"]),
    }


def list_my_companies(db: Session, principal: Principal) -> List[dict]:
    rows = db.query(UserCompany, Company.name).join(Company, Company.id == UserCompany.company_id).filter(
        UserCompany.user_id == principal.external_id
    ).order_by(UserCompany.is_default.desc(), Company.name).all()
    return [_membership_dict(membership, name) for membership, name in rows]


def get_membership(db: Session, principal: Principal, tenant_id: UUID) -> dict:
    row = db.query(UserCompany, Company.name).join(Company, Company.id == UserCompany.company_id).filter(
        UserCompany.user_id == principal.external_id,
        UserCompany.company_id == tenant_id,
    ).first()
    if row is None:
        raise NotFoundError("No perteneces a esta empresa", field="tenant_id")
    return _membership_dict(*row)


def set_default_company(db: Session, principal: Principal, tenant_id: UUID) -> dict:
    membership = db.query(UserCompany).filter(
        UserCompany.user_id == principal.external_id,
        UserCompany.company_id == tenant_id,
    ).first()
    if membership is None:
        raise NotFoundError("No perteneces a esta empresa", field="tenant_id")

    if not membership.is_default:
        db.query(UserCompany).filter(
            UserCompany.user_id == principal.external_id,
            UserCompany.id != membership.id,
            UserCompany.is_default.is_(True),
        ).update({UserCompany.is_default: False}, synchronize_session=False)
        membership.is_default = True
        db.commit()
        db.refresh(membership)

    return get_membership(db, principal, tenant_id)


def _membership_dict(membership: UserCompany, company_name: str) -> dict:
    return {
        "id": membership.id,
        "company_id": membership.company_id,
        "company_name": company_name,
        "role": membership.role,
        "is_default": membership.is_default,
    }
