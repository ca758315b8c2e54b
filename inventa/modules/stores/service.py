from typing import List
import logging

from pymongo.errors import PyMongoError
from sqlalchemy import func
from sqlalchemy.orm import Session

from inventa.common.saga import CompensationStack
from inventa.common.time_utils import utcnow
from inventa.common.validators import format_colombia_phone
from inventa.core.exceptions import (
    ValidationError, DuplicateError, NotFoundError, PermissionDeniedError,
    PrimaryWriteError, SecondaryWriteError,
)
from inventa.database.documents import DocumentStore
from inventa.modules.auth.schemas import TenantContext
from inventa.modules.company import documents as company_documents
from inventa.modules.company.models import Company
from inventa.modules.stores.models import Store
from inventa.modules.stores.schemas import StoreCreate
from inventa.modules.subscriptions.crud import get_active_subscription

logger = logging.getLogger(__name__)


def create_store(db: Session, documents: DocumentStore, context: TenantContext, data: StoreCreate) -> Store:
    """
    Crear una tienda adicional.

    The master record goes to the document store first; if the relational
    mirror cannot be written the master record is deleted again.
    """
    if not context.is_admin:
        raise PermissionDeniedError("Solo los administradores pueden crear tiendas")

    name = (data.name or "").strip()
    if not name:
        raise ValidationError("El nombre de la tienda es obligatorio", field="name")

    company = db.query(Company).filter(Company.id == context.tenant_id).first()
    if company is None:
        raise NotFoundError("Empresa no encontrada", field="X-Company-ID")

    if db.query(Store.id).filter(
        Store.tenant_id == context.tenant_id,
        func.lower(Store.name) == name.lower(),
    ).first():
        raise DuplicateError("Ya existe una tienda con este nombre", field="name")

    subscription = get_active_subscription(db, context.tenant_id)
    if subscription is None:
        raise PermissionDeniedError("La empresa no tiene una suscripción activa")
    store_count = db.query(func.count(Store.id)).filter(Store.tenant_id == context.tenant_id).scalar()
    if store_count >= subscription.store_limit:
        raise PermissionDeniedError(
            f"Tu plan permite máximo {subscription.store_limit} tiendas", field="store_limit"
        )

    address = (data.address or "").strip() or company.address
    phone = format_colombia_phone((data.phone or "").strip() or company.phone)

    try:
        with documents.transaction() as session:
            store_mongo_id = company_documents.insert_store(documents, {
                "company_id": company.mongo_id,
                "name": name,
                "address": address,
                "phone": phone,
                "created_by": context.user_id,
                "created_at": utcnow(),
            }, session=session)
            if not store_mongo_id:
                raise PrimaryWriteError("Store insert returned no id")
    except PyMongoError as e:
        error = PrimaryWriteError(f"Store insert failed for tenant {context.tenant_id}: {e}")
        logger.error(str(error))
        raise error from e

    compensations = CompensationStack("create_store")
    compensations.push("delete primary store", lambda: company_documents.delete_store(documents, store_mongo_id))

    try:
        store = Store(
            tenant_id=context.tenant_id,
            name=name,
            address=address,
            phone=phone,
            is_main=False,
            mongo_store_id=store_mongo_id,
            created_by=context.user_id,
        )
        db.add(store)
        db.commit()
        db.refresh(store)
    except Exception as e:
        db.rollback()
        error = SecondaryWriteError(f"Store mirror failed for tenant {context.tenant_id}: {e}")
        compensations.error_id = error.error_id
        logger.error(str(error))
        compensations.run()
        raise error from e

    compensations.clear()
    return store


def list_stores(db: Session, context: TenantContext) -> List[Store]:
    return db.query(Store).filter(Store.tenant_id == context.tenant_id).order_by(
        Store.is_main.desc(), Store.name
    ).all()


def get_store(db: Session, context: TenantContext, store_id, field: str = "store_id") -> Store:
    store = db.query(Store).filter(Store.id == store_id, Store.tenant_id == context.tenant_id).first()
    if store is None:
        raise NotFoundError("Tienda no encontrada", field=field)
    return store
