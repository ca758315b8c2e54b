"""
Pytest fixtures for the Inventa API.

The relational store is an in-memory SQLite database (SAVEPOINT enabled, one
shared connection); the document store is an in-memory transactional fake
with failure injection. HTTP requests reuse the test's session.
"""
import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"
os.environ["MONGODB_DB"] = "inventa_test"
os.environ["NOTIFICATIONS_ASYNC"] = "false"

from collections import defaultdict
from contextlib import contextmanager
from copy import deepcopy
from decimal import Decimal

import jwt
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from inventa.core.config import settings
from inventa.database.database import Base, get_db
from inventa.database.documents import DocumentStore, get_document_store
from inventa.main import app
from inventa.modules.auth.models import UserCompany
from inventa.modules.auth.schemas import Principal, TenantContext
from inventa.modules.company.schemas import TenantCreate
from inventa.modules.company.service import provision_tenant
from inventa.modules.inventory.schemas import MovementCreate
from inventa.modules.inventory.service import InventoryService
from inventa.modules.products.schemas import ProductCreate
from inventa.modules.products.service import create_product


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    # Let SQLAlchemy emit BEGIN itself so SAVEPOINT works with pysqlite
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# ===== Document store fake =====

class FakeDocumentSession:
    def __init__(self):
        self.inserts = []


class InMemoryDocumentStore(DocumentStore):
    """
    Transactional stand-in for the MongoDB wrapper.

    ``fail_on[(operation, collection)] = exc`` raises exc on that call,
    ``none_id_for`` makes inserts into those collections return no id and
    ``commit_error`` makes the next transaction commit fail.
    """

    def __init__(self):
        self.collections = defaultdict(dict)
        self.fail_on = {}
        self.none_id_for = set()
        self.commit_error = None

    def _maybe_fail(self, operation, collection):
        error = self.fail_on.get((operation, collection))
        if error is not None:
            raise error

    @contextmanager
    def transaction(self):
        session = FakeDocumentSession()
        yield session
        if self.commit_error is not None:
            error, self.commit_error = self.commit_error, None
            raise error
        for collection, document in session.inserts:
            self.collections[collection][document["_id"]] = document

    def insert_one(self, collection, document, session=None):
        self._maybe_fail("insert", collection)
        if collection in self.none_id_for:
            return None
        document = deepcopy(document)
        document["_id"] = str(ObjectId())
        if session is not None:
            session.inserts.append((collection, document))
        else:
            self.collections[collection][document["_id"]] = document
        return document["_id"]

    def _visible(self, collection, session):
        documents = list(self.collections[collection].values())
        if session is not None:
            documents += [doc for name, doc in session.inserts if name == collection]
        return documents

    def find_one(self, collection, query, session=None):
        self._maybe_fail("find", collection)
        for document in self._visible(collection, session):
            if all(document.get(key) == value for key, value in query.items()):
                return deepcopy(document)
        return None

    def delete_one(self, collection, document_id, session=None):
        self._maybe_fail("delete", collection)
        return 1 if self.collections[collection].pop(str(document_id), None) else 0

    def count(self, collection):
        return len(self.collections[collection])


# ===== Fixtures =====

@pytest.fixture(scope="session")
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(schema):
    session = TestingSessionLocal()
    yield session
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture
def client(db_session, document_store):
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_document_store] = lambda: document_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_token(sub, given_name="Ana", family_name="Gómez", email=None, phone_number=None, **claims):
    payload = {
        "sub": sub,
        "given_name": given_name,
        "family_name": family_name,
        "email": email or f"{sub}@example.com",
        "phone_number": phone_number,
        **claims,
    }
    return jwt.encode(payload, settings.IDP_JWT_SECRET, algorithm=settings.IDP_JWT_ALGORITHM)


def auth_headers(sub, tenant_id=None, **claims):
    headers = {"Authorization": f"Bearer {make_token(sub, **claims)}"}
    if tenant_id is not None:
        headers["X-Company-ID"] = str(tenant_id)
    return headers


def company_payload(**overrides):
    payload = {
        "company_name": "Acme SAS",
        "nit": "900123456-7",
        "company_email": "a@acme.test",
        "company_phone": "3001234567",
        "company_address": "Calle 10 # 5-20, Bogotá",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def principal():
    return Principal(external_id="user_admin", first_name="Ana", last_name="Gómez", email="ana@acme.test")


def provision(db_session, document_store, owner, **overrides):
    """Provision a company for owner and return ids, context and request headers."""
    result = provision_tenant(db_session, document_store, owner, TenantCreate(**company_payload(**overrides)))
    membership = db_session.query(UserCompany).filter(
        UserCompany.user_id == owner.external_id,
        UserCompany.company_id == result["tenant_id"],
    ).one()
    context = TenantContext(
        principal=owner,
        tenant_id=result["tenant_id"],
        role=membership.role,
        membership_id=membership.id,
    )
    return {
        **result,
        "context": context,
        "headers": auth_headers(owner.external_id, result["tenant_id"]),
    }


@pytest.fixture
def tenant(db_session, document_store, principal):
    """A provisioned company whose creator is its ADMINISTRATOR."""
    return provision(db_session, document_store, principal)


@pytest.fixture
def other_tenant(db_session, document_store):
    """A second, unrelated company."""
    owner = Principal(external_id="user_other", first_name="Luis", last_name="Díaz")
    return provision(db_session, document_store, owner, company_name="Beta SAS", nit="800111222-3")


@pytest.fixture
def product(db_session, tenant):
    return create_product(db_session, tenant["context"], ProductCreate(
        name="Arroz Diana 500g",
        sku="ARZ-500",
        price=Decimal("1000"),
        cost=Decimal("700"),
        min_stock=2,
    ))


def add_stock(db_session, context, product_id, store_id, quantity):
    return InventoryService(db_session).record_movement(context, MovementCreate(
        type="ENTRADA", product_id=product_id, store_id=store_id, quantity=quantity,
    ))