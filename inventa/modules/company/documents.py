"""
Company and store master records in the document store.
"""
from typing import Optional, Dict, Any

from inventa.database.documents import DocumentStore

COMPANIES = "companies"
STORES = "stores"


def find_company_by_nit(documents: DocumentStore, nit: str, session=None) -> Optional[Dict[str, Any]]:
    return documents.find_one(COMPANIES, {"nit": nit}, session=session)


def insert_company(documents: DocumentStore, document: Dict[str, Any], session=None) -> Optional[str]:
    # insert_one adds _id to the dict it receives
    return documents.insert_one(COMPANIES, dict(document), session=session)


def insert_store(documents: DocumentStore, document: Dict[str, Any], session=None) -> Optional[str]:
    return documents.insert_one(STORES, dict(document), session=session)


def delete_company(documents: DocumentStore, company_id: str) -> int:
    return documents.delete_one(COMPANIES, company_id)


def delete_store(documents: DocumentStore, store_id: str) -> int:
    return documents.delete_one(STORES, store_id)
