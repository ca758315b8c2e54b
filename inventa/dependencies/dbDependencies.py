from fastapi import Depends
from sqlalchemy.orm import Session
from typing import Annotated
from inventa.database.database import get_db
from inventa.database.documents import DocumentStore, get_document_store

# Relational store session, one per request
db_dependency = Annotated[Session, Depends(get_db)]

# Document store; resolving it fails fast when MONGODB_DB is missing
document_store_dependency = Annotated[DocumentStore, Depends(get_document_store)]
