"""Catalog dependency for FastAPI."""
from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session as DbSession

from exam_api.database import get_db
from exam_api.services.catalog_service import Catalog, SqlCatalog


def get_catalog(db: Annotated[DbSession, Depends(get_db)]) -> Catalog:
    """Read-only catalog bound to the request's database session."""
    return SqlCatalog(db)
