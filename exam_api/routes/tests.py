"""Test browsing and attempt start endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session as DbSession

from exam_api.database import get_db
from exam_api.dependencies.auth import get_current_user, require_student
from exam_api.dependencies.catalog import get_catalog
from exam_api.models.catalog import TestSummary
from exam_api.models.db.user import User
from exam_api.services import attempt_service, catalog_service
from exam_api.services.catalog_service import Catalog
from exam_api.utils import validate_id

router = APIRouter(prefix="/api/tests", tags=["tests"])


@router.get("", response_model=list[TestSummary])
def list_tests(
    current_user: User = Depends(get_current_user),
    db: DbSession = Depends(get_db),
) -> list[TestSummary]:
    """List published public tests."""
    return [
        TestSummary(
            id=test.id,
            title=test.title,
            description=test.description,
            durationSec=test.duration_sec,
            createdAt=test.created_at,
        )
        for test in catalog_service.list_available_tests(db)
    ]


@router.post("/{test_id}/attempts/start")
def start_attempt(
    test_id: str,
    current_user: User = Depends(require_student),
    db: DbSession = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
) -> dict[str, object]:
    """Start an attempt (returns the attempt already in progress, if any)."""
    test_id = validate_id("testId", test_id)
    attempt = attempt_service.start_attempt(db, catalog, test_id, current_user.id)
    return {"attempt": attempt_service.attempt_to_dict(attempt)}
