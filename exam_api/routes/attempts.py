"""Attempt lifecycle endpoints: answers, submission, overview and analysis."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session as DbSession

from exam_api.database import get_db
from exam_api.dependencies.auth import require_student
from exam_api.dependencies.catalog import get_catalog
from exam_api.models import AnswerPatch, AnswerResponse, AttemptHistoryItem, SubmitResponse
from exam_api.models.db.attempt import AttemptStatus
from exam_api.models.db.user import User
from exam_api.services import attempt_service
from exam_api.services.catalog_service import Catalog
from exam_api.services.result_service import result_to_dict
from exam_api.utils import validate_id

router = APIRouter(prefix="/api/attempts", tags=["attempts"])


@router.get("", response_model=list[AttemptHistoryItem])
def list_my_attempts(
    test_id: str | None = Query(None, alias="testId"),
    status: AttemptStatus | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(require_student),
    db: DbSession = Depends(get_db),
) -> list[dict[str, object]]:
    """List the current student's attempts, newest first."""
    if test_id:
        test_id = validate_id("testId", test_id)
    attempts = attempt_service.list_student_attempts(
        db,
        current_user.id,
        test_id=test_id,
        status=status.value if status else None,
        limit=limit,
        offset=offset,
    )
    return [
        {
            **attempt_service.attempt_to_dict(attempt),
            "result": result_to_dict(attempt.result) if attempt.result else None,
        }
        for attempt in attempts
    ]


@router.put("/{attempt_id}/answers/{question_id}", response_model=AnswerResponse)
def upsert_answer(
    attempt_id: str,
    question_id: str,
    payload: AnswerPatch,
    current_user: User = Depends(require_student),
    db: DbSession = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
) -> dict[str, object]:
    """Save a question's response, visit/mark flags or time spent."""
    attempt_id = validate_id("attemptId", attempt_id)
    question_id = validate_id("questionId", question_id)
    answer = attempt_service.upsert_answer(
        db, catalog, attempt_id, current_user.id, question_id, payload
    )
    return {"answer": attempt_service.answer_to_dict(answer)}


@router.post("/{attempt_id}/submit", response_model=SubmitResponse)
def submit_attempt(
    attempt_id: str,
    current_user: User = Depends(require_student),
    db: DbSession = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
) -> dict[str, object]:
    """Submit an attempt. Repeated calls return the stored result."""
    attempt_id = validate_id("attemptId", attempt_id)
    submission = attempt_service.submit_attempt(db, catalog, attempt_id, current_user.id)
    return {
        "status": "submitted" if submission.transitioned else "already_submitted",
        "attempt": attempt_service.attempt_to_dict(submission.attempt),
        "result": result_to_dict(submission.result),
    }


@router.get("/{attempt_id}/overview")
def get_overview(
    attempt_id: str,
    current_user: User = Depends(require_student),
    db: DbSession = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
) -> dict[str, object]:
    """Attempt with ordered questions and saved state, for the exam screen."""
    attempt_id = validate_id("attemptId", attempt_id)
    return attempt_service.get_attempt_overview(db, catalog, attempt_id, current_user.id)


@router.get("/{attempt_id}/analysis")
def get_analysis(
    attempt_id: str,
    current_user: User = Depends(require_student),
    db: DbSession = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
) -> dict[str, object]:
    """Score summary, subject breakup and per-question review of a submitted attempt."""
    attempt_id = validate_id("attemptId", attempt_id)
    return attempt_service.get_analysis(db, catalog, attempt_id, current_user.id)
