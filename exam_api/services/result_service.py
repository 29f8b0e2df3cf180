"""Service layer for materialized attempt results."""
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from exam_api.models.db.attempt import Attempt, AttemptAnswer, AttemptResult
from exam_api.services.catalog_service import Catalog
from exam_api.services.scoring_service import ScoreSummary, build_scoring_items, score_attempt
from exam_api.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


def get_result(db: DBSession, attempt_id: str) -> AttemptResult | None:
    """Get stored result for an attempt."""
    return db.get(AttemptResult, attempt_id)


def compute_attempt_score(db: DBSession, catalog: Catalog, attempt: Attempt) -> ScoreSummary:
    """Recompute the score of an attempt from its saved answers and the catalog."""
    test = catalog.get_test_with_questions(attempt.test_id)
    questions = test.questions if test else ()
    answers = db.execute(
        select(AttemptAnswer).where(AttemptAnswer.attempt_id == attempt.id)
    ).scalars().all()
    return score_attempt(build_scoring_items(questions, answers))


def upsert_result(db: DBSession, attempt_id: str, summary: ScoreSummary) -> AttemptResult:
    """
    Create or replace the result row for an attempt.
    Does not commit; the caller owns the transaction.
    """
    result = db.get(AttemptResult, attempt_id)
    if result is None:
        result = AttemptResult(attempt_id=attempt_id)
        db.add(result)

    result.score = summary.score
    result.max_score = summary.max_score
    result.correct_count = summary.correct_count
    result.wrong_count = summary.wrong_count
    result.unattempted_count = summary.unattempted_count
    result.accuracy = summary.accuracy
    result.total_time_ms = summary.total_time_ms
    result.subject_breakup = [item.to_dict() for item in summary.subject_breakup]
    result.computed_at = utc_now()
    db.flush()
    return result


def ensure_result(
    db: DBSession,
    catalog: Catalog,
    attempt: Attempt,
    summary: ScoreSummary | None = None,
) -> AttemptResult:
    """
    Make sure a submitted attempt has a stored result.

    Recomputes the score (unless one is passed in) and inserts the row when
    it is missing. An existing row is left as is. Commits.
    """
    existing = get_result(db, attempt.id)
    if existing is not None:
        return existing

    if summary is None:
        summary = compute_attempt_score(db, catalog, attempt)
    try:
        result = upsert_result(db, attempt.id, summary)
        db.commit()
    except IntegrityError:
        # Another request stored it first
        db.rollback()
        result = get_result(db, attempt.id)
        if result is None:
            raise
        return result

    logger.info("Stored missing result for attempt %s", attempt.id)
    db.refresh(result)
    return result


def result_to_dict(result: AttemptResult) -> dict[str, Any]:
    """Serialize a stored result for API responses."""
    return {
        "attemptId": result.attempt_id,
        "score": result.score,
        "maxScore": result.max_score,
        "correctCount": result.correct_count,
        "wrongCount": result.wrong_count,
        "unattemptedCount": result.unattempted_count,
        "attemptedCount": result.correct_count + result.wrong_count,
        "accuracy": result.accuracy,
        "totalTimeMs": result.total_time_ms,
        "subjectBreakup": result.subject_breakup,
    }
