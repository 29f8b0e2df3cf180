"""Service layer for the attempt lifecycle: start, answer, submit, review."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession, joinedload

from exam_api.database import transaction
from exam_api.errors import Conflict, Expired, Forbidden, NotAvailable, NotFound
from exam_api.models.attempts import AnswerPatch
from exam_api.models.db.attempt import Attempt, AttemptAnswer, AttemptResult, AttemptStatus
from exam_api.models.db.catalog import TestVisibility
from exam_api.services.catalog_service import Catalog, CatalogTest
from exam_api.services.result_service import (
    compute_attempt_score,
    ensure_result,
    upsert_result,
)
from exam_api.services.scoring_service import build_scoring_items, score_attempt
from exam_api.utils.time_utils import ensure_utc, isoformat, utc_now

logger = logging.getLogger(__name__)


@dataclass
class Submission:
    attempt: Attempt
    result: AttemptResult
    transitioned: bool  # False when the attempt was already submitted


def attempt_to_dict(attempt: Attempt) -> dict[str, Any]:
    """Serialize attempt for API responses."""
    return {
        "id": attempt.id,
        "testId": attempt.test_id,
        "studentId": attempt.student_id,
        "status": attempt.status,
        "startedAt": isoformat(attempt.started_at),
        "endsAt": isoformat(attempt.ends_at),
        "submittedAt": isoformat(attempt.submitted_at),
        "lastSeenAt": isoformat(attempt.last_seen_at),
    }


def answer_to_dict(answer: AttemptAnswer) -> dict[str, Any]:
    """Serialize saved answer for API responses."""
    return {
        "attemptId": answer.attempt_id,
        "questionId": answer.question_id,
        "response": answer.response,
        "visited": answer.visited,
        "isMarked": answer.is_marked,
        "timeSpentMs": answer.time_spent_ms,
        "updatedAt": isoformat(answer.updated_at),
    }


def _check_available(catalog: Catalog, test: CatalogTest, student_id: str) -> None:
    """Raise NotAvailable unless the student may start this test."""
    if not test.is_published:
        raise NotAvailable()
    if test.visibility == TestVisibility.PUBLIC.value:
        return
    if test.visibility == TestVisibility.GROUP_ONLY.value:
        if catalog.has_group_assignment(student_id, test.id):
            return
    # PRIVATE tests are never started from here
    raise NotAvailable()


def _find_in_progress(db: DBSession, test_id: str, student_id: str) -> Attempt | None:
    return db.execute(
        select(Attempt).where(
            Attempt.test_id == test_id,
            Attempt.student_id == student_id,
            Attempt.status == AttemptStatus.IN_PROGRESS.value,
        )
    ).scalars().first()


def _load_owned_attempt(db: DBSession, attempt_id: str, student_id: str) -> Attempt:
    attempt = db.get(Attempt, attempt_id)
    if attempt is None:
        raise NotFound()
    if attempt.student_id != student_id:
        raise Forbidden()
    return attempt


def _get_answer(db: DBSession, attempt_id: str, question_id: str) -> AttemptAnswer | None:
    return db.execute(
        select(AttemptAnswer).where(
            AttemptAnswer.attempt_id == attempt_id,
            AttemptAnswer.question_id == question_id,
        )
    ).scalar_one_or_none()


def start_attempt(
    db: DBSession,
    catalog: Catalog,
    test_id: str,
    student_id: str,
) -> Attempt:
    """
    Start an attempt, or return the student's attempt already in progress.

    Raises:
        NotFound: test does not exist.
        NotAvailable: test is unpublished or not visible to the student.
    """
    test = catalog.get_test_with_questions(test_id)
    if test is None:
        raise NotFound()
    _check_available(catalog, test, student_id)

    existing = _find_in_progress(db, test_id, student_id)
    if existing:
        logger.debug("Reusing attempt %s for test %s", existing.id, test_id)
        return existing

    now = utc_now()
    attempt = Attempt(
        test_id=test_id,
        student_id=student_id,
        status=AttemptStatus.IN_PROGRESS.value,
        started_at=now,
        ends_at=now + timedelta(seconds=test.duration_sec),
        last_seen_at=now,
    )
    db.add(attempt)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent start created it first
        db.rollback()
        existing = _find_in_progress(db, test_id, student_id)
        if existing is None:
            raise
        return existing

    db.refresh(attempt)
    logger.info("Started attempt %s (test %s, student %s)", attempt.id, test_id, student_id)
    return attempt


def _apply_patch(answer: AttemptAnswer, patch: AnswerPatch) -> None:
    if patch.has_response:
        answer.response = patch.response
    if patch.visited is not None:
        answer.visited = patch.visited
    if patch.isMarked is not None:
        answer.is_marked = patch.isMarked
    if patch.timeSpentMs is not None:
        answer.time_spent_ms = patch.timeSpentMs


def _touch_live_attempt(db: DBSession, attempt_id: str, now: datetime) -> bool:
    """Bump last_seen_at only while the attempt is still in progress."""
    result = db.execute(
        update(Attempt)
        .where(
            Attempt.id == attempt_id,
            Attempt.status == AttemptStatus.IN_PROGRESS.value,
        )
        .values(last_seen_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def upsert_answer(
    db: DBSession,
    catalog: Catalog,
    attempt_id: str,
    student_id: str,
    question_id: str,
    patch: AnswerPatch,
) -> AttemptAnswer:
    """
    Create or merge-patch the saved state of one question.

    Raises:
        NotFound: attempt missing, or question not part of the attempt's test.
        Forbidden: attempt belongs to another student.
        Conflict: attempt is already submitted.
        Expired: the attempt's deadline has passed.
    """
    attempt = _load_owned_attempt(db, attempt_id, student_id)
    if attempt.is_submitted:
        raise Conflict("ATTEMPT_LOCKED")
    now = utc_now()
    if now > ensure_utc(attempt.ends_at):
        raise Expired()
    if not catalog.test_has_question(attempt.test_id, question_id):
        raise NotFound("QUESTION_NOT_IN_TEST")

    for retry in (False, True):
        try:
            with transaction(db):
                if not _touch_live_attempt(db, attempt_id, now):
                    raise Conflict("ATTEMPT_LOCKED")
                answer = _get_answer(db, attempt_id, question_id)
                if answer is None:
                    answer = AttemptAnswer(
                        attempt_id=attempt_id,
                        question_id=question_id,
                        visited=True,
                        is_marked=False,
                        time_spent_ms=0,
                    )
                    db.add(answer)
                _apply_patch(answer, patch)
                answer.updated_at = now
            break
        except IntegrityError:
            # First write for this question raced another one; patch that row
            if retry:
                raise
            logger.debug("Retrying answer upsert for %s/%s", attempt_id, question_id)

    db.refresh(answer)
    return answer


def submit_attempt(
    db: DBSession,
    catalog: Catalog,
    attempt_id: str,
    student_id: str,
) -> Submission:
    """
    Submit an attempt and store its result. Safe to call repeatedly.

    The status flip is a conditional update guarded by the current status,
    committed together with the result row, so only one concurrent caller
    performs the transition. Every other caller gets the stored result.
    """
    attempt = _load_owned_attempt(db, attempt_id, student_id)
    if attempt.is_submitted:
        return Submission(attempt, ensure_result(db, catalog, attempt), transitioned=False)

    now = utc_now()
    with transaction(db):
        flipped = db.execute(
            update(Attempt)
            .where(
                Attempt.id == attempt_id,
                Attempt.status == AttemptStatus.IN_PROGRESS.value,
            )
            .values(status=AttemptStatus.SUBMITTED.value, submitted_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount == 1
        if flipped:
            summary = compute_attempt_score(db, catalog, attempt)
            upsert_result(db, attempt_id, summary)

    db.refresh(attempt)
    if flipped:
        logger.info("Submitted attempt %s", attempt_id)
    else:
        logger.info("Attempt %s was already submitted by a concurrent request", attempt_id)
    return Submission(attempt, ensure_result(db, catalog, attempt), transitioned=flipped)


def get_attempt_overview(
    db: DBSession,
    catalog: Catalog,
    attempt_id: str,
    student_id: str,
) -> dict[str, Any]:
    """Attempt with its ordered questions and saved state. No answer keys."""
    attempt = _load_owned_attempt(db, attempt_id, student_id)
    test = catalog.get_test_with_questions(attempt.test_id)
    if test is None:
        raise NotFound()

    answers = {answer.question_id: answer for answer in attempt.answers}
    questions = []
    for q in test.questions:
        answer = answers.get(q.question_id)
        response = answer.response if answer else None
        questions.append(
            {
                "testQuestionId": q.test_question_id,
                "questionId": q.question_id,
                "sectionId": q.section_id,
                "sortOrder": q.sort_order,
                "type": q.type,
                "promptText": q.prompt_text,
                "promptImageUrl": q.prompt_image_url,
                "options": list(q.options),
                "marks": q.marks,
                "negative": q.negative_marks,
                "visited": answer.visited if answer else False,
                "isMarked": answer.is_marked if answer else False,
                "hasResponse": response is not None,
                "response": response,
                "timeSpentMs": answer.time_spent_ms if answer else 0,
            }
        )

    return {
        "attempt": {
            **attempt_to_dict(attempt),
            "test": {
                "id": test.id,
                "title": test.title,
                "durationSec": test.duration_sec,
                "sections": [
                    {"id": s.id, "name": s.name, "sortOrder": s.sort_order}
                    for s in test.sections
                ],
                "questions": questions,
            },
        }
    }


def get_analysis(
    db: DBSession,
    catalog: Catalog,
    attempt_id: str,
    student_id: str,
) -> dict[str, Any]:
    """
    Full review of a submitted attempt, recomputed from saved answers.
    Stores the result if the attempt predates stored results.

    Raises:
        Conflict: attempt is not submitted yet.
    """
    attempt = _load_owned_attempt(db, attempt_id, student_id)
    if not attempt.is_submitted:
        raise Conflict("ATTEMPT_NOT_SUBMITTED")

    test = catalog.get_test_with_questions(attempt.test_id)
    if test is None:
        raise NotFound()
    summary = score_attempt(build_scoring_items(test.questions, attempt.answers))
    ensure_result(db, catalog, attempt, summary)

    return {
        "attempt": {
            **attempt_to_dict(attempt),
            "testTitle": test.title,
        },
        "summary": summary.totals_dict(),
        "subjectBreakup": [item.to_dict() for item in summary.subject_breakup],
        "perQuestion": [outcome.to_dict() for outcome in summary.questions],
    }


def list_student_attempts(
    db: DBSession,
    student_id: str,
    test_id: str | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Attempt]:
    """
    Get attempts for a student, optionally filtered by test_id and status.
    """
    query = (
        select(Attempt)
        .options(joinedload(Attempt.result))
        .where(Attempt.student_id == student_id)
    )

    if test_id:
        query = query.where(Attempt.test_id == test_id)
    if status:
        query = query.where(Attempt.status == status)

    query = query.order_by(Attempt.started_at.desc()).limit(limit).offset(offset)

    return list(db.execute(query).scalars().all())
