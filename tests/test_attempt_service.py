import threading
from datetime import timedelta

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from exam_api.database import Base
from exam_api.errors import Conflict, Expired, Forbidden, NotAvailable, NotFound
from exam_api.models.attempts import AnswerPatch
from exam_api.models.catalog import CatalogImport
from exam_api.models.db.attempt import Attempt, AttemptAnswer, AttemptResult, AttemptStatus
from exam_api.models.db.user import UserRole
from exam_api.services import attempt_service
from exam_api.services.catalog_service import SqlCatalog, import_catalog
from exam_api.services.result_service import get_result, result_to_dict
from exam_api.utils.time_utils import ensure_utc

from conftest import CATALOG, make_user


def save(db, catalog, attempt, student, question_id, **fields):
    patch = AnswerPatch.model_validate(fields)
    return attempt_service.upsert_answer(db, catalog, attempt.id, student.id, question_id, patch)


def test_start_attempt_sets_deadline(db, catalog, seeded, clock) -> None:
    alice = seeded["alice"]

    attempt = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)

    assert attempt.status == AttemptStatus.IN_PROGRESS.value
    assert ensure_utc(attempt.started_at) == clock.now
    assert ensure_utc(attempt.ends_at) == clock.now + timedelta(seconds=600)
    assert attempt.submitted_at is None


def test_start_attempt_returns_existing_in_progress(db, catalog, seeded, clock) -> None:
    alice = seeded["alice"]
    first = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)
    clock.advance(minutes=2)

    second = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)

    assert second.id == first.id
    assert ensure_utc(second.ends_at) == ensure_utc(first.ends_at)
    count = len(db.execute(select(Attempt)).scalars().all())
    assert count == 1


def test_start_attempt_after_submit_creates_new(db, catalog, seeded, clock) -> None:
    alice = seeded["alice"]
    first = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)
    attempt_service.submit_attempt(db, catalog, first.id, alice.id)

    second = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)

    assert second.id != first.id
    assert second.status == AttemptStatus.IN_PROGRESS.value


@pytest.mark.parametrize(
    "test_id, error",
    [
        ("missing", NotFound),
        ("draft-1", NotAvailable),
        ("private-1", NotAvailable),
    ],
)
def test_start_attempt_rejects_unavailable(db, catalog, seeded, clock, test_id, error) -> None:
    with pytest.raises(error):
        attempt_service.start_attempt(db, catalog, test_id, seeded["alice"].id)


def test_group_only_test_requires_assignment(db, catalog, seeded, clock) -> None:
    attempt = attempt_service.start_attempt(db, catalog, "group-1", seeded["alice"].id)
    assert attempt.test_id == "group-1"

    with pytest.raises(NotAvailable) as exc_info:
        attempt_service.start_attempt(db, catalog, "group-1", seeded["carol"].id)
    assert exc_info.value.code == "TEST_NOT_AVAILABLE"


def test_upsert_answer_creates_then_merges(db, catalog, seeded, clock) -> None:
    alice = seeded["alice"]
    attempt = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)

    answer = save(db, catalog, attempt, alice, "q-mcq", response={"option": 2}, timeSpentMs=1500)
    assert answer.response == {"option": 2}
    assert answer.visited is True
    assert answer.is_marked is False
    assert answer.time_spent_ms == 1500

    clock.advance(seconds=30)
    answer = save(db, catalog, attempt, alice, "q-mcq", isMarked=True)
    assert answer.response == {"option": 2}
    assert answer.is_marked is True
    assert answer.time_spent_ms == 1500
    assert ensure_utc(answer.updated_at) == clock.now

    rows = db.execute(select(AttemptAnswer)).scalars().all()
    assert len(rows) == 1

    db.refresh(attempt)
    assert ensure_utc(attempt.last_seen_at) == clock.now


def test_upsert_answer_explicit_null_clears_response(db, catalog, seeded, clock) -> None:
    alice = seeded["alice"]
    attempt = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)
    save(db, catalog, attempt, alice, "q-num", response={"value": "9.8"})

    answer = save(db, catalog, attempt, alice, "q-num", response=None)

    assert answer.response is None


def test_upsert_answer_rejects_foreign_question(db, catalog, seeded, clock) -> None:
    alice = seeded["alice"]
    attempt = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)

    with pytest.raises(NotFound) as exc_info:
        save(db, catalog, attempt, alice, "q-g1", response={"option": 0})
    assert exc_info.value.code == "QUESTION_NOT_IN_TEST"


def test_upsert_answer_checks_ownership(db, catalog, seeded, clock) -> None:
    attempt = attempt_service.start_attempt(db, catalog, "physics-1", seeded["alice"].id)

    with pytest.raises(Forbidden):
        save(db, catalog, attempt, seeded["bob"], "q-mcq", response={"option": 1})
    with pytest.raises(NotFound):
        attempt_service.upsert_answer(
            db, catalog, "nope", seeded["alice"].id, "q-mcq", AnswerPatch(visited=True)
        )


def test_upsert_answer_after_deadline_is_expired(db, catalog, seeded, clock) -> None:
    alice = seeded["alice"]
    attempt = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)

    clock.advance(seconds=600)
    save(db, catalog, attempt, alice, "q-mcq", response={"option": 1})

    clock.advance(seconds=1)
    with pytest.raises(Expired) as exc_info:
        save(db, catalog, attempt, alice, "q-mcq", response={"option": 0})
    assert exc_info.value.code == "ATTEMPT_EXPIRED"
    assert exc_info.value.status_code == 409

    stored = db.execute(select(AttemptAnswer)).scalars().one()
    assert stored.response == {"option": 1}


def test_upsert_answer_after_submit_is_locked(db, catalog, seeded, clock) -> None:
    alice = seeded["alice"]
    attempt = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)
    attempt_service.submit_attempt(db, catalog, attempt.id, alice.id)

    with pytest.raises(Conflict) as exc_info:
        save(db, catalog, attempt, alice, "q-mcq", response={"option": 1})
    assert exc_info.value.code == "ATTEMPT_LOCKED"


def test_submit_scores_and_stores_result(db, catalog, seeded, clock) -> None:
    alice = seeded["alice"]
    attempt = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)
    save(db, catalog, attempt, alice, "q-mcq", response={"option": 1}, timeSpentMs=1000)
    save(db, catalog, attempt, alice, "q-msq", response={"options": [0]}, timeSpentMs=2000)
    save(db, catalog, attempt, alice, "q-num", visited=True, timeSpentMs=500)
    clock.advance(minutes=5)

    submission = attempt_service.submit_attempt(db, catalog, attempt.id, alice.id)

    assert submission.transitioned is True
    assert submission.attempt.status == AttemptStatus.SUBMITTED.value
    assert ensure_utc(submission.attempt.submitted_at) == clock.now
    result = submission.result
    # MCQ correct (+4), MSQ partial is wrong (-2), NUMERICAL unanswered (0)
    assert result.score == 2.0
    assert result.max_score == 13.0
    assert result.correct_count == 1
    assert result.wrong_count == 1
    assert result.unattempted_count == 1
    assert result.accuracy == 0.5
    assert result.total_time_ms == 3500
    assert [item["subject"] for item in result.subject_breakup] == ["Physics", "Chemistry"]


def test_submit_is_idempotent(db, catalog, seeded, clock) -> None:
    alice = seeded["alice"]
    attempt = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)
    save(db, catalog, attempt, alice, "q-mcq", response={"option": 1})
    first = attempt_service.submit_attempt(db, catalog, attempt.id, alice.id)
    computed_at = first.result.computed_at

    clock.advance(minutes=1)
    second = attempt_service.submit_attempt(db, catalog, attempt.id, alice.id)

    assert second.transitioned is False
    assert ensure_utc(second.attempt.submitted_at) == ensure_utc(first.attempt.submitted_at)
    assert second.result.score == first.result.score == 4.0
    assert second.result.computed_at == computed_at
    assert len(db.execute(select(AttemptResult)).scalars().all()) == 1


def test_submit_after_deadline_is_allowed(db, catalog, seeded, clock) -> None:
    alice = seeded["alice"]
    attempt = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)
    clock.advance(hours=2)

    submission = attempt_service.submit_attempt(db, catalog, attempt.id, alice.id)

    assert submission.transitioned is True
    assert submission.result.unattempted_count == 3


def test_submit_checks_ownership(db, catalog, seeded, clock) -> None:
    attempt = attempt_service.start_attempt(db, catalog, "physics-1", seeded["alice"].id)

    with pytest.raises(Forbidden):
        attempt_service.submit_attempt(db, catalog, attempt.id, seeded["bob"].id)
    with pytest.raises(NotFound):
        attempt_service.submit_attempt(db, catalog, "missing", seeded["alice"].id)


def test_overview_hides_answer_keys(db, catalog, seeded, clock) -> None:
    alice = seeded["alice"]
    attempt = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)
    save(db, catalog, attempt, alice, "q-msq", response={"options": [0, 2]}, isMarked=True)

    overview = attempt_service.get_attempt_overview(db, catalog, attempt.id, alice.id)

    test = overview["attempt"]["test"]
    assert [q["questionId"] for q in test["questions"]] == ["q-mcq", "q-msq", "q-num"]
    assert [s["name"] for s in test["sections"]] == ["Mechanics"]
    msq = test["questions"][1]
    assert msq["hasResponse"] is True
    assert msq["isMarked"] is True
    assert test["questions"][0]["visited"] is False
    assert test["questions"][2]["marks"] == 5.0
    for question in test["questions"]:
        assert "correctAnswerKey" not in question
        assert "answerKey" not in question
        assert "solutionText" not in question


def test_analysis_requires_submission(db, catalog, seeded, clock) -> None:
    alice = seeded["alice"]
    attempt = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)

    with pytest.raises(Conflict) as exc_info:
        attempt_service.get_analysis(db, catalog, attempt.id, alice.id)
    assert exc_info.value.code == "ATTEMPT_NOT_SUBMITTED"


def test_analysis_matches_stored_result(db, catalog, seeded, clock) -> None:
    alice = seeded["alice"]
    attempt = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)
    save(db, catalog, attempt, alice, "q-num", response={"value": "9.83"})
    attempt_service.submit_attempt(db, catalog, attempt.id, alice.id)

    analysis = attempt_service.get_analysis(db, catalog, attempt.id, alice.id)

    assert analysis["summary"]["score"] == 5.0
    assert analysis["summary"]["correctCount"] == 1
    assert analysis["attempt"]["testTitle"] == "Physics mock"
    num = analysis["perQuestion"][2]
    assert num["correct"] is True
    assert num["correctAnswerKey"] == {"tolerance": 0.05, "value": 9.8}
    assert num["solutionText"] == "Standard gravity"
    assert get_result(db, attempt.id).score == 5.0


def test_analysis_stores_missing_result(db, catalog, seeded, clock) -> None:
    alice = seeded["alice"]
    attempt = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)
    save(db, catalog, attempt, alice, "q-mcq", response={"option": 0})
    # Submitted before results were stored
    attempt.status = AttemptStatus.SUBMITTED.value
    attempt.submitted_at = clock.now
    db.commit()
    assert get_result(db, attempt.id) is None

    analysis = attempt_service.get_analysis(db, catalog, attempt.id, alice.id)

    stored = get_result(db, attempt.id)
    assert stored is not None
    assert stored.score == analysis["summary"]["score"] == -1.0
    assert stored.wrong_count == 1


def test_list_student_attempts_filters(db, catalog, seeded, clock) -> None:
    alice = seeded["alice"]
    first = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)
    attempt_service.submit_attempt(db, catalog, first.id, alice.id)
    clock.advance(minutes=1)
    second = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)
    clock.advance(minutes=1)
    attempt_service.start_attempt(db, catalog, "group-1", alice.id)
    attempt_service.start_attempt(db, catalog, "physics-1", seeded["bob"].id)

    all_attempts = attempt_service.list_student_attempts(db, alice.id)
    physics = attempt_service.list_student_attempts(db, alice.id, test_id="physics-1")
    submitted = attempt_service.list_student_attempts(
        db, alice.id, status=AttemptStatus.SUBMITTED.value
    )

    assert len(all_attempts) == 3
    assert [a.id for a in physics] == [second.id, first.id]
    assert [a.id for a in submitted] == [first.id]
    assert submitted[0].result is not None


def test_submit_race_loser_reads_winner_result(db, session_factory, catalog, seeded, clock) -> None:
    alice = seeded["alice"]
    attempt = attempt_service.start_attempt(db, catalog, "physics-1", alice.id)
    save(db, catalog, attempt, alice, "q-mcq", response={"option": 1})

    # The loser loaded the attempt while it was still in progress
    other = session_factory()
    try:
        stale = other.get(Attempt, attempt.id)
        assert stale.status == AttemptStatus.IN_PROGRESS.value

        winner = attempt_service.submit_attempt(db, catalog, attempt.id, alice.id)
        loser = attempt_service.submit_attempt(other, SqlCatalog(other), attempt.id, alice.id)

        assert winner.transitioned is True
        assert loser.transitioned is False
        assert loser.attempt.status == AttemptStatus.SUBMITTED.value
        assert loser.result.score == winner.result.score == 4.0
    finally:
        other.close()
    assert len(db.execute(select(AttemptResult)).scalars().all()) == 1


def test_concurrent_submits_transition_once(tmp_path) -> None:
    engine = create_engine(
        f"sqlite:///{tmp_path / 'submit.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    try:
        with factory() as setup:
            alice = make_user(setup, "alice")
            make_user(setup, "bob")
            make_user(setup, "dave", UserRole.CREATOR)
            import_catalog(setup, CatalogImport.model_validate(CATALOG))
            catalog = SqlCatalog(setup)
            attempt = attempt_service.start_attempt(setup, catalog, "physics-1", alice.id)
            save(setup, catalog, attempt, alice, "q-mcq", response={"option": 1})
            attempt_id = attempt.id

        workers = 8
        barrier = threading.Barrier(workers)
        outcomes = []
        errors = []

        def submit() -> None:
            session = factory()
            try:
                barrier.wait()
                submission = attempt_service.submit_attempt(
                    session, SqlCatalog(session), attempt_id, "u-alice"
                )
                outcomes.append((submission.transitioned, result_to_dict(submission.result)))
            except Exception as exc:
                errors.append(exc)
            finally:
                session.close()

        threads = [threading.Thread(target=submit) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert errors == []
        assert len(outcomes) == workers
        assert [transitioned for transitioned, _ in outcomes].count(True) == 1
        results = [result for _, result in outcomes]
        assert all(result == results[0] for result in results)
        assert results[0]["score"] == 4.0

        with factory() as check:
            assert len(check.execute(select(AttemptResult)).scalars().all()) == 1
            assert check.get(Attempt, attempt_id).status == AttemptStatus.SUBMITTED.value
    finally:
        engine.dispose()
