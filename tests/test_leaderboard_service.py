from datetime import datetime, timezone

import pytest
from sqlalchemy import delete

from exam_api.errors import Forbidden, NotFound
from exam_api.models.attempts import AnswerPatch
from exam_api.models.db.group import GroupMember
from exam_api.services import attempt_service, leaderboard_service
from exam_api.services.leaderboard_service import LeaderboardEntry, rank_entries


def entry(attempt_id: str, score: float, minute: int) -> LeaderboardEntry:
    return LeaderboardEntry(
        attempt_id=attempt_id,
        student_id=f"s-{attempt_id}",
        student_name=attempt_id,
        score=score,
        max_score=10,
        accuracy=0.5,
        submitted_at=datetime(2026, 1, 1, 10, minute, tzinfo=timezone.utc),
    )


def test_rank_entries_orders_by_score_then_time() -> None:
    ranked = rank_entries(
        [
            entry("late-high", 8, 30),
            entry("low", 2, 1),
            entry("early-high", 8, 5),
            entry("negative", -3, 0),
        ]
    )

    assert [e.attempt_id for e in ranked] == ["early-high", "late-high", "low", "negative"]
    assert [e.rank for e in ranked] == [1, 2, 3, 4]


def test_rank_entries_breaks_full_ties_by_attempt_id() -> None:
    ranked = rank_entries([entry("b", 5, 0), entry("a", 5, 0)])
    assert [e.attempt_id for e in ranked] == ["a", "b"]
    assert [e.rank for e in ranked] == [1, 2]


def test_rank_entries_mixes_naive_and_aware_times() -> None:
    naive = entry("naive", 5, 1)
    naive.submitted_at = naive.submitted_at.replace(tzinfo=None)
    ranked = rank_entries([entry("aware", 5, 2), naive])
    assert [e.attempt_id for e in ranked] == ["naive", "aware"]


def test_rank_entries_limit() -> None:
    ranked = rank_entries([entry(str(i), i, 0) for i in range(5)], limit=2)
    assert [e.attempt_id for e in ranked] == ["4", "3"]


def _submit(db, catalog, student, clock, option: int) -> None:
    attempt = attempt_service.start_attempt(db, catalog, "group-1", student.id)
    attempt_service.upsert_answer(
        db, catalog, attempt.id, student.id, "q-g1", AnswerPatch(response={"option": option})
    )
    clock.advance(minutes=1)
    attempt_service.submit_attempt(db, catalog, attempt.id, student.id)


def test_get_leaderboard_ranks_group_members(db, catalog, seeded, clock) -> None:
    alice, bob = seeded["alice"], seeded["bob"]
    _submit(db, catalog, bob, clock, option=2)
    _submit(db, catalog, alice, clock, option=2)
    _submit(db, catalog, alice, clock, option=0)
    # In progress attempts are not ranked
    attempt_service.start_attempt(db, catalog, "group-1", bob.id)

    entries = leaderboard_service.get_leaderboard(db, catalog, "g1", "group-1", alice.id)

    data = [e.to_dict() for e in entries]
    assert [(d["rank"], d["student"]["name"], d["score"]) for d in data] == [
        (1, "Bob", 2.0),
        (2, "Alice", 2.0),
        (3, "Alice", 0),
    ]
    assert data[0]["submittedAt"].endswith("+00:00")


def test_get_leaderboard_excludes_former_members(db, catalog, seeded, clock) -> None:
    alice, bob = seeded["alice"], seeded["bob"]
    _submit(db, catalog, alice, clock, option=2)
    _submit(db, catalog, bob, clock, option=2)
    db.execute(delete(GroupMember).where(GroupMember.user_id == bob.id))
    db.commit()

    entries = leaderboard_service.get_leaderboard(db, catalog, "g1", "group-1", alice.id)

    assert [e.student_id for e in entries] == [alice.id]


def test_get_leaderboard_requires_membership(db, catalog, seeded, clock) -> None:
    with pytest.raises(Forbidden):
        leaderboard_service.get_leaderboard(db, catalog, "g1", "group-1", seeded["carol"].id)


def test_get_leaderboard_requires_assignment(db, catalog, seeded, clock) -> None:
    with pytest.raises(NotFound) as exc_info:
        leaderboard_service.get_leaderboard(db, catalog, "g1", "private-1", seeded["alice"].id)
    assert exc_info.value.code == "TEST_NOT_ASSIGNED"
