"""Service layer for group leaderboards."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session as DBSession

from exam_api.config import LEADERBOARD_LIMIT
from exam_api.errors import Forbidden, NotFound
from exam_api.models.db.attempt import Attempt, AttemptResult, AttemptStatus
from exam_api.models.db.group import GroupMember
from exam_api.models.db.user import User
from exam_api.services.catalog_service import Catalog
from exam_api.utils.time_utils import ensure_utc, isoformat


@dataclass
class LeaderboardEntry:
    attempt_id: str
    student_id: str
    student_name: str
    score: float
    max_score: float
    accuracy: float
    submitted_at: datetime
    rank: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "attemptId": self.attempt_id,
            "student": {"id": self.student_id, "name": self.student_name},
            "score": self.score,
            "maxScore": self.max_score,
            "accuracy": self.accuracy,
            "submittedAt": isoformat(self.submitted_at),
        }


def rank_entries(
    entries: list[LeaderboardEntry],
    limit: int | None = None,
) -> list[LeaderboardEntry]:
    """
    Order by score (desc), then submission time (asc), then attempt id.
    Ranks are 1-based positions; equal scores never share a rank.
    """
    ordered = sorted(
        entries,
        key=lambda e: (-e.score, ensure_utc(e.submitted_at), e.attempt_id),
    )
    if limit is not None:
        ordered = ordered[:limit]
    for position, entry in enumerate(ordered, start=1):
        entry.rank = position
    return ordered


def get_leaderboard(
    db: DBSession,
    catalog: Catalog,
    group_id: str,
    test_id: str,
    caller_id: str,
    limit: int = LEADERBOARD_LIMIT,
) -> list[LeaderboardEntry]:
    """
    Rank submitted attempts of current group members on a test.
    Attempts without a stored result are left out.

    Raises:
        Forbidden: caller is not a member of the group.
        NotFound: test is not assigned to the group.
    """
    if not catalog.is_member(group_id, caller_id):
        raise Forbidden()
    if not catalog.is_test_assigned_to_group(group_id, test_id):
        raise NotFound("TEST_NOT_ASSIGNED")

    rows = db.execute(
        select(Attempt, AttemptResult, User)
        .join(AttemptResult, AttemptResult.attempt_id == Attempt.id)
        .join(User, User.id == Attempt.student_id)
        .join(
            GroupMember,
            (GroupMember.user_id == Attempt.student_id)
            & (GroupMember.group_id == group_id),
        )
        .where(
            Attempt.test_id == test_id,
            Attempt.status == AttemptStatus.SUBMITTED.value,
            Attempt.submitted_at.is_not(None),
        )
    ).all()

    entries = [
        LeaderboardEntry(
            attempt_id=attempt.id,
            student_id=user.id,
            student_name=user.name,
            score=result.score,
            max_score=result.max_score,
            accuracy=result.accuracy,
            submitted_at=attempt.submitted_at,
        )
        for attempt, result, user in rows
    ]
    return rank_entries(entries, limit)
