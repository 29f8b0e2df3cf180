"""
Attempt, AttemptAnswer and AttemptResult database models.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any

import sqlalchemy as sa
from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exam_api.database import Base
from exam_api.utils.json_utils import json_dump, json_load_or_none
from exam_api.utils.time_utils import new_id


class AttemptStatus(str, enum.Enum):
    """Status of a test attempt."""

    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"


class Attempt(Base):
    """
    One student's timed session against one test.
    Transitions once from IN_PROGRESS to SUBMITTED and is never deleted.
    """

    __tablename__ = "attempts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)

    # References
    test_id: Mapped[str] = mapped_column(
        ForeignKey("tests.id", ondelete="CASCADE"), index=True, nullable=False
    )
    student_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(20), default=AttemptStatus.IN_PROGRESS.value, nullable=False
    )

    # Timing
    started_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    ends_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # At most one live attempt per (test, student)
    __table_args__ = (
        sa.Index(
            "uq_attempt_in_progress",
            "test_id",
            "student_id",
            unique=True,
            sqlite_where=sa.text("status = 'in_progress'"),
            postgresql_where=sa.text("status = 'in_progress'"),
        ),
    )

    # Relationships
    answers: Mapped[list["AttemptAnswer"]] = relationship(
        "AttemptAnswer", back_populates="attempt", cascade="all, delete-orphan"
    )
    result: Mapped["AttemptResult | None"] = relationship(
        "AttemptResult", back_populates="attempt", uselist=False
    )

    @property
    def is_submitted(self) -> bool:
        """Check if attempt is submitted."""
        return self.status == AttemptStatus.SUBMITTED.value


class AttemptAnswer(Base):
    """
    Saved state of one question within an attempt.
    Created lazily on the first write for that question.
    """

    __tablename__ = "attempt_answers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    attempt_id: Mapped[str] = mapped_column(
        ForeignKey("attempts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[str] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )

    # Answer data (response shape depends on question type)
    response_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    visited: Mapped[bool] = mapped_column(default=True, nullable=False)
    is_marked: Mapped[bool] = mapped_column(default=False, nullable=False)
    time_spent_ms: Mapped[int] = mapped_column(default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Constraints
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_attempt_question"),
    )

    # Relationships
    attempt: Mapped["Attempt"] = relationship("Attempt", back_populates="answers")

    @property
    def response(self) -> Any:
        """Parse response from JSON."""
        return json_load_or_none(self.response_json)

    @response.setter
    def response(self, value: Any) -> None:
        """Serialize response to JSON."""
        self.response_json = json_dump(value) if value is not None else None


class AttemptResult(Base):
    """
    Materialized score of a submitted attempt, unique per attempt.
    Written by idempotent upsert only.
    """

    __tablename__ = "attempt_results"

    attempt_id: Mapped[str] = mapped_column(
        ForeignKey("attempts.id", ondelete="CASCADE"), primary_key=True
    )
    score: Mapped[float] = mapped_column(sa.Float, nullable=False)
    max_score: Mapped[float] = mapped_column(sa.Float, nullable=False)
    correct_count: Mapped[int] = mapped_column(nullable=False)
    wrong_count: Mapped[int] = mapped_column(nullable=False)
    unattempted_count: Mapped[int] = mapped_column(nullable=False)
    accuracy: Mapped[float] = mapped_column(sa.Float, nullable=False)
    total_time_ms: Mapped[int] = mapped_column(nullable=False)
    subject_breakup_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    computed_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    attempt: Mapped["Attempt"] = relationship("Attempt", back_populates="result")

    @property
    def subject_breakup(self) -> list[dict[str, Any]]:
        """Parse subject breakup from JSON."""
        value = json_load_or_none(self.subject_breakup_json)
        return value if isinstance(value, list) else []

    @subject_breakup.setter
    def subject_breakup(self, value: list[dict[str, Any]] | None) -> None:
        """Serialize subject breakup to JSON."""
        self.subject_breakup_json = json_dump(value or [])
