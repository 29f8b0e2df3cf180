"""
Catalog models: tests, sections, questions and their per-test placement.

The attempt core only reads these tables.
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


class TestStatus(str, enum.Enum):
    """Publication status of a test."""

    DRAFT = "draft"
    PUBLISHED = "published"


class TestVisibility(str, enum.Enum):
    """Who may start a published test."""

    PUBLIC = "public"  # Any student
    PRIVATE = "private"  # Creator only, never via the student start path
    GROUP_ONLY = "group_only"  # Members of a group the test is assigned to


class Test(Base):
    """A timed test made of ordered questions."""

    __tablename__ = "tests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    creator_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_sec: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=TestStatus.DRAFT.value, nullable=False
    )
    visibility: Mapped[str] = mapped_column(
        String(20), default=TestVisibility.PRIVATE.value, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    sections: Mapped[list["TestSection"]] = relationship(
        "TestSection",
        back_populates="test",
        cascade="all, delete-orphan",
        order_by="TestSection.sort_order",
    )
    test_questions: Mapped[list["TestQuestion"]] = relationship(
        "TestQuestion",
        back_populates="test",
        cascade="all, delete-orphan",
        order_by="TestQuestion.sort_order",
    )


class TestSection(Base):
    """Named section grouping questions within a test."""

    __tablename__ = "test_sections"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    test_id: Mapped[str] = mapped_column(
        ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    sort_order: Mapped[int] = mapped_column(default=0, nullable=False)

    test: Mapped["Test"] = relationship("Test", back_populates="sections")


class Question(Base):
    """
    Question bank entry.
    The answer key shape depends on the question type (see grading rules).
    """

    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    type: Mapped[str] = mapped_column(String(20), nullable=False)

    # Presentation
    prompt_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    prompt_image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    options_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Grading
    answer_key_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    marks: Mapped[float] = mapped_column(sa.Float, default=4, nullable=False)
    negative_marks: Mapped[float] = mapped_column(sa.Float, default=0, nullable=False)

    # Classification
    subject: Mapped[str | None] = mapped_column(String(100), nullable=True)
    chapter: Mapped[str | None] = mapped_column(String(100), nullable=True)
    difficulty: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Shown after submission
    solution_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    solution_image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    @property
    def options(self) -> list[Any]:
        """Parse options from JSON."""
        value = json_load_or_none(self.options_json)
        return value if isinstance(value, list) else []

    @options.setter
    def options(self, value: list[Any] | None) -> None:
        """Serialize options to JSON."""
        self.options_json = json_dump(value) if value else None

    @property
    def answer_key(self) -> Any:
        """Parse answer key from JSON (None when missing or corrupt)."""
        return json_load_or_none(self.answer_key_json)

    @answer_key.setter
    def answer_key(self, value: Any) -> None:
        """Serialize answer key to JSON."""
        self.answer_key_json = json_dump(value) if value is not None else None


class TestQuestion(Base):
    """
    Placement of a question in a test.
    Overrides supersede the question's own marks for this test only.
    """

    __tablename__ = "test_questions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    test_id: Mapped[str] = mapped_column(
        ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[str] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    section_id: Mapped[str | None] = mapped_column(
        ForeignKey("test_sections.id", ondelete="SET NULL"), nullable=True
    )
    sort_order: Mapped[int] = mapped_column(nullable=False)
    marks_override: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    negative_marks_override: Mapped[float | None] = mapped_column(sa.Float, nullable=True)

    __table_args__ = (
        UniqueConstraint("test_id", "sort_order", name="uq_test_question_order"),
        UniqueConstraint("test_id", "question_id", name="uq_test_question"),
    )

    # Relationships
    test: Mapped["Test"] = relationship("Test", back_populates="test_questions")
    question: Mapped["Question"] = relationship("Question")
    section: Mapped["TestSection | None"] = relationship("TestSection")
