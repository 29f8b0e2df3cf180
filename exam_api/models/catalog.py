"""Catalog-related Pydantic models."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from exam_api.models.db.catalog import TestStatus, TestVisibility
from exam_api.services.grading import QuestionType, parse_answer_key


class QuestionImport(BaseModel):
    """Question placed in an imported test."""

    id: str | None = Field(None, min_length=1, max_length=64)
    type: QuestionType
    prompt: str | None = None
    promptImageUrl: str | None = None
    options: list[Any] = Field(default_factory=list)
    answerKey: dict[str, Any]
    marks: float = Field(4, ge=0)
    negativeMarks: float = Field(0, le=0)
    marksOverride: float | None = Field(None, ge=0)
    negativeMarksOverride: float | None = Field(None, le=0)
    subject: str | None = None
    chapter: str | None = None
    difficulty: str | None = None
    solution: str | None = None
    solutionImageUrl: str | None = None
    section: str | None = None

    @model_validator(mode="after")
    def _check_answer_key(self) -> "QuestionImport":
        if parse_answer_key(self.type, self.answerKey) is None:
            raise ValueError(f"answerKey does not match question type {self.type.value}")
        return self


class TestImport(BaseModel):
    """Test definition with its ordered questions."""

    id: str | None = Field(None, min_length=1, max_length=64)
    title: str = Field(..., min_length=1, max_length=120)
    description: str | None = None
    instructions: str | None = None
    durationSec: int = Field(..., ge=60, le=6 * 60 * 60)
    creator: str | None = None  # username
    status: TestStatus = TestStatus.PUBLISHED
    visibility: TestVisibility = TestVisibility.PUBLIC
    sections: list[str] = Field(default_factory=list)
    questions: list[QuestionImport] = Field(default_factory=list)


class GroupImport(BaseModel):
    """Group with members (usernames) and assigned test ids."""

    id: str | None = Field(None, min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=80)
    description: str | None = None
    owner: str | None = None  # username, joins as group owner
    members: list[str] = Field(default_factory=list)
    tests: list[str] = Field(default_factory=list)


class CatalogImport(BaseModel):
    """Top-level catalog import file."""

    tests: list[TestImport] = Field(default_factory=list)
    groups: list[GroupImport] = Field(default_factory=list)


class TestSummary(BaseModel):
    """Published test as listed to students."""

    id: str
    title: str
    description: str | None = None
    durationSec: int
    createdAt: datetime
