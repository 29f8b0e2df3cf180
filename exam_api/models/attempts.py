"""Attempt-related Pydantic models."""
from typing import Any

from pydantic import BaseModel, Field

from exam_api.config import MAX_TIME_SPENT_MS


class AnswerPatch(BaseModel):
    """
    Partial update of one question's saved state.
    Omitted fields keep their stored value; an explicit null response clears it.
    """

    response: Any = None
    visited: bool | None = None
    isMarked: bool | None = None
    timeSpentMs: int | None = Field(None, ge=0, le=MAX_TIME_SPENT_MS)

    @property
    def has_response(self) -> bool:
        return "response" in self.model_fields_set


class AttemptOut(BaseModel):
    """Attempt as returned to its student."""

    id: str
    testId: str
    studentId: str
    status: str
    startedAt: str
    endsAt: str
    submittedAt: str | None = None
    lastSeenAt: str | None = None


class AnswerOut(BaseModel):
    """Saved state of one question."""

    attemptId: str
    questionId: str
    response: Any = None
    visited: bool
    isMarked: bool
    timeSpentMs: int
    updatedAt: str | None = None


class AnswerResponse(BaseModel):
    answer: AnswerOut


class SubjectBreakupOut(BaseModel):
    subject: str
    correct: int
    wrong: int
    unattempted: int
    score: float
    maxScore: float
    timeMs: int


class AttemptResultOut(BaseModel):
    """Materialized score of a submitted attempt."""

    attemptId: str
    score: float
    maxScore: float
    correctCount: int
    wrongCount: int
    unattemptedCount: int
    attemptedCount: int
    accuracy: float
    totalTimeMs: int
    subjectBreakup: list[SubjectBreakupOut] = Field(default_factory=list)


class SubmitResponse(BaseModel):
    status: str
    attempt: AttemptOut
    result: AttemptResultOut


class AttemptHistoryItem(AttemptOut):
    result: AttemptResultOut | None = None
