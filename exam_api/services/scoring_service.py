"""Service layer for scoring: folds questions and saved answers into a result."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from exam_api.models.db.attempt import AttemptAnswer
from exam_api.services.catalog_service import CatalogQuestion
from exam_api.services.grading import grade

UNKNOWN_SUBJECT = "Unknown"


@dataclass(frozen=True)
class AnswerState:
    """Saved state of one question, detached from the database row."""

    response: Any = None
    visited: bool = False
    is_marked: bool = False
    time_spent_ms: int = 0

    @classmethod
    def from_row(cls, row: AttemptAnswer) -> "AnswerState":
        return cls(
            response=row.response,
            visited=row.visited,
            is_marked=row.is_marked,
            time_spent_ms=row.time_spent_ms or 0,
        )


@dataclass(frozen=True)
class ScoringItem:
    question: CatalogQuestion
    answer: AnswerState | None = None


@dataclass
class QuestionOutcome:
    """Graded outcome of one question, in presentation order."""

    index: int
    question: CatalogQuestion
    answer: AnswerState | None
    attempted: bool
    correct: bool
    marks_awarded: float

    @property
    def time_spent_ms(self) -> int:
        return self.answer.time_spent_ms if self.answer else 0

    @property
    def subject(self) -> str:
        return self.question.subject or UNKNOWN_SUBJECT

    def to_dict(self) -> dict[str, Any]:
        q = self.question
        return {
            "index": self.index,
            "testQuestionId": q.test_question_id,
            "questionId": q.question_id,
            "sectionId": q.section_id,
            "sectionName": q.section_name,
            "sortOrder": q.sort_order,
            "type": q.type,
            "subject": self.subject,
            "chapter": q.chapter,
            "difficulty": q.difficulty,
            "promptText": q.prompt_text,
            "promptImageUrl": q.prompt_image_url,
            "options": list(q.options),
            "visited": self.answer.visited if self.answer else False,
            "isMarked": self.answer.is_marked if self.answer else False,
            "response": self.answer.response if self.answer else None,
            "attempted": self.attempted,
            "correct": self.correct,
            "marks": q.marks,
            "negative": q.negative_marks,
            "marksAwarded": self.marks_awarded,
            "timeSpentMs": self.time_spent_ms,
            "correctAnswerKey": q.answer_key,
            "solutionText": q.solution_text,
            "solutionImageUrl": q.solution_image_url,
        }


@dataclass
class SubjectBreakup:
    subject: str
    correct: int = 0
    wrong: int = 0
    unattempted: int = 0
    score: float = 0
    max_score: float = 0
    time_ms: int = 0

    def add(self, outcome: QuestionOutcome) -> None:
        self.max_score += outcome.question.marks
        self.score += outcome.marks_awarded
        self.time_ms += outcome.time_spent_ms
        if not outcome.attempted:
            self.unattempted += 1
        elif outcome.correct:
            self.correct += 1
        else:
            self.wrong += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "correct": self.correct,
            "wrong": self.wrong,
            "unattempted": self.unattempted,
            "score": self.score,
            "maxScore": self.max_score,
            "timeMs": self.time_ms,
        }


@dataclass
class ScoreSummary:
    """Totals, subject breakdown and per-question outcomes for one attempt."""

    score: float = 0
    max_score: float = 0
    correct_count: int = 0
    wrong_count: int = 0
    unattempted_count: int = 0
    total_time_ms: int = 0
    subject_breakup: list[SubjectBreakup] = field(default_factory=list)
    questions: list[QuestionOutcome] = field(default_factory=list)

    @property
    def attempted_count(self) -> int:
        return self.correct_count + self.wrong_count

    @property
    def accuracy(self) -> float:
        """Share of attempted questions answered correctly (0 when none attempted)."""
        if self.attempted_count == 0:
            return 0.0
        return self.correct_count / self.attempted_count

    def totals_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "maxScore": self.max_score,
            "correctCount": self.correct_count,
            "wrongCount": self.wrong_count,
            "unattemptedCount": self.unattempted_count,
            "attemptedCount": self.attempted_count,
            "accuracy": self.accuracy,
            "totalTimeMs": self.total_time_ms,
        }


def score_attempt(items: Iterable[ScoringItem]) -> ScoreSummary:
    """
    Grade every question in presentation order and aggregate the totals.

    Unattempted questions score 0, correct ones their effective marks and
    wrong ones their effective negative marks. Every question adds its
    marks to max_score. Subjects are grouped in first-seen order.
    """
    summary = ScoreSummary()
    subjects: dict[str, SubjectBreakup] = {}

    for index, item in enumerate(items, start=1):
        question = item.question
        response = item.answer.response if item.answer else None
        attempted, correct = grade(question.type, question.answer_key, response)

        if not attempted:
            marks_awarded: float = 0
            summary.unattempted_count += 1
        elif correct:
            marks_awarded = question.marks
            summary.correct_count += 1
        else:
            marks_awarded = question.negative_marks
            summary.wrong_count += 1

        outcome = QuestionOutcome(
            index=index,
            question=question,
            answer=item.answer,
            attempted=attempted,
            correct=correct,
            marks_awarded=marks_awarded,
        )
        summary.questions.append(outcome)
        summary.score += marks_awarded
        summary.max_score += question.marks
        summary.total_time_ms += outcome.time_spent_ms

        breakup = subjects.get(outcome.subject)
        if breakup is None:
            breakup = subjects[outcome.subject] = SubjectBreakup(subject=outcome.subject)
        breakup.add(outcome)

    summary.subject_breakup = list(subjects.values())
    return summary


def build_scoring_items(
    questions: Iterable[CatalogQuestion],
    answers: Iterable[AttemptAnswer],
) -> list[ScoringItem]:
    """Join ordered test questions with saved answers by question id."""
    by_question = {row.question_id: AnswerState.from_row(row) for row in answers}
    return [ScoringItem(question=q, answer=by_question.get(q.question_id)) for q in questions]
