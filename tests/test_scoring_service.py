from types import SimpleNamespace

from exam_api.services.catalog_service import CatalogQuestion
from exam_api.services.scoring_service import (
    AnswerState,
    ScoringItem,
    build_scoring_items,
    score_attempt,
)


def make_question(qid: str, qtype: str, key, marks=4.0, negative=-1.0, subject=None, order=0):
    return CatalogQuestion(
        test_question_id=f"tq-{qid}",
        question_id=qid,
        sort_order=order,
        type=qtype,
        answer_key=key,
        marks=marks,
        negative_marks=negative,
        subject=subject,
    )


def test_score_attempt_applies_marks_and_negative_marks() -> None:
    items = [
        ScoringItem(
            make_question("a", "MCQ", {"correctOption": 0}, subject="Physics"),
            AnswerState(response={"option": 0}, time_spent_ms=1000),
        ),
        ScoringItem(
            make_question("b", "MCQ", {"correctOption": 0}, subject="Physics"),
            AnswerState(response={"option": 3}, time_spent_ms=500),
        ),
        ScoringItem(
            make_question("c", "NUMERICAL", {"value": 2}, marks=3, negative=0, subject="Maths"),
            None,
        ),
    ]

    summary = score_attempt(items)

    assert summary.score == 3.0
    assert summary.max_score == 11.0
    assert summary.correct_count == 1
    assert summary.wrong_count == 1
    assert summary.unattempted_count == 1
    assert summary.attempted_count == 2
    assert summary.accuracy == 0.5
    assert summary.total_time_ms == 1500
    assert [q.marks_awarded for q in summary.questions] == [4.0, -1.0, 0]
    assert [q.index for q in summary.questions] == [1, 2, 3]


def test_score_can_go_negative() -> None:
    items = [
        ScoringItem(
            make_question("a", "MSQ", {"correctOptions": [0, 1]}, negative=-2),
            AnswerState(response={"options": [0]}),
        ),
    ]
    summary = score_attempt(items)
    assert summary.score == -2.0
    assert summary.accuracy == 0.0


def test_accuracy_is_zero_when_nothing_attempted() -> None:
    items = [
        ScoringItem(make_question("a", "MCQ", {"correctOption": 0}), AnswerState(response=None)),
        ScoringItem(make_question("b", "MCQ", {"correctOption": 0}), None),
    ]
    summary = score_attempt(items)
    assert summary.accuracy == 0.0
    assert summary.unattempted_count == 2
    assert summary.totals_dict()["attemptedCount"] == 0


def test_empty_attempt() -> None:
    summary = score_attempt([])
    assert summary.totals_dict() == {
        "score": 0,
        "maxScore": 0,
        "correctCount": 0,
        "wrongCount": 0,
        "unattemptedCount": 0,
        "attemptedCount": 0,
        "accuracy": 0.0,
        "totalTimeMs": 0,
    }
    assert summary.subject_breakup == []


def test_subject_breakup_groups_in_first_seen_order() -> None:
    items = [
        ScoringItem(
            make_question("a", "MCQ", {"correctOption": 0}, subject="Chemistry"),
            AnswerState(response={"option": 0}, time_spent_ms=10),
        ),
        ScoringItem(make_question("b", "MCQ", {"correctOption": 0}), None),
        ScoringItem(
            make_question("c", "MCQ", {"correctOption": 0}, subject="Chemistry"),
            AnswerState(response={"option": 1}, time_spent_ms=20),
        ),
    ]

    breakup = [item.to_dict() for item in score_attempt(items).subject_breakup]

    assert breakup == [
        {
            "subject": "Chemistry",
            "correct": 1,
            "wrong": 1,
            "unattempted": 0,
            "score": 3.0,
            "maxScore": 8.0,
            "timeMs": 30,
        },
        {
            "subject": "Unknown",
            "correct": 0,
            "wrong": 0,
            "unattempted": 1,
            "score": 0,
            "maxScore": 4.0,
            "timeMs": 0,
        },
    ]


def test_outcome_dict_exposes_answer_key_and_solution() -> None:
    question = make_question("a", "MCQ", {"correctOption": 2}, subject="Physics")
    outcome = score_attempt([ScoringItem(question, AnswerState(response={"option": 2}))]).questions[0]

    data = outcome.to_dict()

    assert data["correct"] is True
    assert data["marksAwarded"] == 4.0
    assert data["correctAnswerKey"] == {"correctOption": 2}
    assert data["response"] == {"option": 2}


def test_build_scoring_items_joins_by_question_id() -> None:
    questions = [make_question("a", "MCQ", {"correctOption": 0}), make_question("b", "MCQ", {"correctOption": 0})]
    rows = [
        SimpleNamespace(
            question_id="b",
            response={"option": 0},
            visited=True,
            is_marked=True,
            time_spent_ms=None,
        )
    ]

    items = build_scoring_items(questions, rows)

    assert [item.question.question_id for item in items] == ["a", "b"]
    assert items[0].answer is None
    assert items[1].answer == AnswerState(response={"option": 0}, visited=True, is_marked=True, time_spent_ms=0)
