"""Read-only catalog port used by the attempt core, plus catalog import."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session as DbSession, selectinload

from exam_api.models.catalog import CatalogImport
from exam_api.models.db.catalog import (
    Question,
    Test,
    TestQuestion,
    TestSection,
    TestStatus,
    TestVisibility,
)
from exam_api.models.db.group import Group, GroupMember, GroupMemberRole, GroupTestAssignment
from exam_api.models.db.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogSection:
    id: str
    name: str
    sort_order: int


@dataclass(frozen=True)
class CatalogQuestion:
    """A question as placed in one test, with effective marks resolved."""

    test_question_id: str
    question_id: str
    sort_order: int
    type: str
    answer_key: Any
    marks: float
    negative_marks: float
    subject: str | None = None
    chapter: str | None = None
    difficulty: str | None = None
    section_id: str | None = None
    section_name: str | None = None
    prompt_text: str | None = None
    prompt_image_url: str | None = None
    options: tuple[Any, ...] = ()
    solution_text: str | None = None
    solution_image_url: str | None = None


@dataclass(frozen=True)
class CatalogTest:
    id: str
    title: str
    duration_sec: int
    status: str
    visibility: str
    sections: tuple[CatalogSection, ...] = ()
    questions: tuple[CatalogQuestion, ...] = ()

    @property
    def is_published(self) -> bool:
        return self.status == TestStatus.PUBLISHED.value


class Catalog(Protocol):
    """Catalog and group reads the attempt core depends on."""

    def get_test_with_questions(self, test_id: str) -> CatalogTest | None: ...

    def test_has_question(self, test_id: str, question_id: str) -> bool: ...

    def is_member(self, group_id: str, user_id: str) -> bool: ...

    def is_test_assigned_to_group(self, group_id: str, test_id: str) -> bool: ...

    def has_group_assignment(self, user_id: str, test_id: str) -> bool: ...


def _to_catalog_question(tq: TestQuestion) -> CatalogQuestion:
    question = tq.question
    marks = tq.marks_override if tq.marks_override is not None else question.marks
    negative = (
        tq.negative_marks_override
        if tq.negative_marks_override is not None
        else question.negative_marks
    )
    return CatalogQuestion(
        test_question_id=tq.id,
        question_id=question.id,
        sort_order=tq.sort_order,
        type=question.type,
        answer_key=question.answer_key,
        marks=marks,
        negative_marks=negative,
        subject=question.subject,
        chapter=question.chapter,
        difficulty=question.difficulty,
        section_id=tq.section_id,
        section_name=tq.section.name if tq.section else None,
        prompt_text=question.prompt_text,
        prompt_image_url=question.prompt_image_url,
        options=tuple(question.options),
        solution_text=question.solution_text,
        solution_image_url=question.solution_image_url,
    )


class SqlCatalog:
    """Catalog backed by the SQLAlchemy session of the current request."""

    def __init__(self, db: DbSession):
        self.db = db

    def get_test_with_questions(self, test_id: str) -> CatalogTest | None:
        stmt = (
            select(Test)
            .options(
                selectinload(Test.sections),
                selectinload(Test.test_questions).selectinload(TestQuestion.question),
                selectinload(Test.test_questions).selectinload(TestQuestion.section),
            )
            .where(Test.id == test_id)
        )
        test = self.db.execute(stmt).scalar_one_or_none()
        if test is None:
            return None

        test_questions = sorted(test.test_questions, key=lambda tq: tq.sort_order)
        return CatalogTest(
            id=test.id,
            title=test.title,
            duration_sec=test.duration_sec,
            status=test.status,
            visibility=test.visibility,
            sections=tuple(
                CatalogSection(id=s.id, name=s.name, sort_order=s.sort_order)
                for s in sorted(test.sections, key=lambda s: s.sort_order)
            ),
            questions=tuple(_to_catalog_question(tq) for tq in test_questions),
        )

    def test_has_question(self, test_id: str, question_id: str) -> bool:
        stmt = select(TestQuestion.id).where(
            TestQuestion.test_id == test_id,
            TestQuestion.question_id == question_id,
        )
        return self.db.execute(stmt).first() is not None

    def is_member(self, group_id: str, user_id: str) -> bool:
        stmt = select(GroupMember.id).where(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id,
        )
        return self.db.execute(stmt).first() is not None

    def is_test_assigned_to_group(self, group_id: str, test_id: str) -> bool:
        stmt = select(GroupTestAssignment.id).where(
            GroupTestAssignment.group_id == group_id,
            GroupTestAssignment.test_id == test_id,
        )
        return self.db.execute(stmt).first() is not None

    def has_group_assignment(self, user_id: str, test_id: str) -> bool:
        stmt = (
            select(GroupMember.id)
            .join(
                GroupTestAssignment,
                GroupTestAssignment.group_id == GroupMember.group_id,
            )
            .where(
                GroupMember.user_id == user_id,
                GroupTestAssignment.test_id == test_id,
            )
            .limit(1)
        )
        return self.db.execute(stmt).first() is not None


def list_available_tests(db: DbSession) -> list[Test]:
    """List published public tests, newest first."""
    stmt = (
        select(Test)
        .where(
            Test.status == TestStatus.PUBLISHED.value,
            Test.visibility == TestVisibility.PUBLIC.value,
        )
        .order_by(Test.created_at.desc())
    )
    return list(db.execute(stmt).scalars().all())


def _user_id(db: DbSession, username: str) -> str:
    user_id = db.execute(select(User.id).where(User.username == username)).scalar_one_or_none()
    if user_id is None:
        raise ValueError(f"Unknown user: {username}")
    return user_id


def import_catalog(db: DbSession, payload: CatalogImport) -> dict[str, int]:
    """
    Import tests and groups in one transaction.

    Raises:
        ValueError: if an id already exists or a referenced user/test is unknown.
    """
    counts = {"tests": 0, "questions": 0, "groups": 0, "members": 0, "assignments": 0}
    try:
        for test_data in payload.tests:
            if test_data.id and db.get(Test, test_data.id):
                raise ValueError(f"Test already exists: {test_data.id}")

            test = Test(
                title=test_data.title,
                description=test_data.description,
                instructions=test_data.instructions,
                duration_sec=test_data.durationSec,
                status=test_data.status.value,
                visibility=test_data.visibility.value,
            )
            if test_data.creator:
                test.creator_id = _user_id(db, test_data.creator)
            if test_data.id:
                test.id = test_data.id
            db.add(test)

            sections: dict[str, TestSection] = {}
            section_names = list(test_data.sections)
            for q_data in test_data.questions:
                if q_data.section and q_data.section not in section_names:
                    section_names.append(q_data.section)
            for order, name in enumerate(section_names):
                section = TestSection(name=name, sort_order=order)
                test.sections.append(section)
                sections[name] = section

            for order, q_data in enumerate(test_data.questions):
                question = db.get(Question, q_data.id) if q_data.id else None
                if question is None:
                    question = Question(
                        type=q_data.type.value,
                        prompt_text=q_data.prompt,
                        prompt_image_url=q_data.promptImageUrl,
                        marks=q_data.marks,
                        negative_marks=q_data.negativeMarks,
                        subject=q_data.subject,
                        chapter=q_data.chapter,
                        difficulty=q_data.difficulty,
                        solution_text=q_data.solution,
                        solution_image_url=q_data.solutionImageUrl,
                    )
                    if q_data.id:
                        question.id = q_data.id
                    question.options = q_data.options
                    question.answer_key = q_data.answerKey
                    db.add(question)
                    counts["questions"] += 1

                test.test_questions.append(
                    TestQuestion(
                        question=question,
                        section=sections.get(q_data.section) if q_data.section else None,
                        sort_order=order,
                        marks_override=q_data.marksOverride,
                        negative_marks_override=q_data.negativeMarksOverride,
                    )
                )
            counts["tests"] += 1
        db.flush()

        for group_data in payload.groups:
            if group_data.id and db.get(Group, group_data.id):
                raise ValueError(f"Group already exists: {group_data.id}")

            group = Group(name=group_data.name, description=group_data.description)
            if group_data.id:
                group.id = group_data.id
            db.add(group)

            roles = {username: GroupMemberRole.MEMBER for username in group_data.members}
            if group_data.owner:
                group.owner_id = _user_id(db, group_data.owner)
                roles[group_data.owner] = GroupMemberRole.OWNER
            for username, role in roles.items():
                group.members.append(GroupMember(user_id=_user_id(db, username), role=role.value))
                counts["members"] += 1

            for test_id in group_data.tests:
                if db.get(Test, test_id) is None:
                    raise ValueError(f"Unknown test: {test_id}")
                group.assignments.append(GroupTestAssignment(test_id=test_id))
                counts["assignments"] += 1
            counts["groups"] += 1

        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Imported %d tests (%d new questions) and %d groups",
        counts["tests"],
        counts["questions"],
        counts["groups"],
    )
    return counts
