"""Database models."""
from exam_api.models.db.user import AuthSession, User, UserRole
from exam_api.models.db.catalog import (
    Question,
    Test,
    TestQuestion,
    TestSection,
    TestStatus,
    TestVisibility,
)
from exam_api.models.db.group import (
    Group,
    GroupInvite,
    GroupMember,
    GroupMemberRole,
    GroupTestAssignment,
)
from exam_api.models.db.attempt import Attempt, AttemptAnswer, AttemptResult, AttemptStatus

__all__ = [
    "User",
    "AuthSession",
    "UserRole",
    "Question",
    "Test",
    "TestQuestion",
    "TestSection",
    "TestStatus",
    "TestVisibility",
    "Group",
    "GroupInvite",
    "GroupMember",
    "GroupMemberRole",
    "GroupTestAssignment",
    "Attempt",
    "AttemptAnswer",
    "AttemptResult",
    "AttemptStatus",
]
