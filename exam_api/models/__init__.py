"""Pydantic models."""
from exam_api.models.attempts import (
    AnswerOut,
    AnswerPatch,
    AnswerResponse,
    AttemptHistoryItem,
    AttemptOut,
    AttemptResultOut,
    SubmitResponse,
)
from exam_api.models.auth import (
    AuthResponse,
    LogoutResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)
from exam_api.models.catalog import CatalogImport, TestSummary
from exam_api.models.groups import (
    AssignmentResponse,
    GroupCreate,
    GroupListResponse,
    GroupResponse,
    InviteCreate,
    InviteResponse,
    JoinResponse,
)

__all__ = [
    "AnswerOut",
    "AnswerPatch",
    "AnswerResponse",
    "AttemptHistoryItem",
    "AttemptOut",
    "AttemptResultOut",
    "SubmitResponse",
    "AuthResponse",
    "LogoutResponse",
    "UserLogin",
    "UserRegister",
    "UserResponse",
    "CatalogImport",
    "TestSummary",
    "AssignmentResponse",
    "GroupCreate",
    "GroupListResponse",
    "GroupResponse",
    "InviteCreate",
    "InviteResponse",
    "JoinResponse",
]
