"""Group-related Pydantic models."""
from pydantic import BaseModel, Field


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=80)
    description: str | None = Field(None, max_length=500)


class InviteCreate(BaseModel):
    """Both limits are optional; omitted means unlimited."""

    expiresInDays: int | None = Field(None, ge=1, le=365)
    maxUses: int | None = Field(None, ge=1, le=500)


class GroupOut(BaseModel):
    id: str
    name: str
    description: str | None = None
    ownerId: str | None = None
    createdAt: str
    memberCount: int | None = None


class GroupListItem(GroupOut):
    myRole: str


class InviteOut(BaseModel):
    id: int
    groupId: str
    code: str
    expiresAt: str | None = None
    maxUses: int | None = None
    usesCount: int
    createdAt: str


class JoinResponse(BaseModel):
    ok: bool = True
    groupId: str
    joined: bool


class AssignmentOut(BaseModel):
    groupId: str
    testId: str
    title: str | None = None
    durationSec: int | None = None
    status: str | None = None
    visibility: str | None = None
    assignedById: str | None = None
    assignedAt: str


class GroupResponse(BaseModel):
    group: GroupOut


class GroupListResponse(BaseModel):
    groups: list[GroupListItem]


class InviteResponse(BaseModel):
    invite: InviteOut


class AssignmentResponse(BaseModel):
    assignment: AssignmentOut
