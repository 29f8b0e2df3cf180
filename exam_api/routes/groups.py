"""Group endpoints: groups, invites, test assignment and leaderboards."""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session as DbSession

from exam_api.database import get_db
from exam_api.dependencies.auth import get_current_user, require_manager
from exam_api.dependencies.catalog import get_catalog
from exam_api.models import (
    AssignmentResponse,
    GroupCreate,
    GroupListResponse,
    GroupResponse,
    InviteCreate,
    InviteResponse,
    JoinResponse,
)
from exam_api.models.db.user import User
from exam_api.services import group_service, leaderboard_service
from exam_api.services.catalog_service import Catalog
from exam_api.utils import validate_id

router = APIRouter(prefix="/api/groups", tags=["groups"])
invites_router = APIRouter(prefix="/api/invites", tags=["groups"])


@router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
def create_group(
    payload: GroupCreate,
    current_user: User = Depends(get_current_user),
    db: DbSession = Depends(get_db),
) -> dict[str, object]:
    group = group_service.create_group(db, current_user.id, payload.name, payload.description)
    return {"group": group_service.group_to_dict(group, member_count=1)}


@router.get("", response_model=GroupListResponse)
def list_groups(
    current_user: User = Depends(get_current_user),
    db: DbSession = Depends(get_db),
) -> dict[str, object]:
    """Groups the caller belongs to."""
    return {"groups": group_service.list_groups(db, current_user.id)}


@router.get("/{group_id}")
def get_group(
    group_id: str,
    current_user: User = Depends(get_current_user),
    db: DbSession = Depends(get_db),
) -> dict[str, object]:
    """Members, assigned tests and the caller's role in the group."""
    group_id = validate_id("groupId", group_id)
    return group_service.get_group(db, group_id, current_user.id)


@router.post(
    "/{group_id}/invites",
    response_model=InviteResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_invite(
    group_id: str,
    payload: InviteCreate,
    current_user: User = Depends(get_current_user),
    db: DbSession = Depends(get_db),
) -> dict[str, object]:
    group_id = validate_id("groupId", group_id)
    invite = group_service.create_invite(
        db, group_id, current_user.id, payload.expiresInDays, payload.maxUses
    )
    return {"invite": group_service.invite_to_dict(invite)}


@router.post(
    "/{group_id}/tests/{test_id}/assign",
    response_model=AssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
def assign_test(
    group_id: str,
    test_id: str,
    current_user: User = Depends(require_manager),
    db: DbSession = Depends(get_db),
) -> dict[str, object]:
    """Assign one of the caller's tests to a group they own or moderate."""
    group_id = validate_id("groupId", group_id)
    test_id = validate_id("testId", test_id)
    assignment = group_service.assign_test(db, group_id, test_id, current_user)
    return {"assignment": group_service.assignment_to_dict(assignment)}


@router.get("/{group_id}/leaderboard")
def get_leaderboard(
    group_id: str,
    test_id: str = Query(..., alias="testId"),
    current_user: User = Depends(get_current_user),
    db: DbSession = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
) -> dict[str, object]:
    """Rank group members' submitted attempts on an assigned test."""
    group_id = validate_id("groupId", group_id)
    test_id = validate_id("testId", test_id)
    entries = leaderboard_service.get_leaderboard(
        db, catalog, group_id, test_id, current_user.id
    )
    return {
        "groupId": group_id,
        "testId": test_id,
        "leaderboard": [entry.to_dict() for entry in entries],
    }


@invites_router.post("/{code}/join", response_model=JoinResponse)
def join_invite(
    code: str,
    current_user: User = Depends(get_current_user),
    db: DbSession = Depends(get_db),
) -> dict[str, object]:
    code = validate_id("code", code)
    result = group_service.join_invite(db, code, current_user.id)
    return {"ok": True, "groupId": result.group_id, "joined": result.joined}
