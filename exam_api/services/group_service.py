"""Service layer for groups: creation, membership via invites, test assignment."""
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession, selectinload

from exam_api.database import transaction
from exam_api.errors import Forbidden, Gone, NotFound
from exam_api.models.db.catalog import Test
from exam_api.models.db.group import (
    Group,
    GroupInvite,
    GroupMember,
    GroupMemberRole,
    GroupTestAssignment,
)
from exam_api.models.db.user import User, UserRole
from exam_api.utils.time_utils import ensure_utc, isoformat, utc_now

logger = logging.getLogger(__name__)

INVITE_CODE_BYTES = 18


@dataclass
class JoinResult:
    group_id: str
    joined: bool  # False when the user was already a member


def group_to_dict(group: Group, member_count: int | None = None) -> dict[str, Any]:
    data = {
        "id": group.id,
        "name": group.name,
        "description": group.description,
        "ownerId": group.owner_id,
        "createdAt": isoformat(group.created_at),
    }
    if member_count is not None:
        data["memberCount"] = member_count
    return data


def member_to_dict(member: GroupMember) -> dict[str, Any]:
    return {
        "userId": member.user_id,
        "username": member.user.username,
        "name": member.user.name,
        "role": member.role,
        "joinedAt": isoformat(member.joined_at),
    }


def assignment_to_dict(assignment: GroupTestAssignment) -> dict[str, Any]:
    test = assignment.test
    return {
        "groupId": assignment.group_id,
        "testId": assignment.test_id,
        "title": test.title if test else None,
        "durationSec": test.duration_sec if test else None,
        "status": test.status if test else None,
        "visibility": test.visibility if test else None,
        "assignedById": assignment.assigned_by_id,
        "assignedAt": isoformat(assignment.assigned_at),
    }


def invite_to_dict(invite: GroupInvite) -> dict[str, Any]:
    return {
        "id": invite.id,
        "groupId": invite.group_id,
        "code": invite.code,
        "expiresAt": isoformat(invite.expires_at),
        "maxUses": invite.max_uses,
        "usesCount": invite.uses_count,
        "createdAt": isoformat(invite.created_at),
    }


def _membership(db: DBSession, group_id: str, user_id: str) -> GroupMember | None:
    return db.execute(
        select(GroupMember).where(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id,
        )
    ).scalar_one_or_none()


def _require_manager(db: DBSession, group_id: str, user_id: str) -> GroupMember:
    membership = _membership(db, group_id, user_id)
    if membership is None or not membership.can_manage:
        raise Forbidden()
    return membership


def create_group(
    db: DBSession,
    owner_id: str,
    name: str,
    description: str | None = None,
) -> Group:
    """Create a group with its creator as the owner member."""
    group = Group(owner_id=owner_id, name=name, description=description)
    group.members.append(GroupMember(user_id=owner_id, role=GroupMemberRole.OWNER.value))
    db.add(group)
    db.commit()
    db.refresh(group)
    logger.info("Created group %s owned by %s", group.id, owner_id)
    return group


def list_groups(db: DBSession, user_id: str) -> list[dict[str, Any]]:
    """Groups the user belongs to, newest first, with member counts and the user's role."""
    counts = (
        select(GroupMember.group_id, func.count(GroupMember.id).label("member_count"))
        .group_by(GroupMember.group_id)
        .subquery()
    )
    rows = db.execute(
        select(Group, GroupMember.role, counts.c.member_count)
        .join(GroupMember, GroupMember.group_id == Group.id)
        .join(counts, counts.c.group_id == Group.id)
        .where(GroupMember.user_id == user_id)
        .order_by(Group.created_at.desc(), Group.id)
    ).all()
    return [
        {**group_to_dict(group, member_count), "myRole": role}
        for group, role, member_count in rows
    ]


def get_group(db: DBSession, group_id: str, user_id: str) -> dict[str, Any]:
    """
    Group detail with members and assigned tests, for members only.

    Raises:
        Forbidden: caller is not a member.
        NotFound: group is absent.
    """
    membership = _membership(db, group_id, user_id)
    if membership is None:
        raise Forbidden()

    group = db.execute(
        select(Group)
        .where(Group.id == group_id)
        .options(
            selectinload(Group.members).selectinload(GroupMember.user),
            selectinload(Group.assignments).selectinload(GroupTestAssignment.test),
        )
    ).scalar_one_or_none()
    if group is None:
        raise NotFound()

    return {
        "group": {
            **group_to_dict(group, len(group.members)),
            "members": [
                member_to_dict(m)
                for m in sorted(group.members, key=lambda m: (ensure_utc(m.joined_at), m.id))
            ],
            "assignments": [
                assignment_to_dict(a)
                for a in sorted(group.assignments, key=lambda a: (ensure_utc(a.assigned_at), a.id))
            ],
        },
        "myRole": membership.role,
    }


def create_invite(
    db: DBSession,
    group_id: str,
    user_id: str,
    expires_in_days: int | None = None,
    max_uses: int | None = None,
) -> GroupInvite:
    """
    Issue a join code for the group.

    Raises:
        Forbidden: caller is not an owner or moderator of the group.
    """
    _require_manager(db, group_id, user_id)

    expires_at = None
    if expires_in_days is not None:
        expires_at = utc_now() + timedelta(days=expires_in_days)
    invite = GroupInvite(
        group_id=group_id,
        created_by_id=user_id,
        code=secrets.token_urlsafe(INVITE_CODE_BYTES),
        expires_at=expires_at,
        max_uses=max_uses,
    )
    db.add(invite)
    db.commit()
    db.refresh(invite)
    logger.info("Created invite %s for group %s", invite.id, group_id)
    return invite


def join_invite(db: DBSession, code: str, user_id: str) -> JoinResult:
    """
    Join a group by invite code.

    A use is consumed only when the user becomes a new member. The use
    counter is bumped by a conditional update, so concurrent joins cannot
    exceed ``max_uses``.

    Raises:
        NotFound: INVALID_INVITE.
        Gone: INVITE_EXPIRED or INVITE_EXHAUSTED.
    """
    invite = db.execute(
        select(GroupInvite).where(GroupInvite.code == code)
    ).scalar_one_or_none()
    if invite is None:
        raise NotFound("INVALID_INVITE")
    if invite.expires_at is not None and ensure_utc(invite.expires_at) < utc_now():
        raise Gone("INVITE_EXPIRED")

    group_id = invite.group_id
    if _membership(db, group_id, user_id) is not None:
        return JoinResult(group_id, joined=False)

    try:
        with transaction(db):
            consumed = db.execute(
                update(GroupInvite)
                .where(
                    GroupInvite.id == invite.id,
                    or_(
                        GroupInvite.max_uses.is_(None),
                        GroupInvite.uses_count < GroupInvite.max_uses,
                    ),
                )
                .values(uses_count=GroupInvite.uses_count + 1)
                .execution_options(synchronize_session=False)
            )
            if consumed.rowcount != 1:
                raise Gone("INVITE_EXHAUSTED")
            db.add(
                GroupMember(
                    group_id=group_id,
                    user_id=user_id,
                    role=GroupMemberRole.MEMBER.value,
                )
            )
            db.flush()
    except IntegrityError:
        # A concurrent join for the same user won; its use stands, ours rolled back
        return JoinResult(group_id, joined=False)

    logger.info("User %s joined group %s via invite %s", user_id, group_id, invite.id)
    return JoinResult(group_id, joined=True)


def assign_test(
    db: DBSession,
    group_id: str,
    test_id: str,
    user: User,
) -> GroupTestAssignment:
    """
    Assign a test to a group. Assigning twice returns the existing row.

    Admins may assign any test to any group. Anyone else must manage the
    group and have created the test.

    Raises:
        Forbidden: caller may not assign this test to this group.
        NotFound: GROUP_NOT_FOUND or TEST_NOT_FOUND.
    """
    is_admin = user.has_role(UserRole.ADMIN)
    if is_admin:
        if db.get(Group, group_id) is None:
            raise NotFound("GROUP_NOT_FOUND")
    else:
        _require_manager(db, group_id, user.id)

    test = db.get(Test, test_id)
    if test is None:
        raise NotFound("TEST_NOT_FOUND")
    if not is_admin and test.creator_id != user.id:
        raise Forbidden()

    stmt = select(GroupTestAssignment).where(
        GroupTestAssignment.group_id == group_id,
        GroupTestAssignment.test_id == test_id,
    )
    existing = db.execute(stmt).scalar_one_or_none()
    if existing is not None:
        return existing

    assignment = GroupTestAssignment(group_id=group_id, test_id=test_id, assigned_by_id=user.id)
    db.add(assignment)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = db.execute(stmt).scalar_one_or_none()
        if existing is None:
            raise
        return existing

    db.refresh(assignment)
    logger.info("Assigned test %s to group %s", test_id, group_id)
    return assignment
