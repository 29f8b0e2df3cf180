"""Group, membership and test assignment models."""
from __future__ import annotations

import enum
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exam_api.database import Base
from exam_api.utils.time_utils import new_id


class GroupMemberRole(str, enum.Enum):
    """Role of a member within a group."""

    OWNER = "owner"
    MOD = "mod"
    MEMBER = "member"


class Group(Base):
    """Study group that tests can be assigned to."""

    __tablename__ = "groups"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    owner_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    members: Mapped[list["GroupMember"]] = relationship(
        "GroupMember", back_populates="group", cascade="all, delete-orphan"
    )
    assignments: Mapped[list["GroupTestAssignment"]] = relationship(
        "GroupTestAssignment", back_populates="group", cascade="all, delete-orphan"
    )
    invites: Mapped[list["GroupInvite"]] = relationship(
        "GroupInvite", back_populates="group", cascade="all, delete-orphan"
    )


class GroupMember(Base):
    """Current membership of a user in a group."""

    __tablename__ = "group_members"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    group_id: Mapped[str] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(
        String(20), default=GroupMemberRole.MEMBER.value, nullable=False
    )
    joined_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_member"),
    )

    group: Mapped["Group"] = relationship("Group", back_populates="members")
    user: Mapped["User"] = relationship("User")

    @property
    def can_manage(self) -> bool:
        """Owners and moderators issue invites and assign tests."""
        return self.role in (GroupMemberRole.OWNER.value, GroupMemberRole.MOD.value)


class GroupTestAssignment(Base):
    """A test assigned to a group."""

    __tablename__ = "group_test_assignments"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    group_id: Mapped[str] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    test_id: Mapped[str] = mapped_column(
        ForeignKey("tests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assigned_by_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    assigned_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("group_id", "test_id", name="uq_group_test"),
    )

    group: Mapped["Group"] = relationship("Group", back_populates="assignments")
    test: Mapped["Test"] = relationship("Test")


class GroupInvite(Base):
    """
    Shareable join code for a group.
    ``expires_at`` and ``max_uses`` are optional limits; ``uses_count`` counts
    joins that added a new member.
    """

    __tablename__ = "group_invites"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    group_id: Mapped[str] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_by_id: Mapped[str | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    code: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    max_uses: Mapped[int | None] = mapped_column(nullable=True)
    uses_count: Mapped[int] = mapped_column(default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    group: Mapped["Group"] = relationship("Group", back_populates="invites")
