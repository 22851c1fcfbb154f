"""
Baby Diary Backend — Family & Membership Models
=================================================

What:  ORM models for `families` and the `family_members` join table.
Who:   Used by registration (create/join), the family-membership resolver,
       and the ownership gate.

Invariants:
    - invite_code is unique across all families
    - at most one membership row per (user, family)
    - the creator of a family is ADMIN; joiners via invite code are MEMBER
"""

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import DateTime, Enum, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from babydiary.database import Base
from babydiary.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin, utcnow

if TYPE_CHECKING:
    from babydiary.models.user import User


class FamilyRole(str, enum.Enum):
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class Family(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """The sharing boundary. Every post belongs to exactly one family."""

    __tablename__ = "families"

    # Default names are "{user name}의 가족", so leave room beyond the 50-char name limit
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    invite_code: Mapped[str] = mapped_column(String(16), nullable=False, unique=True, index=True)

    members: Mapped[List["FamilyMember"]] = relationship(
        back_populates="family",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Family(id={self.id}, name='{self.name}')>"


class FamilyMember(UUIDPrimaryKeyMixin, Base):
    """Membership of a user in a family, with a role."""

    __tablename__ = "family_members"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    family_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[FamilyRole] = mapped_column(
        Enum(FamilyRole, name="family_role"),
        nullable=False,
        default=FamilyRole.MEMBER,
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    user: Mapped["User"] = relationship(back_populates="memberships")
    family: Mapped["Family"] = relationship(back_populates="members")

    __table_args__ = (
        UniqueConstraint("user_id", "family_id", name="uq_family_members_user_family"),
    )

    def __repr__(self) -> str:
        return f"<FamilyMember(user_id={self.user_id}, family_id={self.family_id}, role={self.role.value})>"
