"""
Baby Diary Backend — User SQLAlchemy Model
============================================

What:  ORM model for the `users` table.
Who:   Used by AuthService (register/login/me) and the authentication gate.

Table Design:
    - email: unique, stored lower-cased so lookups are case-insensitive
    - password_hash: bcrypt output (salt embedded); the plain password is
      never stored or logged
    - memberships: the schema allows several, application logic uses the
      oldest one as "the" family of the user
"""

from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from babydiary.database import Base
from babydiary.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from babydiary.models.family import FamilyMember


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A registered account. Owns posts, comments and likes."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    profile_image: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)

    memberships: Mapped[List["FamilyMember"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="FamilyMember.joined_at",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
