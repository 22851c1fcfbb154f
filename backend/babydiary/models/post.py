"""
Baby Diary Backend — Post, Tag, Comment and Like Models
=========================================================

What:  ORM models for family-scoped content.
Who:   Used by PostService, CommentService and the ownership gate.

Table Design Rationale:
    - media_urls: ordered JSON list; the first entry decides media_type
    - tags: child rows (post_tags) instead of a JSON array so the list
      endpoint can filter with a portable `tag IN (...)` predicate
    - likes: unique (post_id, user_id); the constraint is the only guard
      against duplicate rows under concurrent toggles
    - comments/likes/tags are removed with their post

Index on (family_id, created_at):
    Matches the feed query "newest posts of my family" (scanned backwards).
"""

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from babydiary.database import Base
from babydiary.models.mixins import TimestampMixin, UUIDPrimaryKeyMixin, utcnow

if TYPE_CHECKING:
    from babydiary.models.family import Family
    from babydiary.models.user import User


class MediaType(str, enum.Enum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"


class Post(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A diary entry written by one member and visible to one family."""

    __tablename__ = "posts"

    content: Mapped[str] = mapped_column(Text, nullable=False)
    media_urls: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    media_type: Mapped[Optional[MediaType]] = mapped_column(
        Enum(MediaType, name="media_type"), nullable=True
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    family_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("families.id", ondelete="CASCADE"), nullable=False
    )

    author: Mapped["User"] = relationship()
    family: Mapped["Family"] = relationship()
    tag_entries: Mapped[List["PostTag"]] = relationship(
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="PostTag.position",
    )
    comments: Mapped[List["Comment"]] = relationship(
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="Comment.created_at",
    )
    likes: Mapped[List["Like"]] = relationship(
        back_populates="post",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_posts_family_created_at", "family_id", "created_at"),
    )

    @property
    def tags(self) -> List[str]:
        return [entry.name for entry in self.tag_entries]

    def __repr__(self) -> str:
        return f"<Post(id={self.id}, family_id={self.family_id}, author_id={self.author_id})>"


class PostTag(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "post_tags"

    post_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    # Preserves the order the author typed the tags in
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    post: Mapped["Post"] = relationship(back_populates="tag_entries")


class Comment(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A comment; its visibility is that of the parent post's family."""

    __tablename__ = "comments"

    content: Mapped[str] = mapped_column(Text, nullable=False)
    post_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    post: Mapped["Post"] = relationship(back_populates="comments")
    author: Mapped["User"] = relationship()

    def __repr__(self) -> str:
        return f"<Comment(id={self.id}, post_id={self.post_id})>"


class Like(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "likes"

    post_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    post: Mapped["Post"] = relationship(back_populates="likes")
    user: Mapped["User"] = relationship()

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_likes_post_user"),
    )
