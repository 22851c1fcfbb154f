"""
Baby Diary Backend — Family Membership & Post Ownership Checks
================================================================

What:  The store-backed half of the permission pipeline.
Who:   The FastAPI dependencies in dependencies.py (post routes) and
       CommentService (comment routes) call these helpers.

Ownership Gate (authorize_post):
    ┌───────────────┐  missing  ┌──────────┐
    │ load post row │──────────▶│ NotFound │
    └──────┬────────┘           └──────────┘
           │ author? ── yes ──▶ allow (READ and WRITE)
           │ no
           ▼
    member of the POST's family? ── no ──▶ Forbidden
           │ yes
           ▼
    READ ──▶ allow          WRITE ──▶ Forbidden

    The membership check uses the post's family, looked up independently of
    the requester's resolved family, so it holds even for multi-family users.
"""

import enum
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from babydiary.exceptions import ForbiddenError, NotFoundError
from babydiary.models.family import FamilyMember
from babydiary.models.post import Post

logger = logging.getLogger(__name__)


class AccessMode(str, enum.Enum):
    READ = "read"
    WRITE = "write"


@dataclass(frozen=True)
class PostAccess:
    """Result of a successful ownership check."""

    post_id: uuid.UUID
    family_id: uuid.UUID
    author_id: uuid.UUID
    is_author: bool


async def get_primary_membership(db: AsyncSession, user_id: uuid.UUID) -> Optional[FamilyMember]:
    """The user's oldest membership, which the application treats as "their" family."""
    result = await db.execute(
        select(FamilyMember)
        .where(FamilyMember.user_id == user_id)
        .order_by(FamilyMember.joined_at.asc(), FamilyMember.id.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def is_family_member(db: AsyncSession, family_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(FamilyMember.id).where(
            FamilyMember.family_id == family_id,
            FamilyMember.user_id == user_id,
        )
    )
    return result.first() is not None


async def require_family_member(db: AsyncSession, family_id: uuid.UUID, user_id: uuid.UUID) -> None:
    if not await is_family_member(db, family_id, user_id):
        raise ForbiddenError(
            message="You are not a member of this family",
            context={"family_id": str(family_id), "user_id": str(user_id)},
        )


async def get_post_owner(db: AsyncSession, post_id: uuid.UUID):
    """Returns (author_id, family_id) of a post, or None if it does not exist."""
    result = await db.execute(
        select(Post.author_id, Post.family_id).where(Post.id == post_id)
    )
    return result.first()


async def authorize_post(
    db: AsyncSession,
    post_id: uuid.UUID,
    user_id: uuid.UUID,
    mode: AccessMode,
) -> PostAccess:
    """
    Decides whether `user_id` may read or modify a post.

    Raises:
        NotFoundError:  post does not exist
        ForbiddenError: not a member of the post's family, or WRITE by a non-author
    """
    row = await get_post_owner(db, post_id)
    if row is None:
        raise NotFoundError(resource="post", resource_id=str(post_id))

    author_id, family_id = row
    if author_id == user_id:
        return PostAccess(post_id=post_id, family_id=family_id, author_id=author_id, is_author=True)

    await require_family_member(db, family_id, user_id)

    if mode is AccessMode.WRITE:
        logger.info("Write denied on post %s for non-author %s", post_id, user_id)
        raise ForbiddenError(
            message="Only the author can modify this post",
            context={"post_id": str(post_id), "user_id": str(user_id)},
        )

    return PostAccess(post_id=post_id, family_id=family_id, author_id=author_id, is_author=False)
