"""
Baby Diary Backend — Post Service (Posts & Likes)
===================================================

What:  Create, list, read, update and delete family posts; toggle likes.
How:   Stateless service receiving the request's AsyncSession. Authorization
       has already happened in the dependency chain (FamilyContext for
       create/list, PostAccess for single-post routes), so methods here only
       apply business rules and shape responses.
Who:   Called by routes/posts.py.

Media Type Resolution:
    1. No media URLs                → null
    2. Explicit mediaType in body   → that value
    3. First URL has an upload record (MediaAsset) → IMAGE / VIDEO from its MIME
    4. Otherwise                    → null

Listing:
    Scoped to the caller's family, newest first, offset pagination
    (page ≥ 1, limit 1-50). Filters combine with AND:
        search  content contains (case-insensitive) OR a tag equals it
        author  author name contains (case-insensitive)
        tags    comma-separated; any tag matches
"""

import logging
import uuid
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from babydiary.exceptions import DatabaseError, NotFoundError
from babydiary.models.media_asset import MediaAsset
from babydiary.models.post import Comment, Like, MediaType, Post, PostTag
from babydiary.models.user import User
from babydiary.schemas.comment import AuthorOut, CommentOut
from babydiary.schemas.common import Pagination
from babydiary.schemas.post import (
    FamilySummary,
    LikeOut,
    LikeToggleData,
    PostCreate,
    PostDetail,
    PostListData,
    PostSummary,
    PostUpdate,
)

logger = logging.getLogger(__name__)


def split_tags(raw: Optional[str]) -> List[str]:
    """Parses the `tags` query parameter ("first,walk, park") into a list."""
    if not raw:
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]


def media_type_for_mimetype(mimetype: Optional[str]) -> Optional[MediaType]:
    if not mimetype:
        return None
    if mimetype.startswith("image/"):
        return MediaType.IMAGE
    if mimetype.startswith("video/"):
        return MediaType.VIDEO
    return None


class PostService:
    """Business logic for posts and likes."""

    # ── Create ────────────────────────────────────────────────────────────

    async def create_post(
        self,
        db: AsyncSession,
        author_id: uuid.UUID,
        family_id: uuid.UUID,
        data: PostCreate,
    ) -> PostDetail:
        media_type = await self.resolve_media_type(db, data.media_urls, data.media_type)
        post = Post(
            content=data.content,
            media_urls=list(data.media_urls),
            media_type=media_type,
            author_id=author_id,
            family_id=family_id,
        )
        post.tag_entries = self._tag_rows(data.tags)
        db.add(post)

        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Failed to create post: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the post. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Post %s created by %s in family %s", post.id, author_id, family_id)
        return await self.get_post(db, post.id, author_id)

    # ── Read ──────────────────────────────────────────────────────────────

    async def get_post(self, db: AsyncSession, post_id: uuid.UUID, viewer_id: uuid.UUID) -> PostDetail:
        post = await self._load_detail(db, post_id)
        if post is None:
            raise NotFoundError(resource="post", resource_id=str(post_id))

        summary = self._summary(
            post,
            like_count=len(post.likes),
            comment_count=len(post.comments),
            is_liked=any(like.user_id == viewer_id for like in post.likes),
        )
        return PostDetail(
            **summary.model_dump(),
            family=FamilySummary.model_validate(post.family),
            comments=[
                CommentOut(
                    id=c.id,
                    content=c.content,
                    post_id=c.post_id,
                    author=AuthorOut.model_validate(c.author),
                    created_at=c.created_at,
                    updated_at=c.updated_at,
                )
                for c in post.comments
            ],
            likes=[LikeOut.model_validate(like) for like in post.likes],
        )

    async def list_posts(
        self,
        db: AsyncSession,
        family_id: uuid.UUID,
        viewer_id: uuid.UUID,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        author: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> PostListData:
        """
        One page of the family feed.

        Query plan:
            1. COUNT(*) with the filters          → totalCount
            2. SELECT page ORDER BY created_at DESC LIMIT/OFFSET
               + selectinload author, tags
            3. Grouped like/comment counts and the viewer's likes for the
               page's ids (three small IN queries instead of N+1)
        """
        conditions = [Post.family_id == family_id]
        search = (search or "").strip()
        author = (author or "").strip()
        if search:
            conditions.append(
                or_(
                    Post.content.icontains(search, autoescape=True),
                    Post.tag_entries.any(PostTag.name == search),
                )
            )
        if author:
            conditions.append(
                Post.author.has(User.name.icontains(author, autoescape=True))
            )
        if tags:
            conditions.append(Post.tag_entries.any(PostTag.name.in_(tags)))
        where = and_(*conditions)

        try:
            total_count = (
                await db.execute(select(func.count(Post.id)).where(where))
            ).scalar() or 0

            result = await db.execute(
                select(Post)
                .where(where)
                .options(selectinload(Post.author), selectinload(Post.tag_entries))
                .order_by(Post.created_at.desc(), Post.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            posts = list(result.scalars().all())

            post_ids = [p.id for p in posts]
            like_counts = await self._count_by_post(db, Like, post_ids)
            comment_counts = await self._count_by_post(db, Comment, post_ids)
            liked = await self._liked_by(db, post_ids, viewer_id)
        except SQLAlchemyError as e:
            logger.error("Database error listing posts: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve posts. Please try again.",
                context={"error_type": type(e).__name__},
            )

        items = [
            self._summary(
                p,
                like_count=like_counts.get(p.id, 0),
                comment_count=comment_counts.get(p.id, 0),
                is_liked=p.id in liked,
            )
            for p in posts
        ]
        return PostListData(
            posts=items,
            pagination=Pagination.build(page, limit, len(items), total_count),
        )

    # ── Update / Delete ───────────────────────────────────────────────────

    async def update_post(
        self,
        db: AsyncSession,
        post_id: uuid.UUID,
        editor_id: uuid.UUID,
        data: PostUpdate,
    ) -> PostDetail:
        result = await db.execute(
            select(Post).where(Post.id == post_id).options(selectinload(Post.tag_entries))
        )
        post = result.scalar_one_or_none()
        if post is None:
            raise NotFoundError(resource="post", resource_id=str(post_id))

        fields = data.model_fields_set

        if "content" in fields and data.content is not None:
            post.content = data.content

        if "media_urls" in fields:
            post.media_urls = list(data.media_urls or [])
            explicit = data.media_type if "media_type" in fields else None
            post.media_type = await self.resolve_media_type(db, post.media_urls, explicit)
        elif "media_type" in fields:
            post.media_type = await self.resolve_media_type(db, post.media_urls, data.media_type)

        if "tags" in fields:
            post.tag_entries = self._tag_rows(data.tags or [])

        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Failed to update post %s: %s", post_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not update the post. Please try again.",
                context={"post_id": str(post_id), "error_type": type(e).__name__},
            )

        logger.info("Post %s updated (%s)", post_id, ", ".join(sorted(fields)) or "no fields")
        return await self.get_post(db, post_id, editor_id)

    async def delete_post(self, db: AsyncSession, post_id: uuid.UUID) -> None:
        """Deletes a post; its tags, comments and likes go with it."""
        result = await db.execute(
            select(Post)
            .where(Post.id == post_id)
            .options(
                selectinload(Post.tag_entries),
                selectinload(Post.comments),
                selectinload(Post.likes),
            )
        )
        post = result.scalar_one_or_none()
        if post is None:
            raise NotFoundError(resource="post", resource_id=str(post_id))

        await db.delete(post)
        await db.flush()
        logger.info("Post %s deleted", post_id)

    # ── Likes ─────────────────────────────────────────────────────────────

    async def toggle_like(self, db: AsyncSession, post_id: uuid.UUID, user_id: uuid.UUID) -> LikeToggleData:
        """
        Flips the caller's like on a post.

        Two concurrent "like" toggles both see no row; the second INSERT hits
        uq_likes_post_user. The like the caller asked for exists either way,
        so that case answers `liked: true` instead of an error.
        """
        result = await db.execute(
            select(Like).where(Like.post_id == post_id, Like.user_id == user_id)
        )
        existing = result.scalar_one_or_none()

        if existing is not None:
            await db.delete(existing)
            await db.flush()
            liked = False
        else:
            await self.insert_like(db, post_id, user_id)
            liked = True

        like_count = (
            await db.execute(select(func.count(Like.id)).where(Like.post_id == post_id))
        ).scalar() or 0
        return LikeToggleData(liked=liked, like_count=like_count)

    async def insert_like(self, db: AsyncSession, post_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Adds a like inside a savepoint; a duplicate rolls back only the savepoint."""
        try:
            async with db.begin_nested():
                db.add(Like(post_id=post_id, user_id=user_id))
                await db.flush()
        except IntegrityError:
            logger.info("Concurrent like on post %s by %s; keeping existing like", post_id, user_id)

    # ── Media type ────────────────────────────────────────────────────────

    async def resolve_media_type(
        self,
        db: AsyncSession,
        media_urls: List[str],
        explicit: Optional[MediaType],
    ) -> Optional[MediaType]:
        if not media_urls:
            return None
        if explicit is not None:
            return explicit
        result = await db.execute(
            select(MediaAsset.mimetype).where(MediaAsset.url == media_urls[0])
        )
        return media_type_for_mimetype(result.scalar_one_or_none())

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def _tag_rows(tags: Iterable[str]) -> List[PostTag]:
        return [PostTag(name=name, position=i) for i, name in enumerate(tags)]

    @staticmethod
    def _summary(post: Post, like_count: int, comment_count: int, is_liked: bool) -> PostSummary:
        return PostSummary(
            id=post.id,
            content=post.content,
            media_urls=list(post.media_urls or []),
            media_type=post.media_type,
            tags=post.tags,
            author=AuthorOut.model_validate(post.author),
            like_count=like_count,
            comment_count=comment_count,
            is_liked=is_liked,
            created_at=post.created_at,
            updated_at=post.updated_at,
        )

    async def _load_detail(self, db: AsyncSession, post_id: uuid.UUID) -> Optional[Post]:
        result = await db.execute(
            select(Post)
            .where(Post.id == post_id)
            .options(
                selectinload(Post.author),
                selectinload(Post.family),
                selectinload(Post.tag_entries),
                selectinload(Post.comments).selectinload(Comment.author),
                selectinload(Post.likes).selectinload(Like.user),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _count_by_post(self, db: AsyncSession, model, post_ids: List[uuid.UUID]) -> Dict[uuid.UUID, int]:
        if not post_ids:
            return {}
        result = await db.execute(
            select(model.post_id, func.count(model.id))
            .where(model.post_id.in_(post_ids))
            .group_by(model.post_id)
        )
        return {post_id: count for post_id, count in result.all()}

    async def _liked_by(self, db: AsyncSession, post_ids: List[uuid.UUID], user_id: uuid.UUID) -> Set[uuid.UUID]:
        if not post_ids:
            return set()
        result = await db.execute(
            select(Like.post_id).where(Like.post_id.in_(post_ids), Like.user_id == user_id)
        )
        return set(result.scalars().all())


# ── Singleton Instance ────────────────────────────────────────────────────
post_service = PostService()
