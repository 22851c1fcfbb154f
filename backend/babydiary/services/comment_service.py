"""
Baby Diary Backend — Comment Service
======================================

What:  List, create, edit and delete comments on posts.
Who:   Called by routes/comments.py.

Permission Rules:
    list / create   caller must belong to the POST's family (looked up from
                    the post, not from the caller's own family)
    update / delete caller must be the comment's author; there is no
                    family-admin override
"""

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from babydiary.exceptions import DatabaseError, ForbiddenError, NotFoundError
from babydiary.models.post import Comment
from babydiary.schemas.comment import AuthorOut, CommentListData, CommentOut
from babydiary.schemas.common import Pagination
from babydiary.services.access import get_post_owner, require_family_member

logger = logging.getLogger(__name__)


class CommentService:

    async def list_comments(
        self,
        db: AsyncSession,
        post_id: uuid.UUID,
        viewer_id: uuid.UUID,
        page: int = 1,
        limit: int = 20,
    ) -> CommentListData:
        await self._require_post_member(db, post_id, viewer_id)

        total_count = (
            await db.execute(select(func.count(Comment.id)).where(Comment.post_id == post_id))
        ).scalar() or 0
        result = await db.execute(
            select(Comment)
            .where(Comment.post_id == post_id)
            .options(selectinload(Comment.author))
            .order_by(Comment.created_at.asc(), Comment.id.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        comments = [self._out(c) for c in result.scalars().all()]
        return CommentListData(
            comments=comments,
            pagination=Pagination.build(page, limit, len(comments), total_count),
        )

    async def create_comment(
        self,
        db: AsyncSession,
        post_id: uuid.UUID,
        author_id: uuid.UUID,
        content: str,
    ) -> CommentOut:
        await self._require_post_member(db, post_id, author_id)

        comment = Comment(post_id=post_id, author_id=author_id, content=content)
        db.add(comment)
        await self._flush(db, "add comment", post_id=str(post_id))
        logger.info("Comment %s added to post %s by %s", comment.id, post_id, author_id)
        return await self._reload(db, comment.id)

    async def update_comment(
        self,
        db: AsyncSession,
        comment_id: uuid.UUID,
        editor_id: uuid.UUID,
        content: str,
    ) -> CommentOut:
        comment = await self._require_author(db, comment_id, editor_id)
        comment.content = content
        await self._flush(db, "update comment", comment_id=str(comment_id))
        return await self._reload(db, comment.id)

    async def delete_comment(self, db: AsyncSession, comment_id: uuid.UUID, user_id: uuid.UUID) -> None:
        comment = await self._require_author(db, comment_id, user_id)
        await db.delete(comment)
        await self._flush(db, "delete comment", comment_id=str(comment_id))
        logger.info("Comment %s deleted by %s", comment_id, user_id)

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _flush(self, db: AsyncSession, action: str, **context) -> None:
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Failed to %s: %s", action, str(e), exc_info=True)
            raise DatabaseError(
                message=f"Could not {action}. Please try again.",
                context={**context, "error_type": type(e).__name__},
            )

    async def _require_post_member(self, db: AsyncSession, post_id: uuid.UUID, user_id: uuid.UUID) -> None:
        row = await get_post_owner(db, post_id)
        if row is None:
            raise NotFoundError(resource="post", resource_id=str(post_id))
        _, family_id = row
        await require_family_member(db, family_id, user_id)

    async def _require_author(self, db: AsyncSession, comment_id: uuid.UUID, user_id: uuid.UUID) -> Comment:
        comment = await db.get(Comment, comment_id)
        if comment is None:
            raise NotFoundError(resource="comment", resource_id=str(comment_id))
        if comment.author_id != user_id:
            raise ForbiddenError(
                message="Only the author can modify this comment",
                context={"comment_id": str(comment_id), "user_id": str(user_id)},
            )
        return comment

    async def _reload(self, db: AsyncSession, comment_id: uuid.UUID) -> CommentOut:
        result = await db.execute(
            select(Comment)
            .where(Comment.id == comment_id)
            .options(selectinload(Comment.author))
            .execution_options(populate_existing=True)
        )
        return self._out(result.scalar_one())

    @staticmethod
    def _out(comment: Comment) -> CommentOut:
        return CommentOut(
            id=comment.id,
            content=comment.content,
            post_id=comment.post_id,
            author=AuthorOut.model_validate(comment.author),
            created_at=comment.created_at,
            updated_at=comment.updated_at,
        )


comment_service = CommentService()
