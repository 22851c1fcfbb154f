"""
Baby Diary Backend — Comment Route Handlers
=============================================

What:  GET/POST /api/posts/{post_id}/comments, PUT/DELETE /api/comments/{comment_id}.
How:   Authentication only at the route level; CommentService checks
       membership in the post's family (list/create) or authorship
       (update/delete).
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from babydiary.database import get_db_session
from babydiary.dependencies import AuthContext, get_current_user
from babydiary.schemas.comment import CommentListData, CommentOut, CommentWrite
from babydiary.schemas.common import ApiResponse, ErrorResponse
from babydiary.services.comment_service import comment_service

router = APIRouter(prefix="/api", tags=["Comments"])

_errors = {
    401: {"description": "Missing or invalid token", "model": ErrorResponse},
    403: {"description": "Not allowed", "model": ErrorResponse},
    404: {"description": "Post or comment not found", "model": ErrorResponse},
}


@router.get(
    "/posts/{post_id}/comments",
    response_model=ApiResponse[CommentListData],
    responses=_errors,
    summary="List comments of a post, oldest first",
)
async def list_comments(
    post_id: uuid.UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=50),
    user: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[CommentListData]:
    data = await comment_service.list_comments(db, post_id, user.user_id, page=page, limit=limit)
    return ApiResponse(data=data)


@router.post(
    "/posts/{post_id}/comments",
    response_model=ApiResponse[CommentOut],
    status_code=status.HTTP_201_CREATED,
    responses=_errors,
    summary="Comment on a post",
)
async def create_comment(
    post_id: uuid.UUID,
    body: CommentWrite,
    user: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[CommentOut]:
    comment = await comment_service.create_comment(db, post_id, user.user_id, body.content)
    return ApiResponse(data=comment, message="Comment added")


@router.put(
    "/comments/{comment_id}",
    response_model=ApiResponse[CommentOut],
    responses=_errors,
    summary="Edit a comment (author only)",
)
async def update_comment(
    comment_id: uuid.UUID,
    body: CommentWrite,
    user: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[CommentOut]:
    comment = await comment_service.update_comment(db, comment_id, user.user_id, body.content)
    return ApiResponse(data=comment, message="Comment updated")


@router.delete(
    "/comments/{comment_id}",
    response_model=ApiResponse[None],
    responses=_errors,
    summary="Delete a comment (author only)",
)
async def delete_comment(
    comment_id: uuid.UUID,
    user: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[None]:
    await comment_service.delete_comment(db, comment_id, user.user_id)
    return ApiResponse(message="Comment deleted")
