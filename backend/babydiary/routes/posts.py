"""
Baby Diary Backend — Post Route Handlers
==========================================

What:  /api/posts collection, single-post routes and the like toggle.
How:   The dependency chain in each signature is the permission pipeline:
           list / create      → get_family_context
           GET {post_id}      → read_post  (any member of the post's family)
           PUT/DELETE         → write_post (author only)
           POST {post_id}/like→ read_post  (members may like others' posts)
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from babydiary.database import get_db_session
from babydiary.dependencies import FamilyContext, get_family_context, read_post, write_post
from babydiary.schemas.common import ApiResponse, ErrorResponse
from babydiary.schemas.post import (
    LikeToggleData,
    PostCreate,
    PostDetail,
    PostListData,
    PostUpdate,
)
from babydiary.services.access import PostAccess
from babydiary.services.post_service import post_service, split_tags

router = APIRouter(prefix="/api/posts", tags=["Posts"])

_errors = {
    401: {"description": "Missing or invalid token", "model": ErrorResponse},
    403: {"description": "Not allowed", "model": ErrorResponse},
}


@router.get(
    "",
    response_model=ApiResponse[PostListData],
    responses=_errors,
    summary="List the family feed",
)
async def list_posts(
    page: int = Query(default=1, ge=1, description="1-based page number"),
    limit: int = Query(default=10, ge=1, le=50, description="Items per page (max 50)"),
    search: Optional[str] = Query(default=None, max_length=100, description="Content substring or exact tag"),
    author: Optional[str] = Query(default=None, max_length=50, description="Author name substring"),
    tags: Optional[str] = Query(default=None, description="Comma-separated tags; any may match"),
    member: FamilyContext = Depends(get_family_context),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[PostListData]:
    data = await post_service.list_posts(
        db,
        family_id=member.family_id,
        viewer_id=member.user.user_id,
        page=page,
        limit=limit,
        search=search,
        author=author,
        tags=split_tags(tags),
    )
    return ApiResponse(data=data)


@router.post(
    "",
    response_model=ApiResponse[PostDetail],
    status_code=status.HTTP_201_CREATED,
    responses=_errors,
    summary="Create a post in the caller's family",
)
async def create_post(
    body: PostCreate,
    member: FamilyContext = Depends(get_family_context),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[PostDetail]:
    post = await post_service.create_post(
        db,
        author_id=member.user.user_id,
        family_id=member.family_id,
        data=body,
    )
    return ApiResponse(data=post, message="Post created")


@router.get(
    "/{post_id}",
    response_model=ApiResponse[PostDetail],
    responses={**_errors, 404: {"description": "Post not found", "model": ErrorResponse}},
    summary="Post detail with comments and likes",
)
async def get_post(
    post_id: uuid.UUID,
    access: PostAccess = Depends(read_post),
    member: FamilyContext = Depends(get_family_context),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[PostDetail]:
    return ApiResponse(data=await post_service.get_post(db, access.post_id, member.user.user_id))


@router.put(
    "/{post_id}",
    response_model=ApiResponse[PostDetail],
    responses={**_errors, 404: {"description": "Post not found", "model": ErrorResponse}},
    summary="Edit a post (author only)",
)
async def update_post(
    post_id: uuid.UUID,
    body: PostUpdate,
    access: PostAccess = Depends(write_post),
    member: FamilyContext = Depends(get_family_context),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[PostDetail]:
    post = await post_service.update_post(db, access.post_id, member.user.user_id, body)
    return ApiResponse(data=post, message="Post updated")


@router.delete(
    "/{post_id}",
    response_model=ApiResponse[None],
    responses={**_errors, 404: {"description": "Post not found", "model": ErrorResponse}},
    summary="Delete a post (author only)",
)
async def delete_post(
    post_id: uuid.UUID,
    access: PostAccess = Depends(write_post),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[None]:
    await post_service.delete_post(db, access.post_id)
    return ApiResponse(message="Post deleted")


@router.post(
    "/{post_id}/like",
    response_model=ApiResponse[LikeToggleData],
    responses={**_errors, 404: {"description": "Post not found", "model": ErrorResponse}},
    summary="Like or unlike a post",
)
async def toggle_like(
    post_id: uuid.UUID,
    access: PostAccess = Depends(read_post),
    member: FamilyContext = Depends(get_family_context),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[LikeToggleData]:
    data = await post_service.toggle_like(db, access.post_id, member.user.user_id)
    return ApiResponse(data=data, message="Post liked" if data.liked else "Like removed")
