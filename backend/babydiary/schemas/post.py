"""
Baby Diary Backend — Post Request/Response Schemas
====================================================

What:  Contracts for the /api/posts resource and the like toggle.
Who:   Routes use the request models for validation; PostService builds the
       response models (counts and `isLiked` are computed, not columns).

Validation Rules:
    - content:   1-2000 characters after trimming
    - mediaUrls: at most 10 entries, each at most 2048 characters
    - tags:      at most 10, each 1-20 characters; duplicates collapse
    - mediaType: optional IMAGE | VIDEO; when omitted the server derives it
                 from the upload record of the first media URL
"""

import uuid
from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import BeforeValidator, Field, field_validator

from babydiary.models.post import MediaType
from babydiary.schemas.comment import AuthorOut, CommentOut
from babydiary.schemas.common import CamelModel, Pagination

MAX_MEDIA_URLS = 10
MAX_TAGS = 10

MediaUrl = Annotated[str, Field(min_length=1, max_length=2048)]
# Trimmed before the length check so whitespace-only content is rejected
Content = Annotated[str, BeforeValidator(lambda v: v.strip() if isinstance(v, str) else v)]


def _clean_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    if tags is None:
        return None
    cleaned: List[str] = []
    for tag in tags:
        tag = tag.strip()
        if not tag:
            raise ValueError("tags must not be blank")
        if len(tag) > 20:
            raise ValueError("each tag must be at most 20 characters")
        if tag not in cleaned:
            cleaned.append(tag)
    return cleaned


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class PostCreate(CamelModel):
    content: Content = Field(min_length=1, max_length=2000)
    media_urls: List[MediaUrl] = Field(default_factory=list, max_length=MAX_MEDIA_URLS)
    media_type: Optional[MediaType] = None
    tags: List[str] = Field(default_factory=list, max_length=MAX_TAGS)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return _clean_tags(v)


class PostUpdate(CamelModel):
    """
    Partial update. Only fields present in the body are applied; an explicit
    `"mediaUrls": []` clears the media and with it the media type. A post
    always has content, so `"content": null` is rejected; omit the field to
    leave it unchanged.
    """

    content: Optional[Content] = Field(default=None, min_length=1, max_length=2000)
    media_urls: Optional[List[MediaUrl]] = Field(default=None, max_length=MAX_MEDIA_URLS)
    media_type: Optional[MediaType] = None
    tags: Optional[List[str]] = Field(default=None, max_length=MAX_TAGS)

    @field_validator("content")
    @classmethod
    def reject_null_content(cls, v: Optional[str]) -> str:
        if v is None:
            raise ValueError("content cannot be null")
        return v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class FamilySummary(CamelModel):
    id: uuid.UUID
    name: str


class LikeUser(CamelModel):
    id: uuid.UUID
    name: str


class LikeOut(CamelModel):
    id: uuid.UUID
    user_id: uuid.UUID
    user: LikeUser
    created_at: datetime


class PostSummary(CamelModel):
    """
    What:  Feed item returned by GET /api/posts.
    Why:   Omits comments and likers so a 50-item page stays small; the
           counts and `isLiked` are enough to render a card.
    """

    id: uuid.UUID
    content: str
    media_urls: List[str]
    media_type: Optional[MediaType] = None
    tags: List[str]
    author: AuthorOut
    like_count: int
    comment_count: int
    is_liked: bool
    created_at: datetime
    updated_at: datetime


class PostDetail(PostSummary):
    """Full post: family, comments (oldest first) and likes."""

    family: FamilySummary
    comments: List[CommentOut]
    likes: List[LikeOut]


class PostListData(CamelModel):
    posts: List[PostSummary]
    pagination: Pagination


class LikeToggleData(CamelModel):
    liked: bool
    like_count: int
