"""Comment request/response schemas."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from babydiary.schemas.common import CamelModel, Pagination


class AuthorOut(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    profile_image: Optional[str] = None


class CommentWrite(CamelModel):
    """Body of POST /api/posts/{post_id}/comments and PUT /api/comments/{id}."""

    content: str = Field(min_length=1, max_length=1000)

    @field_validator("content", mode="before")
    @classmethod
    def strip_content(cls, v):
        # "   " must fail min_length, not be stored as an empty comment
        return v.strip() if isinstance(v, str) else v


class CommentOut(CamelModel):
    id: uuid.UUID
    content: str
    post_id: uuid.UUID
    author: AuthorOut
    created_at: datetime
    updated_at: datetime


class CommentListData(CamelModel):
    comments: List[CommentOut]
    pagination: Pagination
