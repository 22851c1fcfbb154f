"""
Baby Diary Backend — Request Permission Pipeline
==================================================

What:  FastAPI dependencies that turn a request into immutable contexts.
How:   Each stage depends on the previous one, so route signatures spell out
       exactly which checks run, in order:

           get_current_user      bearer token  → AuthContext
           get_family_context    AuthContext   → FamilyContext
           require_post_access   FamilyContext → PostAccess (READ | WRITE)

       All stages share the request's database session (FastAPI caches
       `get_db_session` per request). Failures raise DiaryError subclasses,
       which the global handlers turn into 401/403/404 envelopes.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from babydiary.database import get_db_session
from babydiary.exceptions import ForbiddenError, UnauthorizedError
from babydiary.models.family import FamilyRole
from babydiary.models.user import User
from babydiary.services.access import (
    AccessMode,
    PostAccess,
    authorize_post,
    get_primary_membership,
)
from babydiary.services.security import decode_access_token

# auto_error=False: we raise our own UnauthorizedError so the envelope matches
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    user_id: uuid.UUID
    email: str
    name: str


@dataclass(frozen=True)
class FamilyContext:
    user: AuthContext
    family_id: uuid.UUID
    role: FamilyRole


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> AuthContext:
    """Resolves `Authorization: Bearer <token>` to the calling user."""
    if credentials is None or not credentials.credentials.strip():
        raise UnauthorizedError(message="Authentication token is required")

    user_id = decode_access_token(credentials.credentials.strip())
    user = await db.get(User, user_id)
    if user is None:
        raise UnauthorizedError(
            message="Invalid authentication token",
            context={"reason": "user_not_found", "user_id": str(user_id)},
        )
    return AuthContext(user_id=user.id, email=user.email, name=user.name)


async def get_family_context(
    user: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> FamilyContext:
    membership = await get_primary_membership(db, user.user_id)
    if membership is None:
        raise ForbiddenError(
            message="You are not a member of any family",
            context={"user_id": str(user.user_id)},
        )
    return FamilyContext(user=user, family_id=membership.family_id, role=membership.role)


def require_post_access(mode: AccessMode):
    """Builds the ownership dependency for `/posts/{post_id}` routes."""

    async def dependency(
        post_id: uuid.UUID,
        member: FamilyContext = Depends(get_family_context),
        db: AsyncSession = Depends(get_db_session),
    ) -> PostAccess:
        return await authorize_post(db, post_id, member.user.user_id, mode)

    return dependency


read_post = require_post_access(AccessMode.READ)
write_post = require_post_access(AccessMode.WRITE)
