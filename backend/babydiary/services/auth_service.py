"""
Baby Diary Backend — Auth Service
===================================

What:  Registration, login and profile lookup.
How:   Stateless service; every call receives the request's AsyncSession and
       only flushes. The session dependency commits (or rolls back) the whole
       unit of work, so a registration either creates user + family +
       membership together or nothing at all.
Who:   Called by routes/auth.py.

Registration Flow:
    1. Reject a known email (409)
    2. With inviteCode: resolve the family (400 if unknown), role MEMBER
       Without:         create a family with a fresh invite code, role ADMIN
    3. Hash the password (bcrypt, in a worker thread)
    4. Insert user + membership, flush; a unique-constraint race → 409
    5. Issue a token
"""

import asyncio
import logging
import secrets
import string
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from babydiary.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from babydiary.models.family import Family, FamilyMember, FamilyRole
from babydiary.models.user import User
from babydiary.schemas.auth import (
    AuthPayload,
    FamilyOut,
    LoginRequest,
    MePayload,
    RegisterRequest,
    UserOut,
)
from babydiary.services.access import get_primary_membership
from babydiary.services.security import (
    burn_password_check,
    create_access_token,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
INVITE_CODE_LENGTH = 6
INVITE_CODE_ATTEMPTS = 5

# One message for "unknown email" and "wrong password"
INVALID_CREDENTIALS = "Invalid email or password"


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


class AuthService:
    """Business logic for accounts and family onboarding."""

    async def register(self, db: AsyncSession, data: RegisterRequest) -> AuthPayload:
        existing = await db.execute(select(User.id).where(User.email == data.email))
        if existing.first() is not None:
            raise ConflictError(message="This email is already registered")

        if data.invite_code:
            family = await self._family_by_invite_code(db, data.invite_code)
            role = FamilyRole.MEMBER
        else:
            family = Family(
                id=uuid.uuid4(),
                name=data.family_name or f"{data.name}의 가족",
                invite_code=await self._allocate_invite_code(db),
            )
            db.add(family)
            role = FamilyRole.ADMIN

        password_hash = await asyncio.to_thread(hash_password, data.password)
        user = User(
            id=uuid.uuid4(),
            email=data.email,
            password_hash=password_hash,
            name=data.name,
        )
        db.add(user)
        db.add(FamilyMember(user_id=user.id, family_id=family.id, role=role))

        try:
            await db.flush()
        except IntegrityError as e:
            # A concurrent registration won the unique email race
            logger.warning("Registration conflict for new user: %s", type(e.orig).__name__)
            raise ConflictError(
                message="This email is already registered",
                context={"constraint_error": type(e.orig).__name__},
            )

        logger.info("User %s registered (family=%s, role=%s)", user.id, family.id, role.value)
        return AuthPayload(
            user=UserOut.model_validate(user),
            family=self._family_out(family, role),
            token=create_access_token(user.id),
        )

    async def login(self, db: AsyncSession, data: LoginRequest) -> AuthPayload:
        result = await db.execute(select(User).where(User.email == data.email))
        user = result.scalar_one_or_none()

        if user is None:
            # Same bcrypt cost as a real check, so timing does not reveal the email
            await asyncio.to_thread(burn_password_check, data.password)
            raise UnauthorizedError(message=INVALID_CREDENTIALS)

        if not await asyncio.to_thread(verify_password, data.password, user.password_hash):
            raise UnauthorizedError(message=INVALID_CREDENTIALS, context={"user_id": str(user.id)})

        logger.info("User %s logged in", user.id)
        return AuthPayload(
            user=UserOut.model_validate(user),
            family=await self._primary_family(db, user.id),
            token=create_access_token(user.id),
        )

    async def me(self, db: AsyncSession, user_id: uuid.UUID) -> MePayload:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return MePayload(
            user=UserOut.model_validate(user),
            family=await self._primary_family(db, user.id),
        )

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _family_by_invite_code(self, db: AsyncSession, invite_code: str) -> Family:
        result = await db.execute(select(Family).where(Family.invite_code == invite_code))
        family = result.scalar_one_or_none()
        if family is None:
            raise ValidationError(
                message="Invalid invite code",
                field="inviteCode",
                errors=["inviteCode: no family uses this invite code"],
            )
        return family

    async def _allocate_invite_code(self, db: AsyncSession) -> str:
        for _ in range(INVITE_CODE_ATTEMPTS):
            code = generate_invite_code()
            taken = await db.execute(select(Family.id).where(Family.invite_code == code))
            if taken.first() is None:
                return code
        raise DatabaseError(
            message="Could not create a family right now. Please try again.",
            context={"reason": "invite_code_exhausted", "attempts": INVITE_CODE_ATTEMPTS},
        )

    async def _primary_family(self, db: AsyncSession, user_id: uuid.UUID) -> Optional[FamilyOut]:
        membership = await get_primary_membership(db, user_id)
        if membership is None:
            return None
        family = await db.get(Family, membership.family_id)
        return self._family_out(family, membership.role)

    @staticmethod
    def _family_out(family: Family, role: FamilyRole) -> FamilyOut:
        return FamilyOut(id=family.id, name=family.name, invite_code=family.invite_code, role=role)


# ── Singleton Instance ────────────────────────────────────────────────────
auth_service = AuthService()
