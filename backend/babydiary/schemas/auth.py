"""
Baby Diary Backend — Auth Request/Response Schemas
====================================================

What:  Contracts for /api/auth/register, /login, /me and /logout.
How:   Pydantic validates field lengths and email format before the request
       reaches AuthService; violations become a 400 with an `errors` list.

Validation Rules:
    - email:      valid address, stored lower-cased
    - password:   at least 6 characters
    - name:       2-50 characters (after trimming)
    - familyName: optional, 2-50 characters
    - inviteCode: optional; when present the user joins that family
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from babydiary.models.family import FamilyRole
from babydiary.schemas.common import CamelModel


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    name: str = Field(min_length=2, max_length=50)
    family_name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    invite_code: Optional[str] = Field(default=None, max_length=16)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("name", "family_name", mode="before")
    @classmethod
    def strip_names(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("invite_code", mode="before")
    @classmethod
    def normalize_invite_code(cls, v):
        # Blank means "no invite code": the frontend sends "" for an empty input
        if isinstance(v, str):
            v = v.strip().upper()
            return v or None
        return v


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class UserOut(CamelModel):
    """Public view of a user. Never carries the password hash."""

    id: uuid.UUID
    email: str
    name: str
    profile_image: Optional[str] = None
    created_at: datetime


class FamilyOut(CamelModel):
    """The caller's family together with the caller's role in it."""

    id: uuid.UUID
    name: str
    invite_code: str
    role: FamilyRole


class AuthPayload(CamelModel):
    """Returned by register (201) and login (200)."""

    user: UserOut
    family: Optional[FamilyOut] = None
    token: str


class MePayload(CamelModel):
    user: UserOut
    family: Optional[FamilyOut] = None
