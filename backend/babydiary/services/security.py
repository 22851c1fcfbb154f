"""
Baby Diary Backend — Credential & Password Primitives
=======================================================

What:  Issues/verifies signed bearer tokens and hashes/verifies passwords.
How:   python-jose for HS256 JWTs, bcrypt for salted password hashes.
Who:   AuthService (issue, hash, verify) and the authentication dependency
       (decode).

Token Claims:
    sub: user id (string UUID)
    iat: issued-at
    exp: iat + JWT_EXPIRE_MINUTES

    There is no revocation list: a token stays valid until `exp`, and
    logout is a client-side operation.
"""

import functools
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from babydiary.config import settings
from babydiary.exceptions import UnauthorizedError

# bcrypt only looks at the first 72 bytes; truncate explicitly so long
# passphrases hash and verify the same way on every bcrypt release
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


@functools.lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password("baby-diary-timing-equalizer")


def burn_password_check(password: str) -> None:
    """Runs a full bcrypt verification for logins with an unknown email."""
    verify_password(password, _dummy_hash())


def create_access_token(user_id: uuid.UUID) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_expire_minutes),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> uuid.UUID:
    """
    Verifies signature and expiry and returns the user id from `sub`.

    Raises:
        UnauthorizedError: expired, tampered, malformed, or missing `sub`
    """
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise UnauthorizedError(message="Token has expired. Please log in again.")
    except JWTError as e:
        raise UnauthorizedError(
            message="Invalid authentication token",
            context={"jwt_error": type(e).__name__},
        )

    subject = claims.get("sub")
    if not isinstance(subject, str):
        raise UnauthorizedError(message="Invalid authentication token")
    try:
        return uuid.UUID(subject)
    except ValueError:
        raise UnauthorizedError(message="Invalid authentication token")
