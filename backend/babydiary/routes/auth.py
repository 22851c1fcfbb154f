"""
Baby Diary Backend — Auth Route Handlers
==========================================

What:  POST /api/auth/register, POST /api/auth/login,
       GET /api/auth/me, POST /api/auth/logout.
How:   Thin handlers: validate the body (pydantic), call AuthService, wrap
       the result in the success envelope.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from babydiary.database import get_db_session
from babydiary.dependencies import AuthContext, get_current_user
from babydiary.schemas.auth import AuthPayload, LoginRequest, MePayload, RegisterRequest
from babydiary.schemas.common import ApiResponse, ErrorResponse
from babydiary.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=ApiResponse[AuthPayload],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid input or invite code", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
    summary="Create an account and a family (or join one by invite code)",
)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[AuthPayload]:
    payload = await auth_service.register(db, body)
    return ApiResponse(data=payload, message="Registration successful")


@router.post(
    "/login",
    response_model=ApiResponse[AuthPayload],
    responses={401: {"description": "Invalid email or password", "model": ErrorResponse}},
    summary="Exchange email and password for a bearer token",
)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[AuthPayload]:
    payload = await auth_service.login(db, body)
    return ApiResponse(data=payload, message="Login successful")


@router.get(
    "/me",
    response_model=ApiResponse[MePayload],
    responses={401: {"description": "Missing or invalid token", "model": ErrorResponse}},
    summary="Current user and family",
)
async def me(
    user: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[MePayload]:
    return ApiResponse(data=await auth_service.me(db, user.user_id))


@router.post(
    "/logout",
    response_model=ApiResponse[None],
    summary="Log out (client discards its token)",
)
async def logout(user: AuthContext = Depends(get_current_user)) -> ApiResponse[None]:
    """
    Tokens are stateless and there is no revocation list, so logging out is
    the client dropping its token. The endpoint exists so the client has one
    place to call and so the token is at least checked once more.
    """
    logger.info("User %s logged out", user.user_id)
    return ApiResponse(message="Logged out successfully")
