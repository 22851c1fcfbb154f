"""
Baby Diary Backend — Upload Route Handlers
============================================

What:  POST /api/upload/files (multipart field `files`, 1-5 files) and
       DELETE /api/upload/files (by publicId or fileName).
Who:   The post editor uploads first, then puts the returned URLs into
       the post's mediaUrls.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from babydiary.database import get_db_session
from babydiary.dependencies import AuthContext, get_current_user
from babydiary.schemas.common import ApiResponse, ErrorResponse
from babydiary.schemas.upload import DeleteFileRequest, UploadResult
from babydiary.services.file_service import file_service

router = APIRouter(prefix="/api/upload", tags=["Upload"])


@router.post(
    "/files",
    response_model=ApiResponse[UploadResult],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "No files, too many, too large or unsupported type", "model": ErrorResponse},
        401: {"description": "Missing or invalid token", "model": ErrorResponse},
        500: {"description": "Storage failure", "model": ErrorResponse},
    },
    summary="Upload photos and videos",
)
async def upload_files(
    files: Optional[List[UploadFile]] = File(default=None, description="Up to 5 files, 10MB each"),
    user: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[UploadResult]:
    result = await file_service.upload_files(db, files or [], user.user_id)
    return ApiResponse(data=result, message=f"{result.count} file(s) uploaded")


@router.delete(
    "/files",
    response_model=ApiResponse[None],
    responses={
        403: {"description": "Uploaded by someone else", "model": ErrorResponse},
        404: {"description": "No such upload", "model": ErrorResponse},
    },
    summary="Delete an uploaded file and its thumbnail",
)
async def delete_file(
    body: DeleteFileRequest,
    user: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> ApiResponse[None]:
    await file_service.delete_file(db, body, user.user_id)
    return ApiResponse(message="File deleted")
