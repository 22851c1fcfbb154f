"""
Baby Diary Backend — Upload Pipeline
======================================

What:  Validates, transforms and stores uploaded photos and videos, records
       each stored file as a MediaAsset, and deletes them again on request.
How:   Cheap checks first (count, declared MIME type, size), then per-file
       processing in parallel: Pillow work runs in a worker thread, storage
       writes go through the configured backend (local disk or S3).
Who:   Called by routes/upload.py.

Per-file Processing:
    image/*  decode with Pillow (undecodable → 400)
             → EXIF orientation → fit within IMAGE_MAX_DIMENSION (no upscale)
             → JPEG @ IMAGE_QUALITY
             → center-cropped THUMBNAIL_SIZE² JPEG @ THUMBNAIL_QUALITY
    video/*  stored unchanged, no thumbnail

All-or-nothing Batches:
    If any file of a request fails, every object already written for that
    request is deleted before the error is returned, so a failed upload
    leaves no orphans in storage.
"""

import asyncio
import io
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from fastapi import UploadFile
from PIL import Image, ImageOps, UnidentifiedImageError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from babydiary.config import settings
from babydiary.exceptions import (
    DatabaseError,
    FileStorageError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from babydiary.models.media_asset import MediaAsset
from babydiary.schemas.upload import DeleteFileRequest, UploadedFileOut, UploadResult
from babydiary.services.storage import (
    IMAGES,
    THUMBNAILS,
    VIDEOS,
    StorageBackend,
    get_storage,
)

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
# Declared MIME type → extension used for the stored file name
ALLOWED_MIME_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
    "video/x-msvideo": ".avi",
    "video/x-matroska": ".mkv",
    "video/webm": ".webm",
}

# Formats Pillow must detect for a declared image/* upload (MPO = multi-frame JPEG from phones)
DECODABLE_IMAGE_FORMATS = {"JPEG", "MPO", "PNG", "GIF", "WEBP"}

OUTPUT_IMAGE_MIME = "image/jpeg"


@dataclass
class IncomingFile:
    filename: str
    mimetype: str
    content: bytes

    @property
    def is_image(self) -> bool:
        return self.mimetype.startswith("image/")


@dataclass
class ProcessedFile:
    descriptor: UploadedFileOut
    keys: List[str] = field(default_factory=list)


def _flatten_to_rgb(im: Image.Image) -> Image.Image:
    """JPEG has no alpha channel: composite transparent images onto white."""
    if im.mode in ("RGBA", "LA") or (im.mode == "P" and "transparency" in im.info):
        im = im.convert("RGBA")
        background = Image.new("RGB", im.size, (255, 255, 255))
        background.paste(im, mask=im.split()[3])
        return background
    if im.mode != "RGB":
        return im.convert("RGB")
    return im


def _encode_jpeg(im: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    im.save(buffer, "JPEG", quality=quality, optimize=True, progressive=True)
    return buffer.getvalue()


class FileService:
    """
    Upload validation, image transformation and storage orchestration.

    Args:
        storage: Override the configured backend (used in tests).
    """

    def __init__(self, storage: Optional[StorageBackend] = None):
        self._storage = storage

    @property
    def storage(self) -> StorageBackend:
        return self._storage or get_storage()

    # ── Validation ────────────────────────────────────────────────────────

    def validate_count(self, count: int) -> None:
        if count == 0:
            raise ValidationError(message="No files were uploaded", field="files")
        if count > settings.max_files_per_request:
            raise ValidationError(
                message=f"You can upload at most {settings.max_files_per_request} files at once",
                field="files",
                context={"count": count, "max": settings.max_files_per_request},
            )

    def validate_mime_type(self, content_type: Optional[str], filename: str) -> str:
        """Normalizes the declared MIME type and checks it against the allow-list."""
        mimetype = (content_type or "").split(";")[0].strip().lower()
        if mimetype not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=(
                    f"File type '{mimetype or 'unknown'}' of '{filename}' is not supported. "
                    "Upload JPEG, PNG, GIF or WebP images, or MP4, MOV, AVI, MKV or WebM videos."
                ),
                field="files",
                context={"mimetype": mimetype, "filename": filename},
            )
        return mimetype

    def validate_size(self, size: int, filename: str) -> None:
        max_mb = settings.max_file_size / (1024 * 1024)
        if size == 0:
            raise ValidationError(message=f"File '{filename}' is empty", field="files")
        if size > settings.max_file_size:
            raise ValidationError(
                message=f"File '{filename}' exceeds the maximum size of {max_mb:.0f}MB",
                field="files",
                context={"max_size": settings.max_file_size, "filename": filename},
            )

    async def read_uploads(self, uploads: Sequence[UploadFile]) -> List[IncomingFile]:
        """
        Validates a multipart batch and reads it into memory.

        Each read is capped at MAX_FILE_SIZE + 1 bytes, so an oversized file
        is detected without buffering all of it.
        """
        self.validate_count(len(uploads))
        incoming: List[IncomingFile] = []
        for upload in uploads:
            filename = upload.filename or "unnamed"
            mimetype = self.validate_mime_type(upload.content_type, filename)
            content = await upload.read(settings.max_file_size + 1)
            self.validate_size(len(content), filename)
            incoming.append(IncomingFile(filename=filename, mimetype=mimetype, content=content))
        return incoming

    # ── Image Transform (runs in a worker thread) ─────────────────────────

    def transform_image(self, content: bytes, filename: str = "image") -> Tuple[bytes, bytes]:
        """
        Decodes, orients, resizes and re-encodes an image.

        Returns:
            (display JPEG bytes, thumbnail JPEG bytes)

        Raises:
            ValidationError: the bytes are not a decodable supported image
        """
        try:
            with Image.open(io.BytesIO(content)) as probe:
                detected = probe.format
                probe.verify()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
            raise ValidationError(
                message=f"File '{filename}' is not a valid image",
                field="files",
                context={"filename": filename, "error_type": type(e).__name__},
            )
        if detected not in DECODABLE_IMAGE_FORMATS:
            raise ValidationError(
                message=f"File '{filename}' is not a supported image format",
                field="files",
                context={"filename": filename, "detected_format": detected},
            )

        # verify() only checks structure; truncated pixel data surfaces on the full decode
        try:
            return self._render(content)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
            raise ValidationError(
                message=f"File '{filename}' is not a valid image",
                field="files",
                context={"filename": filename, "error_type": type(e).__name__, "stage": "decode"},
            )

    def _render(self, content: bytes) -> Tuple[bytes, bytes]:
        max_dim = settings.image_max_dimension
        thumb_size = settings.thumbnail_size
        # verify() leaves the image unusable; decode again for the real work
        with Image.open(io.BytesIO(content)) as im:
            im = _flatten_to_rgb(ImageOps.exif_transpose(im))
            display = im.copy()
            # thumbnail() only ever shrinks and keeps the aspect ratio
            display.thumbnail((max_dim, max_dim), Image.Resampling.LANCZOS)
            thumb = ImageOps.fit(
                im,
                (thumb_size, thumb_size),
                Image.Resampling.LANCZOS,
                centering=(0.5, 0.5),
            )
            return (
                _encode_jpeg(display, settings.image_quality),
                _encode_jpeg(thumb, settings.thumbnail_quality),
            )

    # ── Upload ────────────────────────────────────────────────────────────

    async def upload_files(
        self,
        db: AsyncSession,
        uploads: Sequence[UploadFile],
        uploader_id: uuid.UUID,
    ) -> UploadResult:
        incoming = await self.read_uploads(uploads)

        outcomes = await asyncio.gather(
            *(self._process(item) for item in incoming),
            return_exceptions=True,
        )
        stored = [o for o in outcomes if isinstance(o, ProcessedFile)]
        failures = [o for o in outcomes if isinstance(o, BaseException)]

        if failures:
            await self._discard([key for item in stored for key in item.keys])
            logger.warning(
                "Upload batch failed (%d of %d files); removed %d stored files",
                len(failures),
                len(incoming),
                len(stored),
            )
            raise failures[0]

        db.add_all(
            MediaAsset(
                url=item.descriptor.url,
                storage_key=item.descriptor.public_id,
                thumbnail_url=item.descriptor.thumbnail_url,
                thumbnail_key=item.descriptor.thumbnail_public_id,
                mimetype=item.descriptor.mimetype,
                resource_type=item.descriptor.resource_type,
                size=item.descriptor.size,
                uploader_id=uploader_id,
            )
            for item in stored
        )
        try:
            await db.flush()
        except SQLAlchemyError as e:
            await self._discard([key for item in stored for key in item.keys])
            logger.error("Failed to record uploads: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the upload. Please try again.",
                context={"error_type": type(e).__name__},
            )

        files = [item.descriptor for item in stored]
        logger.info("User %s uploaded %d files to %s storage", uploader_id, len(files), self.storage.name)
        return UploadResult(files=files, count=len(files))

    async def _process(self, item: IncomingFile) -> ProcessedFile:
        storage = self.storage
        if not item.is_image:
            name = f"{uuid.uuid4().hex}{ALLOWED_MIME_TYPES[item.mimetype]}"
            obj = await storage.save(VIDEOS, name, item.content, item.mimetype)
            return ProcessedFile(
                descriptor=UploadedFileOut(
                    original_name=item.filename,
                    file_name=name,
                    mimetype=item.mimetype,
                    size=len(item.content),
                    url=obj.url,
                    public_id=obj.key,
                    resource_type="video",
                ),
                keys=[obj.key],
            )

        display, thumb = await asyncio.to_thread(self.transform_image, item.content, item.filename)
        name = f"{uuid.uuid4().hex}.jpg"
        obj = await storage.save(IMAGES, name, display, OUTPUT_IMAGE_MIME)
        try:
            thumb_obj = await storage.save(THUMBNAILS, f"thumb_{name}", thumb, OUTPUT_IMAGE_MIME)
        except FileStorageError:
            await self._discard([obj.key])
            raise

        return ProcessedFile(
            descriptor=UploadedFileOut(
                original_name=item.filename,
                file_name=name,
                mimetype=OUTPUT_IMAGE_MIME,
                size=len(display),
                url=obj.url,
                public_id=obj.key,
                thumbnail_url=thumb_obj.url,
                thumbnail_public_id=thumb_obj.key,
                resource_type="image",
            ),
            keys=[obj.key, thumb_obj.key],
        )

    async def _discard(self, keys: List[str]) -> None:
        """Best-effort removal of objects written by a failed batch."""
        for key in keys:
            try:
                await self.storage.delete(key)
            except FileStorageError as e:
                logger.warning("Failed to clean up %s: %s", key, e.context)

    # ── Delete ────────────────────────────────────────────────────────────

    async def delete_file(self, db: AsyncSession, request: DeleteFileRequest, user_id: uuid.UUID) -> None:
        """
        Deletes an uploaded file (and its thumbnail) by publicId or fileName.

        Only files with an upload record can be deleted, which keeps arbitrary
        paths and keys out of the storage backend.
        """
        if request.public_id:
            keys = [request.public_id]
        else:
            name = request.file_name or ""
            if Path(name).name != name or name in {"", ".", ".."}:
                raise ValidationError(
                    message="Invalid file name",
                    field="fileName",
                    errors=["fileName: must be a plain file name"],
                )
            keys = self.storage.keys_for_name(name)

        result = await db.execute(select(MediaAsset).where(MediaAsset.storage_key.in_(keys)))
        asset = result.scalars().first()
        if asset is None:
            raise NotFoundError(resource="file", resource_id=keys[0])
        if asset.uploader_id is not None and asset.uploader_id != user_id:
            raise ForbiddenError(
                message="Only the uploader can delete this file",
                context={"asset_id": str(asset.id), "user_id": str(user_id)},
            )

        await self.storage.delete(asset.storage_key)
        if asset.thumbnail_key:
            await self.storage.delete(asset.thumbnail_key)
        await db.delete(asset)
        await db.flush()
        logger.info("User %s deleted file %s", user_id, asset.storage_key)


# ── Singleton Instance ────────────────────────────────────────────────────
file_service = FileService()
