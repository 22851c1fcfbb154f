"""
Baby Diary Backend — MediaAsset SQLAlchemy Model
==================================================

What:  One row per file accepted by the upload pipeline.
Who:   Written by UploadService; read by PostService to decide a post's
       media_type from the real MIME type of its first media URL.

Columns:
    - url / thumbnail_url: what clients put into a post's mediaUrls
    - storage_key / thumbnail_key: file name (local backend) or object key
      (object-storage backend); used for deletion
    - mimetype: MIME type of the stored bytes (images are re-encoded to JPEG)
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from babydiary.database import Base
from babydiary.models.mixins import UUIDPrimaryKeyMixin, utcnow


class MediaAsset(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "media_assets"

    url: Mapped[str] = mapped_column(String(2048), nullable=False, unique=True)
    storage_key: Mapped[str] = mapped_column(String(1024), nullable=False, index=True)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    thumbnail_key: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    mimetype: Mapped[str] = mapped_column(String(100), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(10), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    uploader_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<MediaAsset(id={self.id}, mimetype='{self.mimetype}', key='{self.storage_key}')>"
