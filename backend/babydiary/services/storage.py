"""
Baby Diary Backend — Upload Storage Backends
==============================================

What:  Where uploaded bytes end up: local disk or an S3-compatible bucket.
How:   Both backends expose the same three async operations:
           save(folder, name, content, content_type) → StoredObject
           delete(key)
           keys_for_name(name) → keys a bare file name may refer to
       STORAGE_BACKEND picks one at startup via get_storage().

Key Layout:
    local:  images/<name>, videos/<name>, thumbnails/thumb_<name>
            under UPLOAD_ROOT, served at PUBLIC_UPLOAD_PATH (/uploads)
    s3:     <S3_FOLDER_PREFIX>/images|videos|thumbnails/<name>
            URLs built from S3_PUBLIC_BASE_URL

    The key is what the API calls `publicId`.
"""

import abc
import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import aiofiles
import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from babydiary.config import Settings, settings
from babydiary.exceptions import FileStorageError

logger = logging.getLogger(__name__)

IMAGES = "images"
VIDEOS = "videos"
THUMBNAILS = "thumbnails"


@dataclass(frozen=True)
class StoredObject:
    key: str
    url: str


class StorageBackend(abc.ABC):
    """Interface shared by the local and object-storage backends."""

    name = "abstract"

    @abc.abstractmethod
    async def save(self, folder: str, name: str, content: bytes, content_type: str) -> StoredObject:
        ...

    @abc.abstractmethod
    async def delete(self, key: str) -> None:
        """Removes an object; deleting a missing object is not an error."""

    @abc.abstractmethod
    def keys_for_name(self, name: str) -> List[str]:
        ...


# ══════════════════════════════════════════════════════════════════════════
# Local Disk
# ══════════════════════════════════════════════════════════════════════════


class LocalStorage(StorageBackend):
    """
    Writes under UPLOAD_ROOT with aiofiles.

    Every key is resolved and checked to stay inside the root, so a crafted
    key such as "../../etc/passwd" never reaches the filesystem.
    """

    name = "local"

    def __init__(self, root: str, public_path: str):
        self.root = Path(root).resolve()
        self.public_path = "/" + public_path.strip("/")

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if path == self.root or self.root not in path.parents:
            raise FileStorageError(
                message="Invalid file path",
                context={"key": key},
            )
        return path

    async def save(self, folder: str, name: str, content: bytes, content_type: str) -> StoredObject:
        key = f"{folder}/{name}"
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded file. Please try again.",
                context={"path": str(path), "os_error": str(e)},
            )
        logger.info("File stored: %s (%d bytes)", key, len(content))
        return StoredObject(key=key, url=f"{self.public_path}/{key}")

    async def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            os.remove(path)
            logger.info("File deleted: %s", key)
        except FileNotFoundError:
            logger.debug("Delete: file already gone: %s", key)
        except OSError as e:
            raise FileStorageError(
                message="Failed to delete file. Please try again.",
                context={"path": str(path), "os_error": str(e)},
            )

    def keys_for_name(self, name: str) -> List[str]:
        return [f"{IMAGES}/{name}", f"{VIDEOS}/{name}"]


# ══════════════════════════════════════════════════════════════════════════
# S3-Compatible Object Storage
# ══════════════════════════════════════════════════════════════════════════


class S3Storage(StorageBackend):
    """
    Stores objects in an S3-compatible bucket (AWS S3, Cloudflare R2, MinIO).

    boto3 is synchronous; every call runs in a worker thread so the event
    loop keeps serving other requests during the network round trip.
    """

    name = "s3"

    def __init__(self, config: Settings):
        self.bucket = config.s3_bucket
        self.prefix = config.s3_folder_prefix.strip("/")
        self.public_base_url = config.s3_public_base_url.rstrip("/")
        self._config = config
        self._client = None

    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self._config.s3_endpoint_url or None,
                region_name=self._config.s3_region,
                aws_access_key_id=self._config.s3_access_key_id or None,
                aws_secret_access_key=self._config.s3_secret_access_key or None,
                config=BotoConfig(signature_version="s3v4"),
            )
        return self._client

    def _key(self, folder: str, name: str) -> str:
        return f"{self.prefix}/{folder}/{name}" if self.prefix else f"{folder}/{name}"

    def _url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    async def save(self, folder: str, name: str, content: bytes, content_type: str) -> StoredObject:
        key = self._key(folder, name)
        try:
            await asyncio.to_thread(
                self.client().put_object,
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Object upload failed for %s: %s", key, str(e))
            raise FileStorageError(
                message="Failed to save uploaded file. Please try again.",
                context={"key": key, "error_type": type(e).__name__},
            )
        logger.info("Object stored: %s (%d bytes)", key, len(content))
        return StoredObject(key=key, url=self._url(key))

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self.client().delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error("Object delete failed for %s: %s", key, str(e))
            raise FileStorageError(
                message="Failed to delete file. Please try again.",
                context={"key": key, "error_type": type(e).__name__},
            )
        logger.info("Object deleted: %s", key)

    def keys_for_name(self, name: str) -> List[str]:
        return [self._key(IMAGES, name), self._key(VIDEOS, name)]


# ── Backend Selection ─────────────────────────────────────────────────────
_storage: Optional[StorageBackend] = None


def build_storage(config: Settings) -> StorageBackend:
    if config.storage_backend == "s3":
        return S3Storage(config)
    return LocalStorage(config.upload_root, config.public_upload_path)


def get_storage() -> StorageBackend:
    """The process-wide backend chosen by STORAGE_BACKEND."""
    global _storage
    if _storage is None:
        _storage = build_storage(settings)
        logger.info("Upload storage backend: %s", _storage.name)
    return _storage
