"""Upload pipeline response and delete-request schemas."""

from typing import List, Optional

from pydantic import Field, model_validator

from babydiary.schemas.common import CamelModel


class UploadedFileOut(CamelModel):
    """
    Descriptor of one stored file.

    publicId is the storage key: a relative path for the local backend, an
    object key for the object-storage backend. Clients pass it back to
    DELETE /api/upload/files.
    """

    original_name: str
    file_name: str
    mimetype: str
    size: int
    url: str
    public_id: str
    thumbnail_url: Optional[str] = None
    thumbnail_public_id: Optional[str] = None
    resource_type: str


class UploadResult(CamelModel):
    files: List[UploadedFileOut]
    count: int


class DeleteFileRequest(CamelModel):
    public_id: Optional[str] = Field(default=None, max_length=1024)
    file_name: Optional[str] = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def require_identifier(self) -> "DeleteFileRequest":
        if not (self.public_id or self.file_name):
            raise ValueError("publicId or fileName is required")
        return self
