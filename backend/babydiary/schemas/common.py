"""
Baby Diary Backend — Shared Schema Building Blocks
====================================================

What:  Base model, success envelope and pagination block shared by every
       resource schema.
How:   CamelModel turns snake_case attributes into the camelCase JSON the
       frontend expects (`media_urls` → `mediaUrls`) and still accepts
       snake_case input. ApiResponse wraps every successful payload.

Envelope:
    Success: {"success": true, "data": {...}, "message": "..."}
    Error:   {"success": false, "error": "not_found", "message": "..."}
             (built by the exception handlers in main.py)
"""

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(BaseModel, Generic[T]):
    """Uniform success envelope returned by every /api route."""

    success: bool = Field(default=True)
    data: Optional[T] = Field(default=None)
    message: Optional[str] = Field(default=None)


class ErrorResponse(BaseModel):
    """
    Error envelope (documentation only; handlers build it as a dict).

    Example:
        {
            "success": false,
            "error": "validation_error",
            "message": "Invalid input data",
            "errors": ["password: String should have at least 6 characters"]
        }
    """

    success: bool = Field(default=False)
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    errors: Optional[List[str]] = Field(default=None, description="One entry per violated rule")


class Pagination(CamelModel):
    """
    Offset pagination block.

    current:     requested page (1-based)
    total:       number of pages, ceil(totalCount / limit)
    count:       items on this page
    totalCount:  items across all pages
    """

    current: int
    total: int
    count: int
    total_count: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, count: int, total_count: int) -> "Pagination":
        total_pages = (total_count + limit - 1) // limit
        return cls(
            current=page,
            total=total_pages,
            count=count,
            total_count=total_count,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class HealthResponse(BaseModel):
    """
    What:  Health check response showing service and database status.
    Who:   Returned by GET /health for load balancer and Docker probes.
    """

    status: str = Field(description="Overall service status: healthy or unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    timestamp: str = Field(description="Server time (UTC ISO 8601)")
    uptime_seconds: float = Field(description="Seconds since service started")
