"""Uniform response envelope returned by every endpoint."""
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class PaginationMeta(BaseModel):
    """Page information for list responses."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    page: int
    limit: int
    total: int
    total_pages: int


class ApiResponse(BaseModel, Generic[T]):
    """
    Response envelope.

    Successful responses carry ``data`` (and ``meta`` for lists). Failures carry
    ``error`` and optionally ``details`` or ``retryAfter``. Routes serialize with
    ``exclude_none`` so absent fields are omitted rather than null.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    data: T | None = None
    error: str | None = None
    message: str | None = None
    meta: PaginationMeta | None = None
    details: Any = None
    retry_after: int | None = None


def error_body(
    error: str,
    details: Any = None,
    retry_after: int | None = None,
) -> dict[str, Any]:
    """Serialize a failure envelope for a JSONResponse."""
    return ApiResponse[None](
        success=False,
        error=error,
        details=details,
        retry_after=retry_after,
    ).model_dump(mode="json", by_alias=True, exclude_none=True)
