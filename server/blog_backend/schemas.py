"""
Pydantic schemas for payload validation and HTTP responses.

Wire names are camelCase (``featuredImage``, ``publishDate``...) while the
Python attributes stay snake_case; both spellings are accepted on input.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Literal, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from blog_backend.errors import ValidationError
from blog_backend.records import PostStatus

ModelT = TypeVar("ModelT", bound=BaseModel)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        extra="ignore",
    )


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    try:
        return value.astimezone(timezone.utc)
    except OverflowError as exc:
        raise ValueError("publishDate out of range") from exc


class BlogPostCreate(CamelModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    excerpt: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    status: PostStatus = Field(default=PostStatus.DRAFT, validate_default=True)
    featured_image: Optional[str] = None
    meta_description: Optional[str] = None
    tags: Optional[List[str]] = None
    # ISO-8601 date-time string on the wire; naive values are taken as UTC.
    publish_date: Optional[datetime] = None

    @field_validator("publish_date")
    @classmethod
    def _normalize_publish_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class BlogPostUpdate(CamelModel):
    """Partial update: only the fields present in the payload are applied."""

    title: Optional[str] = Field(default=None, min_length=1)
    content: Optional[str] = Field(default=None, min_length=1)
    excerpt: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=100)
    status: Optional[PostStatus] = None
    featured_image: Optional[str] = None
    meta_description: Optional[str] = None
    tags: Optional[List[str]] = None
    publish_date: Optional[datetime] = None

    @field_validator("title", "content", "status", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("Field may not be null")
        return value

    @field_validator("publish_date")
    @classmethod
    def _normalize_publish_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    def changes(self) -> dict:
        """Return only the explicitly supplied fields, keyed by attribute name."""
        return self.model_dump(exclude_unset=True)


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


def parse_payload(model: Type[ModelT], data: Any) -> ModelT:
    """
    Validate ``data`` against ``model`` and translate pydantic failures into
    the backend's ``ValidationError``.
    """
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(field_errors(exc.errors())) from exc


def field_errors(errors: List[dict]) -> List[dict]:
    results = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        results.append(
            {"field": ".".join(loc) or "body", "reason": error.get("msg", "Invalid value")}
        )
    return results


class BlogPostResponse(CamelModel):
    id: int
    title: str
    content: str
    excerpt: Optional[str] = None
    category: Optional[str] = None
    status: str
    featured_image: Optional[str] = None
    meta_description: Optional[str] = None
    tags: Optional[List[str]] = None
    publish_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class BlogPostStatsResponse(CamelModel):
    total_posts: int
    published_posts: int
    draft_posts: int
    monthly_posts: int


class MessageResponse(BaseModel):
    message: str


class FieldError(BaseModel):
    field: str
    reason: str


class ErrorResponse(BaseModel):
    message: str
    errors: Optional[List[FieldError]] = None


class HealthResponse(BaseModel):
    status: Literal["ok"]
    backend: str
