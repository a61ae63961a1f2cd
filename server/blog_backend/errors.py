"""
Exception types shared by the storage backends and the HTTP layer.
"""

from __future__ import annotations

from typing import Iterable


class BlogBackendError(Exception):
    """Base class for errors raised by the blog backend."""


class ValidationError(BlogBackendError):
    """A payload failed the create/update schema.

    ``errors`` holds one ``{"field": ..., "reason": ...}`` dict per failure.
    """

    def __init__(self, errors: Iterable[dict]):
        self.errors = list(errors)
        fields = ", ".join(e.get("field", "?") for e in self.errors)
        super().__init__(f"Invalid data: {fields}" if fields else "Invalid data")


class StorageUnavailable(BlogBackendError):
    """The storage backend could not be reached or the query failed."""


class UniquenessViolation(BlogBackendError):
    """A unique column (username) already holds the given value."""

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"{field} already exists: {value!r}")
