"""
Plain records returned by every storage backend.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import List, Optional


class PostStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    SCHEDULED = "scheduled"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class User:
    id: int
    username: str
    # Opaque, already-hashed credential; never inspected here.
    password: str


@dataclass
class BlogPost:
    id: int
    title: str
    content: str
    excerpt: Optional[str] = None
    category: Optional[str] = None
    status: str = PostStatus.DRAFT.value
    featured_image: Optional[str] = None
    meta_description: Optional[str] = None
    tags: Optional[List[str]] = None
    publish_date: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def copy(self) -> "BlogPost":
        return replace(self, tags=list(self.tags) if self.tags is not None else None)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "excerpt": self.excerpt,
            "category": self.category,
            "status": self.status,
            "featuredImage": self.featured_image,
            "metaDescription": self.meta_description,
            "tags": self.tags,
            "publishDate": _isoformat(self.publish_date),
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }


@dataclass
class BlogPostStats:
    total_posts: int = 0
    published_posts: int = 0
    draft_posts: int = 0
    monthly_posts: int = 0

    def as_dict(self) -> dict:
        return {
            "totalPosts": self.total_posts,
            "publishedPosts": self.published_posts,
            "draftPosts": self.draft_posts,
            "monthlyPosts": self.monthly_posts,
        }


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
