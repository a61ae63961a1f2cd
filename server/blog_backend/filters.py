"""
Search, equality filters and aggregate counts over in-memory post lists.

Used by the HTTP layer for the combined list filter and by the in-memory
backend for its search/stats operations.
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Iterable, List, Optional

from blog_backend.records import BlogPost, BlogPostStats, PostStatus

# Filter value meaning "no constraint".
ALL = "all"


def _contains(value: Optional[str], needle: str) -> bool:
    return bool(value) and needle in value.lower()


def matches_search(post: BlogPost, query: str) -> bool:
    needle = (query or "").lower()
    if not needle:
        return True
    return (
        _contains(post.title, needle)
        or _contains(post.content, needle)
        or _contains(post.excerpt, needle)
        or _contains(post.category, needle)
        or any(_contains(tag, needle) for tag in post.tags or [])
    )


def _is_constrained(value: Optional[str]) -> bool:
    return bool(value) and value != ALL


def filter_posts(
    posts: Iterable[BlogPost],
    search: Optional[str] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
) -> List[BlogPost]:
    """Apply search, status and category as a conjunction, preserving order."""
    results = []
    for post in posts:
        if search and not matches_search(post, search):
            continue
        if _is_constrained(status) and post.status != status:
            continue
        if _is_constrained(category) and post.category != category:
            continue
        results.append(post)
    return results


def sort_newest_first(posts: Iterable[BlogPost]) -> List[BlogPost]:
    return sorted(posts, key=lambda post: (post.created_at, post.id), reverse=True)


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    """Return ``[start, end)`` of the calendar month containing ``now``."""
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def current_month_bounds_utc(tz: Optional[tzinfo] = None) -> tuple[datetime, datetime]:
    """
    Month boundaries for "now" in ``tz`` (server local zone when None),
    expressed in UTC.
    """
    # Naive local wall time converts through the system zone, DST included.
    start, end = month_bounds(datetime.now(tz))
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def compute_stats(posts: Iterable[BlogPost], tz: Optional[tzinfo] = None) -> BlogPostStats:
    start, end = current_month_bounds_utc(tz)
    stats = BlogPostStats()
    for post in posts:
        stats.total_posts += 1
        if post.status == PostStatus.PUBLISHED.value:
            stats.published_posts += 1
        elif post.status == PostStatus.DRAFT.value:
            stats.draft_posts += 1
        if start <= post.created_at < end:
            stats.monthly_posts += 1
    return stats
