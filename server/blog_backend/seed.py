"""
Illustrative posts inserted when a backend starts empty.
"""

from __future__ import annotations

from typing import List

from blog_backend.schemas import BlogPostCreate

_SAMPLE_POSTS = [
    {
        "title": "Ultimate Guide to Hiking in the Swiss Alps",
        "content": (
            "Discover breathtaking trails and hidden gems in the Swiss Alps. "
            "This comprehensive guide covers everything from beginner-friendly "
            "paths to challenging mountain routes."
        ),
        "excerpt": "Discover breathtaking trails and hidden gems...",
        "category": "Travel",
        "status": "published",
        "featuredImage": "https://images.unsplash.com/photo-1506905925346-21bda4d32df4?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&h=600",
        "metaDescription": "Complete guide to hiking in the Swiss Alps with trail recommendations and tips",
        "tags": ["hiking", "switzerland", "alps", "travel"],
        "publishDate": "2023-12-15T10:00:00.000Z",
    },
    {
        "title": "Food Adventures in Tokyo's Street Markets",
        "content": (
            "Explore authentic Japanese cuisine and culture through Tokyo's "
            "vibrant street food scene. From traditional ramen to modern "
            "fusion dishes."
        ),
        "excerpt": "Explore authentic Japanese cuisine and culture...",
        "category": "Food",
        "status": "draft",
        "featuredImage": "https://images.unsplash.com/photo-1578662996442-48f60103fc96?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&h=600",
        "metaDescription": "Discover Tokyo's best street food markets and hidden culinary gems",
        "tags": ["food", "tokyo", "japan", "street food"],
        "publishDate": "2023-12-12T09:00:00.000Z",
    },
    {
        "title": "Hidden Gems of the Greek Islands",
        "content": (
            "Discover secluded beaches and ancient ruins away from the tourist "
            "crowds. These lesser-known Greek islands offer pristine beauty "
            "and rich history."
        ),
        "excerpt": "Discover secluded beaches and ancient ruins...",
        "category": "Culture",
        "status": "published",
        "featuredImage": "https://images.unsplash.com/photo-1533105079780-92b9be482077?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&h=600",
        "metaDescription": "Explore hidden Greek islands with pristine beaches and ancient history",
        "tags": ["greece", "islands", "culture", "travel"],
        "publishDate": "2023-12-10T08:00:00.000Z",
    },
]


def sample_posts() -> List[BlogPostCreate]:
    return [BlogPostCreate.model_validate(post) for post in _SAMPLE_POSTS]
