"""
HTTP routes for the blog post API.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from blog_backend.db import DbClient
from blog_backend.dependencies import get_db_client
from blog_backend.filters import filter_posts
from blog_backend.schemas import (
    BlogPostCreate,
    BlogPostResponse,
    BlogPostStatsResponse,
    BlogPostUpdate,
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    parse_payload,
)

logger = logging.getLogger(__name__)

router = APIRouter()

NOT_FOUND = "Blog post not found"

_errors = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}
_item_errors = {**_errors, 404: {"model": ErrorResponse}}


@router.get("/health", response_model=HealthResponse)
async def health(db: DbClient = Depends(get_db_client)):
    return HealthResponse(status="ok", backend=db.backend_name)


@router.get(
    "/blog-posts", response_model=List[BlogPostResponse], responses=_errors
)
async def list_blog_posts(
    search: Optional[str] = Query(None, description="Text search across title, content, excerpt, category and tags"),
    status: Optional[str] = Query(None, description="Exact status, or 'all'"),
    category: Optional[str] = Query(None, description="Exact category, or 'all'"),
    db: DbClient = Depends(get_db_client),
):
    """
    List posts newest first. ``search``, ``status`` and ``category`` narrow
    the result jointly.
    """
    posts = await db.get_all_blog_posts()
    posts = filter_posts(posts, search=search, status=status, category=category)
    return [post.as_dict() for post in posts]


@router.get(
    "/blog-posts/stats", response_model=BlogPostStatsResponse, responses=_errors
)
async def blog_post_stats(db: DbClient = Depends(get_db_client)):
    stats = await db.get_blog_post_stats()
    return stats.as_dict()


@router.get(
    "/blog-posts/{post_id}", response_model=BlogPostResponse, responses=_item_errors
)
async def get_blog_post(post_id: int, db: DbClient = Depends(get_db_client)):
    post = await db.get_blog_post(post_id)
    if not post:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return post.as_dict()


@router.post(
    "/blog-posts",
    response_model=BlogPostResponse,
    status_code=201,
    responses=_errors,
)
async def create_blog_post(
    payload: Any = Body(...), db: DbClient = Depends(get_db_client)
):
    logger.debug("Received blog post data: %s", payload)
    data = parse_payload(BlogPostCreate, payload)
    post = await db.create_blog_post(data)
    logger.info("Created blog post %d", post.id)
    return post.as_dict()


@router.patch(
    "/blog-posts/{post_id}", response_model=BlogPostResponse, responses=_item_errors
)
async def update_blog_post(
    post_id: int,
    payload: Any = Body(...),
    db: DbClient = Depends(get_db_client),
):
    data = parse_payload(BlogPostUpdate, payload)
    post = await db.update_blog_post(post_id, data)
    if not post:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return post.as_dict()


@router.delete(
    "/blog-posts/{post_id}", response_model=MessageResponse, responses=_item_errors
)
async def delete_blog_post(post_id: int, db: DbClient = Depends(get_db_client)):
    deleted = await db.delete_blog_post(post_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    logger.info("Deleted blog post %d", post_id)
    return MessageResponse(message="Blog post deleted successfully")
