"""
Storage port for blog posts and users, with an in-memory implementation for
development/tests and a SQLAlchemy (asyncio) implementation for production.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timezone, tzinfo
from typing import AsyncIterator, Dict, List, Optional, Protocol

from sqlalchemy import (
    DDL,
    JSON,
    TIMESTAMP,
    Column,
    FetchedValue,
    Integer,
    String,
    Text,
    cast,
    delete,
    event,
    func,
    or_,
    select,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from blog_backend.errors import StorageUnavailable, UniquenessViolation
from blog_backend.filters import (
    compute_stats,
    current_month_bounds_utc,
    matches_search,
    sort_newest_first,
)
from blog_backend.records import BlogPost, BlogPostStats, PostStatus, User, utcnow
from blog_backend.schemas import BlogPostCreate, BlogPostUpdate, UserCreate
from blog_backend.seed import sample_posts

logger = logging.getLogger(__name__)


class DbClient(Protocol):
    """Interface for every persistence operation the API needs."""

    backend_name: str

    async def initialize(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def get_user(self, user_id: int) -> Optional[User]:
        ...

    async def get_user_by_username(self, username: str) -> Optional[User]:
        ...

    async def create_user(self, data: UserCreate) -> User:
        ...

    async def get_all_blog_posts(self) -> List[BlogPost]:
        ...

    async def get_blog_post(self, post_id: int) -> Optional[BlogPost]:
        ...

    async def create_blog_post(self, data: BlogPostCreate) -> BlogPost:
        ...

    async def update_blog_post(
        self, post_id: int, data: BlogPostUpdate
    ) -> Optional[BlogPost]:
        ...

    async def delete_blog_post(self, post_id: int) -> bool:
        ...

    async def search_blog_posts(self, query: str) -> List[BlogPost]:
        ...

    async def get_blog_posts_by_status(self, status: str) -> List[BlogPost]:
        ...

    async def get_blog_posts_by_category(self, category: str) -> List[BlogPost]:
        ...

    async def get_blog_post_stats(self) -> BlogPostStats:
        ...


class InMemoryDbClient:
    """Process-local storage for development and tests."""

    backend_name = "memory"

    def __init__(self, *, seed: bool = True, tz: Optional[tzinfo] = None):
        self.tz = tz
        self.users: Dict[int, User] = {}
        self.posts: Dict[int, BlogPost] = {}
        self._next_user_id = 1
        self._next_post_id = 1
        # Guards the id counters together with the dicts they index.
        self._lock = threading.Lock()
        if seed:
            for data in sample_posts():
                self._insert_post(data)
            logger.info("Seeded in-memory backend with %d posts", len(self.posts))

    async def initialize(self) -> None:
        return None

    async def close(self) -> None:
        return None

    def reset(self) -> None:
        """Clear all stored data and restart the id counters (useful in tests)."""
        with self._lock:
            self.users.clear()
            self.posts.clear()
            self._next_user_id = 1
            self._next_post_id = 1

    def _insert_post(self, data: BlogPostCreate) -> BlogPost:
        now = utcnow()
        with self._lock:
            post = BlogPost(
                id=self._next_post_id, created_at=now, updated_at=now, **data.model_dump()
            )
            self.posts[post.id] = post
            self._next_post_id += 1
        return post.copy()

    def _snapshot(self) -> List[BlogPost]:
        with self._lock:
            posts = [post.copy() for post in self.posts.values()]
        return sort_newest_first(posts)

    async def get_user(self, user_id: int) -> Optional[User]:
        user = self.users.get(user_id)
        return replace(user) if user else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            users = list(self.users.values())
        for user in users:
            if user.username == username:
                return replace(user)
        return None

    async def create_user(self, data: UserCreate) -> User:
        with self._lock:
            if any(user.username == data.username for user in self.users.values()):
                raise UniquenessViolation("username", data.username)
            user = User(
                id=self._next_user_id, username=data.username, password=data.password
            )
            self.users[user.id] = user
            self._next_user_id += 1
        return replace(user)

    async def get_all_blog_posts(self) -> List[BlogPost]:
        return self._snapshot()

    async def get_blog_post(self, post_id: int) -> Optional[BlogPost]:
        post = self.posts.get(post_id)
        return post.copy() if post else None

    async def create_blog_post(self, data: BlogPostCreate) -> BlogPost:
        return self._insert_post(data)

    async def update_blog_post(
        self, post_id: int, data: BlogPostUpdate
    ) -> Optional[BlogPost]:
        changes = data.changes()
        with self._lock:
            existing = self.posts.get(post_id)
            if existing is None:
                return None
            updated = replace(
                existing, **changes, updated_at=max(utcnow(), existing.created_at)
            )
            self.posts[post_id] = updated
        return updated.copy()

    async def delete_blog_post(self, post_id: int) -> bool:
        with self._lock:
            return self.posts.pop(post_id, None) is not None

    async def search_blog_posts(self, query: str) -> List[BlogPost]:
        return [post for post in self._snapshot() if matches_search(post, query)]

    async def get_blog_posts_by_status(self, status: str) -> List[BlogPost]:
        return [post for post in self._snapshot() if post.status == status]

    async def get_blog_posts_by_category(self, category: str) -> List[BlogPost]:
        return [post for post in self._snapshot() if post.category == category]

    async def get_blog_post_stats(self) -> BlogPostStats:
        return compute_stats(self._snapshot(), self.tz)


def _to_db_time(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are persisted as naive UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _escape_like(value: str) -> str:
    return value.replace("/", "//").replace("%", "/%").replace("_", "/_")


def _dump_json(value) -> str:
    return json.dumps(value, ensure_ascii=False)


class SqlDbClient:
    """
    SQLAlchemy asyncio implementation. Accepts any async SQLAlchemy URL
    (MySQL via aiomysql in production, SQLite via aiosqlite for tests).
    """

    backend_name = "sql"

    def __init__(
        self,
        database_url: str,
        *,
        pool_size: int = 10,
        tz: Optional[tzinfo] = None,
        seed: bool = True,
    ):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        self.tz = tz
        self._seed = seed
        url = make_url(database_url)
        engine_kwargs = {"pool_pre_ping": True, "json_serializer": _dump_json}
        if url.get_backend_name() != "sqlite":
            engine_kwargs.update(pool_size=pool_size, pool_recycle=1800)
        if url.get_backend_name() == "mysql":
            # Keep naive TIMESTAMP values in UTC regardless of server settings.
            engine_kwargs["connect_args"] = {"init_command": "SET time_zone = '+00:00'"}
        self.engine = create_async_engine(url, **engine_kwargs)
        self.Session = async_sessionmaker(
            bind=self.engine, class_=AsyncSession, expire_on_commit=False
        )
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create missing tables and seed sample posts into an empty table."""
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            try:
                async with self.engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
                if self._seed:
                    await self._seed_if_empty()
            except (SQLAlchemyError, OSError) as exc:
                logger.exception("Failed to initialize blog storage")
                raise StorageUnavailable("Storage backend unavailable") from exc
            self._initialized = True

    async def _seed_if_empty(self) -> None:
        async with self.Session() as session:
            existing = await session.scalar(select(BlogPostRow.id).limit(1))
            if existing is not None:
                return
            now = _to_db_time(utcnow())
            posts = sample_posts()
            for data in posts:
                session.add(_row_from_create(data, now))
            await session.commit()
            logger.info("Seeded blog_posts table with %d posts", len(posts))

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        await self.initialize()
        try:
            async with self.Session() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            logger.exception("Blog storage query failed")
            raise StorageUnavailable("Storage backend unavailable") from exc

    @staticmethod
    def _to_post(row: "BlogPostRow") -> BlogPost:
        return BlogPost(
            id=row.id,
            title=row.title,
            content=row.content,
            excerpt=row.excerpt,
            category=row.category,
            status=row.status,
            featured_image=row.featured_image,
            meta_description=row.meta_description,
            tags=list(row.tags) if row.tags is not None else None,
            publish_date=_from_db_time(row.publish_date),
            created_at=_from_db_time(row.created_at),
            updated_at=_from_db_time(row.updated_at),
        )

    @staticmethod
    def _to_user(row: "UserRow") -> User:
        return User(id=row.id, username=row.username, password=row.password)

    def _newest_first(self, stmt):
        return stmt.order_by(BlogPostRow.created_at.desc(), BlogPostRow.id.desc())

    async def _fetch_posts(self, stmt) -> List[BlogPost]:
        async with self._session() as session:
            rows = (await session.execute(self._newest_first(stmt))).scalars().all()
            return [self._to_post(row) for row in rows]

    async def get_user(self, user_id: int) -> Optional[User]:
        async with self._session() as session:
            row = await session.get(UserRow, user_id)
            return self._to_user(row) if row else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        async with self._session() as session:
            rows = (
                await session.execute(select(UserRow).where(UserRow.username == username))
            ).scalars().all()
        # MySQL's default collation compares case-insensitively.
        for row in rows:
            if row.username == username:
                return self._to_user(row)
        return None

    async def create_user(self, data: UserCreate) -> User:
        async with self._session() as session:
            row = UserRow(username=data.username, password=data.password)
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise UniquenessViolation("username", data.username) from exc
            await session.refresh(row)
            return self._to_user(row)

    async def get_all_blog_posts(self) -> List[BlogPost]:
        return await self._fetch_posts(select(BlogPostRow))

    async def get_blog_post(self, post_id: int) -> Optional[BlogPost]:
        async with self._session() as session:
            row = await session.get(BlogPostRow, post_id)
            return self._to_post(row) if row else None

    async def create_blog_post(self, data: BlogPostCreate) -> BlogPost:
        async with self._session() as session:
            row = _row_from_create(data, _to_db_time(utcnow()))
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return self._to_post(row)

    async def update_blog_post(
        self, post_id: int, data: BlogPostUpdate
    ) -> Optional[BlogPost]:
        changes = data.changes()
        async with self._session() as session:
            row = await session.get(BlogPostRow, post_id)
            if row is None:
                return None
            for key, value in changes.items():
                if key == "publish_date":
                    value = _to_db_time(value)
                setattr(row, key, value)
            row.updated_at = max(_to_db_time(utcnow()), row.created_at)
            await session.commit()
            await session.refresh(row)
            return self._to_post(row)

    async def delete_blog_post(self, post_id: int) -> bool:
        async with self._session() as session:
            result = await session.execute(
                delete(BlogPostRow).where(BlogPostRow.id == post_id)
            )
            await session.commit()
            return (result.rowcount or 0) > 0

    async def search_blog_posts(self, query: str) -> List[BlogPost]:
        needle = (query or "").lower()
        pattern = f"%{_escape_like(needle)}%"
        # Tags are stored as JSON text, so quotes and backslashes in the needle
        # must be escaped the way the serializer escapes them.
        tags_pattern = f"%{_escape_like(_dump_json(needle)[1:-1])}%"
        columns = (
            BlogPostRow.title,
            BlogPostRow.content,
            BlogPostRow.excerpt,
            BlogPostRow.category,
        )
        stmt = select(BlogPostRow).where(
            or_(
                *(func.lower(column).like(pattern, escape="/") for column in columns),
                func.lower(cast(BlogPostRow.tags, Text)).like(tags_pattern, escape="/"),
            )
        )
        candidates = await self._fetch_posts(stmt)
        # The tags column is matched on its JSON text; confirm per element.
        return [post for post in candidates if matches_search(post, query)]

    async def get_blog_posts_by_status(self, status: str) -> List[BlogPost]:
        posts = await self._fetch_posts(
            select(BlogPostRow).where(BlogPostRow.status == status)
        )
        return [post for post in posts if post.status == status]

    async def get_blog_posts_by_category(self, category: str) -> List[BlogPost]:
        posts = await self._fetch_posts(
            select(BlogPostRow).where(BlogPostRow.category == category)
        )
        # Equality is exact even under a case-insensitive collation.
        return [post for post in posts if post.category == category]

    async def get_blog_post_stats(self) -> BlogPostStats:
        start, end = current_month_bounds_utc(self.tz)
        count = select(func.count()).select_from(BlogPostRow)
        async with self._session() as session:
            total = await session.scalar(count)
            published = await session.scalar(
                count.where(BlogPostRow.status == PostStatus.PUBLISHED.value)
            )
            drafts = await session.scalar(
                count.where(BlogPostRow.status == PostStatus.DRAFT.value)
            )
            monthly = await session.scalar(
                count.where(
                    BlogPostRow.created_at >= _to_db_time(start),
                    BlogPostRow.created_at < _to_db_time(end),
                )
            )
        return BlogPostStats(
            total_posts=total or 0,
            published_posts=published or 0,
            draft_posts=drafts or 0,
            monthly_posts=monthly or 0,
        )


def _row_from_create(data: BlogPostCreate, now: datetime) -> "BlogPostRow":
    values = data.model_dump()
    values["publish_date"] = _to_db_time(values["publish_date"])
    return BlogPostRow(created_at=now, updated_at=now, **values)


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True)
    password = Column(Text, nullable=False)


class BlogPostRow(Base):
    __tablename__ = "blog_posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    excerpt = Column(Text, nullable=True)
    category = Column(String(100), nullable=True, index=True)
    status = Column(String(50), nullable=False, server_default="draft", index=True)
    featured_image = Column(Text, nullable=True)
    meta_description = Column(Text, nullable=True)
    tags = Column(JSON, nullable=True)
    publish_date = Column(TIMESTAMP, nullable=True, index=True)
    created_at = Column(TIMESTAMP, server_default=func.now(), index=True)
    updated_at = Column(
        TIMESTAMP, server_default=func.now(), server_onupdate=FetchedValue()
    )


# MySQL maintains updated_at itself for writes that bypass this client.
UPDATED_AT_MYSQL_DDL = DDL(
    "ALTER TABLE blog_posts MODIFY updated_at TIMESTAMP NULL "
    "DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP"
).execute_if(dialect="mysql")
event.listen(BlogPostRow.__table__, "after_create", UPDATED_AT_MYSQL_DDL)
