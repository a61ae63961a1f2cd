import asyncio
import os
import tempfile
import threading
import unittest
from dataclasses import replace
from datetime import datetime, timezone

from sqlalchemy import FetchedValue, event

from blog_backend.db import (
    UPDATED_AT_MYSQL_DDL,
    BlogPostRow,
    InMemoryDbClient,
    SqlDbClient,
)
from blog_backend.errors import StorageUnavailable, UniquenessViolation
from blog_backend.filters import filter_posts
from blog_backend.schemas import BlogPostCreate, BlogPostUpdate, UserCreate


def _post(**overrides) -> BlogPostCreate:
    payload = {"title": "A title", "content": "<p>Body</p>"}
    payload.update(overrides)
    return BlogPostCreate.model_validate(payload)


class StorageContract:
    """
    Behaviour every backend must share. Subclasses provide ``make_client``.
    """

    async def make_client(self, seed: bool = False):
        raise NotImplementedError

    async def asyncSetUp(self):
        self.db = await self.make_client(seed=False)

    async def asyncTearDown(self):
        await self.db.close()

    async def test_create_and_get_post(self):
        data = _post(
            excerpt="Short",
            category="Travel",
            tags=["hiking", "alps"],
            publishDate="2023-12-15T10:00:00.000Z",
            featuredImage="https://example.test/a.png",
        )
        created = await self.db.create_blog_post(data)
        self.assertIsInstance(created.id, int)
        self.assertEqual(created.status, "draft")
        self.assertEqual(created.created_at, created.updated_at)

        fetched = await self.db.get_blog_post(created.id)
        self.assertEqual(fetched, created)
        self.assertEqual(fetched.title, "A title")
        self.assertEqual(fetched.content, "<p>Body</p>")
        self.assertEqual(fetched.excerpt, "Short")
        self.assertEqual(fetched.tags, ["hiking", "alps"])
        self.assertEqual(fetched.featured_image, "https://example.test/a.png")
        self.assertIsNone(fetched.meta_description)
        self.assertEqual(
            fetched.publish_date, datetime(2023, 12, 15, 10, tzinfo=timezone.utc)
        )

    async def test_missing_post_is_none(self):
        self.assertIsNone(await self.db.get_blog_post(999))
        self.assertIsNone(await self.db.update_blog_post(999, BlogPostUpdate()))

    async def test_delete_twice(self):
        post = await self.db.create_blog_post(_post())
        self.assertTrue(await self.db.delete_blog_post(post.id))
        self.assertFalse(await self.db.delete_blog_post(post.id))
        self.assertIsNone(await self.db.get_blog_post(post.id))

    async def test_update_merges_partial_payload(self):
        post = await self.db.create_blog_post(
            _post(excerpt="old excerpt", category="Food", tags=["a"])
        )
        update = BlogPostUpdate.model_validate(
            {"title": "New title", "status": "published", "excerpt": None}
        )
        updated = await self.db.update_blog_post(post.id, update)

        self.assertEqual(updated.id, post.id)
        self.assertEqual(updated.title, "New title")
        self.assertEqual(updated.status, "published")
        self.assertIsNone(updated.excerpt)
        self.assertEqual(updated.content, post.content)
        self.assertEqual(updated.category, "Food")
        self.assertEqual(updated.tags, ["a"])
        self.assertEqual(updated.created_at, post.created_at)
        self.assertGreaterEqual(updated.updated_at, updated.created_at)
        self.assertEqual(await self.db.get_blog_post(post.id), updated)

    async def test_empty_update_only_touches_updated_at(self):
        post = await self.db.create_blog_post(_post(category="Travel", tags=["x"]))
        before = await self.db.get_blog_post(post.id)
        updated = await self.db.update_blog_post(post.id, BlogPostUpdate())
        self.assertGreaterEqual(updated.updated_at, before.updated_at)
        self.assertEqual(replace(updated, updated_at=before.updated_at), before)

    async def test_all_posts_newest_first(self):
        for title in ("first", "second", "third"):
            await self.db.create_blog_post(_post(title=title))
        posts = await self.db.get_all_blog_posts()
        self.assertEqual([p.title for p in posts], ["third", "second", "first"])
        created = [p.created_at for p in posts]
        self.assertEqual(created, sorted(created, reverse=True))

    async def test_stats_total_matches_listing(self):
        await self.db.create_blog_post(_post(status="published"))
        await self.db.create_blog_post(_post(status="scheduled"))
        await self.db.create_blog_post(_post())
        stats = await self.db.get_blog_post_stats()
        self.assertEqual(stats.total_posts, len(await self.db.get_all_blog_posts()))
        self.assertEqual(stats.published_posts, 1)
        self.assertEqual(stats.draft_posts, 1)
        self.assertEqual(stats.monthly_posts, 3)

    async def test_combined_filter_is_a_conjunction(self):
        a = await self.db.create_blog_post(_post(title="A", status="published", category="Travel"))
        await self.db.create_blog_post(_post(title="B", status="draft", category="Travel"))
        await self.db.create_blog_post(_post(title="C", status="published", category="Food"))
        posts = filter_posts(
            await self.db.get_all_blog_posts(), status="published", category="Travel"
        )
        self.assertEqual([p.id for p in posts], [a.id])

    async def test_search_matches_tags_case_insensitively(self):
        tagged = await self.db.create_blog_post(
            _post(title="Mountains", content="Snow", tags=["alps"])
        )
        await self.db.create_blog_post(_post(title="Beaches", content="Sand"))
        results = await self.db.search_blog_posts("ALPS")
        self.assertEqual([p.id for p in results], [tagged.id])

    async def test_search_fields_and_literal_wildcards(self):
        pct = await self.db.create_blog_post(_post(title="100% pure", content="x"))
        cat = await self.db.create_blog_post(
            _post(title="t", content="c", category="Street_Food")
        )
        excerpt = await self.db.create_blog_post(
            _post(title="t", content="c", excerpt="Hidden GEMS")
        )
        self.assertEqual([p.id for p in await self.db.search_blog_posts("%")], [pct.id])
        self.assertEqual([p.id for p in await self.db.search_blog_posts("t_f")], [cat.id])
        self.assertEqual(
            [p.id for p in await self.db.search_blog_posts("hidden gems")], [excerpt.id]
        )
        self.assertEqual(await self.db.search_blog_posts("nothing here"), [])

    async def test_search_tags_with_quotes_and_backslashes(self):
        post = await self.db.create_blog_post(
            _post(title="t", content="c", tags=["say \"hi\"", "C:\\dir"])
        )
        for query in ('"hi"', ":\\d", "SAY \"HI\""):
            results = await self.db.search_blog_posts(query)
            self.assertEqual([p.id for p in results], [post.id], query)
        self.assertEqual(await self.db.search_blog_posts("\\\""), [])

    async def test_status_and_category_lookups_are_exact(self):
        travel = await self.db.create_blog_post(_post(category="Travel", status="published"))
        await self.db.create_blog_post(_post(category="Travel Tips"))
        later = await self.db.create_blog_post(_post(category="Travel", status="scheduled"))

        by_category = await self.db.get_blog_posts_by_category("Travel")
        self.assertEqual([p.id for p in by_category], [later.id, travel.id])
        self.assertEqual(await self.db.get_blog_posts_by_category("travel"), [])

        published = await self.db.get_blog_posts_by_status("published")
        self.assertEqual([p.id for p in published], [travel.id])
        self.assertEqual(await self.db.get_blog_posts_by_status("all"), [])
        self.assertEqual(await self.db.get_blog_posts_by_status("Published"), [])

    async def test_users(self):
        user = await self.db.create_user(UserCreate(username="editor", password="hash"))
        self.assertEqual(await self.db.get_user(user.id), user)
        self.assertEqual(await self.db.get_user_by_username("editor"), user)
        self.assertIsNone(await self.db.get_user_by_username("Editor"))
        self.assertIsNone(await self.db.get_user(user.id + 100))

    async def test_duplicate_username_is_rejected(self):
        await self.db.create_user(UserCreate(username="editor", password="one"))
        with self.assertRaises(UniquenessViolation):
            await self.db.create_user(UserCreate(username="editor", password="two"))
        user = await self.db.get_user_by_username("editor")
        self.assertEqual(user.password, "one")

    async def test_seeded_stats(self):
        db = await self.make_client(seed=True)
        try:
            posts = await db.get_all_blog_posts()
            self.assertEqual(
                sorted(p.status for p in posts), ["draft", "published", "published"]
            )
            stats = await db.get_blog_post_stats()
            self.assertEqual(stats.total_posts, 3)
            self.assertEqual(stats.published_posts, 2)
            self.assertEqual(stats.draft_posts, 1)
            self.assertEqual(stats.monthly_posts, 3)
        finally:
            await db.close()


class InMemoryDbClientTests(StorageContract, unittest.IsolatedAsyncioTestCase):
    async def make_client(self, seed: bool = False):
        return InMemoryDbClient(seed=seed)

    async def test_ids_start_at_one_and_reset(self):
        first = await self.db.create_blog_post(_post())
        self.assertEqual(first.id, 1)
        self.db.reset()
        self.assertEqual(await self.db.get_all_blog_posts(), [])
        again = await self.db.create_blog_post(_post())
        self.assertEqual(again.id, 1)

    async def test_returned_records_are_copies(self):
        post = await self.db.create_blog_post(_post(tags=["a"]))
        post.tags.append("b")
        post.title = "changed"
        stored = await self.db.get_blog_post(post.id)
        self.assertEqual(stored.tags, ["a"])
        self.assertEqual(stored.title, "A title")

    async def test_concurrent_creates_allocate_distinct_ids(self):
        threads, per_thread = 8, 50
        post_ids: list = []
        user_ids: list = []
        collected = threading.Lock()

        async def create_many(worker: int):
            posts, users = [], []
            for n in range(per_thread):
                posts.append((await self.db.create_blog_post(_post())).id)
                user = UserCreate(username=f"user-{worker}-{n}", password="x")
                users.append((await self.db.create_user(user)).id)
            return posts, users

        def worker(index: int):
            posts, users = asyncio.run(create_many(index))
            with collected:
                post_ids.extend(posts)
                user_ids.extend(users)

        workers = [threading.Thread(target=worker, args=(i,)) for i in range(threads)]
        for thread in workers:
            thread.start()
        for thread in workers:
            thread.join()

        total = threads * per_thread
        expected = set(range(1, total + 1))
        self.assertEqual(len(post_ids), total)
        self.assertEqual(set(post_ids), expected)
        self.assertEqual(len(user_ids), total)
        self.assertEqual(set(user_ids), expected)
        self.assertEqual(len(await self.db.get_all_blog_posts()), total)
        self.assertEqual(len(self.db.users), total)


class SqlDbClientTests(StorageContract, unittest.IsolatedAsyncioTestCase):
    """
    Uses SQLite via aiosqlite for fast/local testing of the relational client.
    """

    async def make_client(self, seed: bool = False):
        path = os.path.join(self._tmpdir.name, f"blog-{seed}.db")
        return SqlDbClient(f"sqlite+aiosqlite:///{path}", seed=seed)

    async def asyncSetUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        await super().asyncSetUp()

    async def asyncTearDown(self):
        await super().asyncTearDown()
        self._tmpdir.cleanup()

    async def test_seeding_is_idempotent(self):
        path = os.path.join(self._tmpdir.name, "seeded.db")
        url = f"sqlite+aiosqlite:///{path}"
        first = SqlDbClient(url)
        await first.initialize()
        await first.initialize()
        await first.close()

        second = SqlDbClient(url)
        try:
            posts = await second.get_all_blog_posts()
            self.assertEqual(len(posts), 3)
        finally:
            await second.close()

    async def test_no_reseed_once_rows_exist(self):
        path = os.path.join(self._tmpdir.name, "kept.db")
        url = f"sqlite+aiosqlite:///{path}"
        first = SqlDbClient(url, seed=False)
        await first.create_blog_post(_post(title="only"))
        await first.close()

        second = SqlDbClient(url)
        try:
            posts = await second.get_all_blog_posts()
            self.assertEqual([p.title for p in posts], ["only"])
        finally:
            await second.close()

    async def test_unreachable_database_raises_storage_unavailable(self):
        missing = os.path.join(self._tmpdir.name, "missing", "dir", "blog.db")
        db = SqlDbClient(f"sqlite+aiosqlite:///{missing}")
        try:
            with self.assertLogs("blog_backend.db", level="ERROR"):
                with self.assertRaises(StorageUnavailable):
                    await db.get_all_blog_posts()
        finally:
            await db.close()

    def test_requires_url(self):
        with self.assertRaises(ValueError):
            SqlDbClient("")

    def test_mysql_schema_refreshes_updated_at_on_update(self):
        table = BlogPostRow.__table__
        self.assertIsInstance(table.c.updated_at.server_onupdate, FetchedValue)
        self.assertTrue(event.contains(table, "after_create", UPDATED_AT_MYSQL_DDL))
        self.assertIn("ON UPDATE CURRENT_TIMESTAMP", UPDATED_AT_MYSQL_DDL.statement)


if __name__ == "__main__":
    unittest.main()
