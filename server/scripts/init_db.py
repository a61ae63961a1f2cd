"""
CLI helper to create the blog tables and seed them when empty.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from blog_backend.config import get_settings
from blog_backend.db import SqlDbClient
from blog_backend.errors import StorageUnavailable


async def _init(database_url: str, seed: bool, pool_size: int) -> int:
    db = SqlDbClient(database_url, pool_size=pool_size, seed=seed)
    try:
        await db.initialize()
        stats = await db.get_blog_post_stats()
    except StorageUnavailable as exc:
        print(f"Database initialization failed: {exc}", file=sys.stderr)
        return 1
    finally:
        await db.close()
    print(f"blog_posts ready ({stats.total_posts} rows)")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Create and seed the blog database")
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Override the SQLAlchemy URL built from DATABASE_URL / DB_* settings",
    )
    parser.add_argument(
        "--no-seed",
        action="store_true",
        help="Create tables only; do not insert the sample posts",
    )
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    database_url = args.database_url or settings.sqlalchemy_url()
    return asyncio.run(_init(database_url, not args.no_seed, settings.db_pool_size))


if __name__ == "__main__":
    sys.exit(main())
