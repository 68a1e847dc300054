"""Database storage for feed_aggregator.

This module provides the async SQLite FeedStore, the single persistence
boundary for feeds and articles. A store wraps one aiosqlite connection and is
passed explicitly to every component that needs it.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence, Union

import aiosqlite

from feed_aggregator.exceptions import DuplicateFeed, NotFound, StoreUnavailable
from feed_aggregator.models.filters import Filter
from feed_aggregator.models.schemas import Article, Feed, Page, utc_timestamp
from feed_aggregator.storage.pagination import (
    build_page,
    decode_token,
    keyset_clause,
    order_clause,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS feeds (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        site_url TEXT NOT NULL,
        feed_url TEXT NOT NULL,
        date_added TEXT NOT NULL,
        last_updated TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS articles (
        id TEXT PRIMARY KEY,
        feed_id TEXT NOT NULL DEFAULT '',
        feed TEXT NOT NULL,
        title TEXT NOT NULL,
        link TEXT NOT NULL,
        author TEXT NOT NULL,
        published TEXT NOT NULL,
        read BOOLEAN NOT NULL DEFAULT FALSE,
        favorited BOOLEAN NOT NULL DEFAULT FALSE,
        read_date TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_feeds_date_added ON feeds(date_added DESC, id DESC)",
    "CREATE INDEX IF NOT EXISTS idx_articles_published ON articles(published DESC, id DESC)",
    "CREATE INDEX IF NOT EXISTS idx_articles_feed_id ON articles(feed_id)",
    "CREATE INDEX IF NOT EXISTS idx_articles_read ON articles(read)",
]


def _feed_from_row(row: aiosqlite.Row) -> Feed:
    return Feed(
        id=row["id"],
        name=row["name"],
        site_url=row["site_url"],
        feed_url=row["feed_url"],
        date_added=row["date_added"],
        last_updated=row["last_updated"],
    )


def _article_from_row(row: aiosqlite.Row) -> Article:
    return Article(
        id=row["id"],
        feed=row["feed"],
        title=row["title"],
        link=row["link"],
        author=row["author"],
        published=row["published"],
        read=bool(row["read"]),
        favorited=bool(row["favorited"]),
        read_date=row["read_date"],
        feed_id=row["feed_id"],
    )


class FeedStore:
    """Persistence for feeds and articles on top of aiosqlite.

    Args:
        db: Open aiosqlite connection
        page_size: Maximum number of items per page
        clock: Returns the current time as an RFC-3339 string
    """

    def __init__(
        self,
        db: aiosqlite.Connection,
        page_size: int = DEFAULT_PAGE_SIZE,
        clock: Callable[[], str] = utc_timestamp,
    ):
        self.db = db
        self.db.row_factory = aiosqlite.Row
        self.page_size = page_size
        self.clock = clock

    @classmethod
    async def connect(
        cls,
        path: Union[str, Path],
        page_size: int = DEFAULT_PAGE_SIZE,
        clock: Callable[[], str] = utc_timestamp,
    ) -> "FeedStore":
        """Open the database at ``path`` and initialize the schema.

        Raises:
            StoreUnavailable: If the database cannot be opened or initialized
        """
        if str(path) != ":memory:":
            try:
                Path(path).parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StoreUnavailable(f"Cannot create database directory for {path}: {e}") from e

        try:
            db = await aiosqlite.connect(path)
        except (aiosqlite.Error, OSError) as e:
            raise StoreUnavailable(f"Cannot open database {path}: {e}") from e

        store = cls(db, page_size=page_size, clock=clock)
        try:
            await store.init()
        except StoreUnavailable:
            await db.close()
            raise
        return store

    async def init(self) -> None:
        """Create tables and indexes if they don't exist.

        Raises:
            StoreUnavailable: If the schema cannot be created
        """
        try:
            for statement in SCHEMA:
                await self.db.execute(statement)
            await self.db.commit()
        except aiosqlite.Error as e:
            raise StoreUnavailable(f"Could not initialize database: {e}") from e

    async def close(self) -> None:
        await self.db.close()

    async def _execute(self, sql: str, params: Sequence[Any] = ()) -> aiosqlite.Cursor:
        # IntegrityError is left to callers that map it to a domain error.
        try:
            return await self.db.execute(sql, params)
        except aiosqlite.IntegrityError:
            raise
        except aiosqlite.Error as e:
            raise StoreUnavailable(f"Database error: {e}") from e

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except aiosqlite.Error as e:
            raise StoreUnavailable(f"Database error: {e}") from e

    # Feeds

    async def add_feed(self, name: str, site_url: str, feed_url: str) -> Feed:
        """Add a new feed.

        Raises:
            DuplicateFeed: If a feed with the same feed URL already exists
        """
        feed = Feed.new(name, site_url, feed_url, date_added=self.clock())

        try:
            await self._execute(
                """
                INSERT INTO feeds (id, name, site_url, feed_url, date_added, last_updated)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    feed.id,
                    feed.name,
                    feed.site_url,
                    feed.feed_url,
                    feed.date_added,
                    feed.last_updated,
                ),
            )
            await self._commit()
        except aiosqlite.IntegrityError as e:
            raise DuplicateFeed(feed_url) from e

        logger.info(f"Added feed '{name}' ({feed_url})")
        return feed

    async def get_feed_by_id(self, feed_id: str) -> Feed:
        """Get a feed by its id.

        Raises:
            NotFound: If no feed has this id
        """
        cursor = await self._execute("SELECT * FROM feeds WHERE id = ?", (feed_id,))
        row = await cursor.fetchone()

        if row is None:
            raise NotFound("Feed", feed_id)

        return _feed_from_row(row)

    async def delete_feed(self, feed_id: str) -> int:
        """Delete a feed and the articles it ingested.

        Deleting an unknown id is a no-op.

        Returns:
            Number of articles deleted
        """
        cursor = await self._execute("DELETE FROM articles WHERE feed_id = ?", (feed_id,))
        article_count = cursor.rowcount

        cursor = await self._execute("DELETE FROM feeds WHERE id = ?", (feed_id,))
        await self._commit()

        if cursor.rowcount:
            logger.info(f"Deleted feed {feed_id} and {article_count} articles")
        return article_count

    async def get_feeds(self, token: Optional[str] = None) -> Page[Feed]:
        """Get one page of feeds, newest first by date added."""
        where, params = keyset_clause("date_added", decode_token(token))

        query = "SELECT * FROM feeds"
        if where:
            query += f" WHERE {where}"
        query += f" {order_clause('date_added')} LIMIT ?"
        params.append(self.page_size + 1)

        cursor = await self._execute(query, params)
        rows = [_feed_from_row(row) for row in await cursor.fetchall()]
        return build_page(rows, self.page_size)

    async def update_feed_last_updated(self, timestamp: str, feed_id: str) -> None:
        await self._execute(
            "UPDATE feeds SET last_updated = ? WHERE id = ?",
            (timestamp, feed_id),
        )
        await self._commit()

    # Articles

    async def add_articles(self, articles: Iterable[Article]) -> int:
        """Insert articles, skipping ids that already exist.

        Existing rows are left untouched so read/favorite state survives
        re-ingest. A row that violates a constraint is logged and skipped.

        Returns:
            Number of articles actually added

        Raises:
            StoreUnavailable: If the database cannot be written
        """
        added_count = 0

        for article in articles:
            try:
                cursor = await self._execute(
                    """
                    INSERT OR IGNORE INTO articles
                        (id, feed_id, feed, title, link, author, published,
                         read, favorited, read_date)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        article.id,
                        article.feed_id,
                        article.feed,
                        article.title,
                        article.link,
                        article.author,
                        article.published,
                        article.read,
                        article.favorited,
                        article.read_date,
                    ),
                )
                added_count += cursor.rowcount
            except aiosqlite.IntegrityError as e:
                logger.warning(f"Skipping article {article.link!r}: {e}")

        await self._commit()
        return added_count

    async def get_article_by_id(self, article_id: str) -> Article:
        """Get an article by its id.

        Raises:
            NotFound: If no article has this id
        """
        cursor = await self._execute("SELECT * FROM articles WHERE id = ?", (article_id,))
        row = await cursor.fetchone()

        if row is None:
            raise NotFound("Article", article_id)

        return _article_from_row(row)

    async def mark_article_read(self, article: Article) -> Article:
        """Mark an article as read, stamping read_date with the current time.

        Raises:
            NotFound: If the article is not stored
        """
        cursor = await self._execute(
            "UPDATE articles SET read = 1, read_date = ? WHERE id = ?",
            (self.clock(), article.id),
        )
        await self._commit()

        if cursor.rowcount == 0:
            raise NotFound("Article", article.id)

        return await self.get_article_by_id(article.id)

    async def mark_article_favorite(self, article_id: str) -> Article:
        """Toggle the favorited flag of an article.

        Raises:
            NotFound: If no article has this id
        """
        cursor = await self._execute(
            "UPDATE articles SET favorited = NOT favorited WHERE id = ?",
            (article_id,),
        )
        await self._commit()

        if cursor.rowcount == 0:
            raise NotFound("Article", article_id)

        return await self.get_article_by_id(article_id)

    async def filter(self, article_filter: Filter, token: Optional[str] = None) -> Page[Article]:
        """Get one page of articles matching a filter, newest first by published date."""
        where, params = keyset_clause("published", decode_token(token))

        conditions: List[str] = [article_filter.predicate]
        if where:
            conditions.append(where)

        query = f"SELECT * FROM articles WHERE {' AND '.join(conditions)}"
        query += f" {order_clause('published')} LIMIT ?"
        params.append(self.page_size + 1)

        cursor = await self._execute(query, params)
        rows = [_article_from_row(row) for row in await cursor.fetchall()]
        return build_page(rows, self.page_size)

    async def get_unread_articles(self, token: Optional[str] = None) -> Page[Article]:
        return await self.filter(Filter.UNREAD, token)

    async def get_read_articles(self, token: Optional[str] = None) -> Page[Article]:
        return await self.filter(Filter.READ, token)

    async def get_favorited_articles(self, token: Optional[str] = None) -> Page[Article]:
        return await self.filter(Filter.FAVORITE, token)
