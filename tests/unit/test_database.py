"""Unit tests for the FeedStore.

Tests for the storage layer using in-memory SQLite.
"""

import base64

import aiosqlite
import pytest

from feed_aggregator.exceptions import DuplicateFeed, NotFound, StoreUnavailable
from feed_aggregator.models.filters import Filter
from feed_aggregator.models.schemas import MAX_DATE, NEVER, Article
from feed_aggregator.storage.database import FeedStore


# Mark all tests as async
pytestmark = pytest.mark.anyio


def make_article(link: str, published: str, feed: str = "Test Feed", feed_id: str = "") -> Article:
    article = Article.new(title=f"Title {link}", link=link, author="", published=published)
    article.feed = feed
    article.feed_id = feed_id
    return article


class TestStoreInitialization:
    """Tests for database schema initialization."""

    async def test_init_creates_tables(self, store):
        cursor = await store.db.execute("SELECT name FROM sqlite_master WHERE type='table'")
        tables = [row[0] for row in await cursor.fetchall()]

        assert "feeds" in tables
        assert "articles" in tables

    async def test_init_creates_pagination_indexes(self, store):
        cursor = await store.db.execute("SELECT name FROM sqlite_master WHERE type='index'")
        indexes = [row[0] for row in await cursor.fetchall()]

        assert "idx_feeds_date_added" in indexes
        assert "idx_articles_published" in indexes

    async def test_init_is_idempotent(self, store):
        await store.init()
        await store.init()

        page = await store.get_feeds(MAX_DATE)
        assert page.items == []

    async def test_connect_creates_database_file(self, tmp_path):
        path = tmp_path / "nested" / "feeds.db"

        store = await FeedStore.connect(path)
        try:
            assert path.exists()
        finally:
            await store.close()

    async def test_connect_fails_when_directory_is_a_file(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(StoreUnavailable):
            await FeedStore.connect(blocker / "feeds.db")


class TestFeeds:
    """Tests for feed CRUD operations."""

    async def test_add_feed(self, store):
        feed = await store.add_feed("Example", "https://example.com", "https://example.com/rss")

        expected_id = base64.urlsafe_b64encode(b"https://example.com/rss").decode()
        assert feed.id == expected_id
        assert feed.name == "Example"
        assert feed.last_updated == NEVER
        assert feed.date_added.endswith("Z")

    async def test_add_feed_derives_site_url(self, store):
        feed = await store.add_feed("Example", "", "https://example.com/blog/feed.xml")

        assert feed.site_url == "https://example.com"

    async def test_add_duplicate_feed_raises(self, store):
        await store.add_feed("Example", "https://example.com", "https://example.com/rss")

        with pytest.raises(DuplicateFeed):
            await store.add_feed("Other name", "https://other.com", "https://example.com/rss")

        page = await store.get_feeds(MAX_DATE)
        assert len(page.items) == 1

    async def test_get_feed_by_id(self, store):
        added = await store.add_feed("Example", "https://example.com", "https://example.com/rss")

        feed = await store.get_feed_by_id(added.id)

        assert feed == added

    async def test_get_feed_by_id_missing(self, store):
        with pytest.raises(NotFound):
            await store.get_feed_by_id("nope")

    async def test_delete_feed_cascades_articles(self, store):
        feed = await store.add_feed("Example", "https://example.com", "https://example.com/rss")
        other = await store.add_feed("Other", "https://other.com", "https://other.com/rss")
        await store.add_articles([
            make_article("https://example.com/a", "2024-01-01T00:00:00.000Z", feed_id=feed.id),
            make_article("https://example.com/b", "2024-01-02T00:00:00.000Z", feed_id=feed.id),
            make_article("https://other.com/a", "2024-01-03T00:00:00.000Z", feed_id=other.id),
        ])

        deleted = await store.delete_feed(feed.id)

        assert deleted == 2
        with pytest.raises(NotFound):
            await store.get_feed_by_id(feed.id)
        page = await store.get_unread_articles(MAX_DATE)
        assert [a.link for a in page.items] == ["https://other.com/a"]

    async def test_delete_missing_feed_is_noop(self, store):
        assert await store.delete_feed("missing") == 0

    async def test_update_feed_last_updated(self, store):
        feed = await store.add_feed("Example", "https://example.com", "https://example.com/rss")

        await store.update_feed_last_updated("2024-05-01T00:00:00.000Z", feed.id)

        updated = await store.get_feed_by_id(feed.id)
        assert updated.last_updated == "2024-05-01T00:00:00.000Z"


class TestRuntimeStoreErrors:
    """Tests for database failures after startup."""

    async def test_missing_feeds_table_raises_store_unavailable(self, store):
        await store.db.execute("DROP TABLE feeds")

        with pytest.raises(StoreUnavailable):
            await store.get_feeds(MAX_DATE)
        with pytest.raises(StoreUnavailable):
            await store.add_feed("Example", "", "https://example.com/rss")

    async def test_missing_articles_table_raises_store_unavailable(self, store):
        await store.db.execute("DROP TABLE articles")

        with pytest.raises(StoreUnavailable):
            await store.add_articles([make_article("https://example.com/a", "2024-01-01T00:00:00.000Z")])
        with pytest.raises(StoreUnavailable):
            await store.mark_article_favorite("anything")

    async def test_duplicate_feed_still_maps_to_domain_error(self, store):
        await store.add_feed("Example", "", "https://example.com/rss")

        with pytest.raises(DuplicateFeed):
            await store.add_feed("Example", "", "https://example.com/rss")


class TestFeedPagination:
    """Tests for keyset pagination over feeds."""

    async def test_empty_page(self, store):
        page = await store.get_feeds(MAX_DATE)

        assert page.items == []
        assert page.cursor.has_next is False

    async def test_walk_visits_every_feed_once_newest_first(self, store):
        added = []
        for i in range(7):
            added.append(await store.add_feed(f"Feed {i}", "", f"https://example.com/{i}/rss"))

        seen = []
        token = MAX_DATE
        pages = 0
        while True:
            page = await store.get_feeds(token)
            pages += 1
            seen.extend(page.items)
            if not page.cursor.has_next:
                break
            token = page.cursor.next

        assert pages == 3
        assert [f.id for f in seen] == [f.id for f in reversed(added)]
        dates = [f.date_added for f in seen]
        assert dates == sorted(dates, reverse=True)

    async def test_has_next_false_on_exact_page_boundary(self, store):
        for i in range(3):
            await store.add_feed(f"Feed {i}", "", f"https://example.com/{i}/rss")

        page = await store.get_feeds(MAX_DATE)

        assert len(page.items) == 3
        assert page.cursor.has_next is False

    async def test_empty_token_means_first_page(self, store):
        await store.add_feed("Feed", "", "https://example.com/rss")

        page = await store.get_feeds("")

        assert len(page.items) == 1


class TestArticles:
    """Tests for article ingest and state changes."""

    async def test_add_articles_is_idempotent(self, store):
        articles = [
            make_article("https://example.com/a", "2024-01-01T00:00:00.000Z"),
            make_article("https://example.com/b", "2024-01-02T00:00:00.000Z"),
        ]

        assert await store.add_articles(articles) == 2
        assert await store.add_articles(articles) == 0

        cursor = await store.db.execute("SELECT COUNT(*) AS count FROM articles")
        row = await cursor.fetchone()
        assert row["count"] == 2

    async def test_reingest_preserves_user_state(self, store):
        article = make_article("https://example.com/a", "2024-01-01T00:00:00.000Z")
        await store.add_articles([article])

        stored = await store.get_article_by_id(article.id)
        read = await store.mark_article_read(stored)
        await store.mark_article_favorite(article.id)

        fresh = make_article("https://example.com/a", "2024-01-01T00:00:00.000Z", feed="Renamed")
        await store.add_articles([fresh])

        after = await store.get_article_by_id(article.id)
        assert after.read is True
        assert after.favorited is True
        assert after.read_date == read.read_date
        assert after.feed == "Test Feed"

    async def test_add_articles_skips_bad_rows(self, store):
        good = make_article("https://example.com/a", "2024-01-01T00:00:00.000Z")
        bad = make_article("https://example.com/b", "2024-01-02T00:00:00.000Z")
        bad.title = None

        added = await store.add_articles([bad, good])

        assert added == 1
        assert (await store.get_article_by_id(good.id)).link == "https://example.com/a"

    async def test_get_article_by_id_missing(self, store):
        with pytest.raises(NotFound):
            await store.get_article_by_id("missing")

    async def test_mark_article_read(self, store):
        article = make_article("https://example.com/a", "2024-01-01T00:00:00.000Z")
        await store.add_articles([article])

        updated = await store.mark_article_read(article)

        assert updated.read is True
        assert updated.read_date != NEVER
        assert updated.favorited is False

    async def test_mark_article_read_is_idempotent(self, store):
        article = make_article("https://example.com/a", "2024-01-01T00:00:00.000Z")
        await store.add_articles([article])

        first = await store.mark_article_read(article)
        second = await store.mark_article_read(article)

        assert first.read is True
        assert second.read is True
        assert second.read_date >= first.read_date

    async def test_mark_article_read_missing(self, store):
        ghost = make_article("https://example.com/ghost", "2024-01-01T00:00:00.000Z")

        with pytest.raises(NotFound):
            await store.mark_article_read(ghost)

    async def test_mark_article_favorite_toggles(self, store):
        article = make_article("https://example.com/a", "2024-01-01T00:00:00.000Z")
        await store.add_articles([article])

        on = await store.mark_article_favorite(article.id)
        off = await store.mark_article_favorite(article.id)

        assert on.favorited is True
        assert off.favorited is False
        assert off.read is False

    async def test_mark_article_favorite_missing(self, store):
        with pytest.raises(NotFound):
            await store.mark_article_favorite("missing")


class TestArticleFilters:
    """Tests for filtered, paginated article views."""

    @pytest.fixture
    async def seeded(self, store):
        articles = [
            make_article(f"https://example.com/{i}", f"2024-01-0{i}T00:00:00.000Z")
            for i in range(1, 6)
        ]
        await store.add_articles(articles)
        # 5: read + favorite, 4: read, 3: favorite
        await store.mark_article_read(articles[4])
        await store.mark_article_favorite(articles[4].id)
        await store.mark_article_read(articles[3])
        await store.mark_article_favorite(articles[2].id)
        return store

    async def test_unread(self, seeded):
        page = await seeded.get_unread_articles(MAX_DATE)

        assert [a.link for a in page.items] == [
            "https://example.com/3",
            "https://example.com/2",
            "https://example.com/1",
        ]

    async def test_read(self, seeded):
        page = await seeded.get_read_articles(MAX_DATE)

        assert [a.link for a in page.items] == ["https://example.com/5", "https://example.com/4"]

    async def test_favorited_is_independent_of_read(self, seeded):
        page = await seeded.get_favorited_articles(MAX_DATE)

        assert [a.link for a in page.items] == ["https://example.com/5", "https://example.com/3"]

    async def test_filter_matches_named_views(self, seeded):
        for article_filter, view in [
            (Filter.UNREAD, seeded.get_unread_articles),
            (Filter.READ, seeded.get_read_articles),
            (Filter.FAVORITE, seeded.get_favorited_articles),
        ]:
            assert await seeded.filter(article_filter, MAX_DATE) == await view(MAX_DATE)

    async def test_ties_on_published_are_not_skipped(self, store):
        articles = [
            make_article(f"https://example.com/same/{i}", "2024-01-01T00:00:00.000Z")
            for i in range(5)
        ]
        articles.append(make_article("https://example.com/older", "2023-12-31T00:00:00.000Z"))
        await store.add_articles(articles)

        seen = []
        token = MAX_DATE
        while True:
            page = await store.filter(Filter.UNREAD, token)
            seen.extend(page.items)
            if not page.cursor.has_next:
                break
            token = page.cursor.next

        assert len(seen) == 6
        assert len({a.id for a in seen}) == 6
        assert seen[-1].link == "https://example.com/older"

    async def test_raw_published_strings_are_paginated(self, store):
        await store.add_articles([
            make_article("https://example.com/a", "2024-01-01T00:00:00.000Z"),
            make_article("https://example.com/b", "sometime last week"),
        ])

        page = await store.get_unread_articles(MAX_DATE)

        assert {a.link for a in page.items} == {"https://example.com/a", "https://example.com/b"}


async def test_store_handle_is_independent(tmp_path):
    """Two stores on different files never share state."""
    first = await FeedStore.connect(tmp_path / "one.db")
    second = await FeedStore.connect(tmp_path / "two.db")
    try:
        await first.add_feed("Example", "", "https://example.com/rss")

        assert len((await first.get_feeds(MAX_DATE)).items) == 1
        assert (await second.get_feeds(MAX_DATE)).items == []
    finally:
        await first.close()
        await second.close()


async def test_row_decoding_uses_column_names():
    """Rows decode by column name regardless of the connection's row factory."""
    db = await aiosqlite.connect(":memory:")
    try:
        store = FeedStore(db)
        await store.init()
        feed = await store.add_feed("Example", "https://example.com", "https://example.com/rss")

        assert (await store.get_feed_by_id(feed.id)).site_url == "https://example.com"
    finally:
        await db.close()
