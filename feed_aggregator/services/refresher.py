"""Refresher service.

Fetches a feed, maps its entries to articles and writes them through the
FeedStore. Used by the scheduled sweep and by on-demand refreshes.
"""

import logging

from feed_aggregator.config import DEFAULT_FETCH_TIMEOUT
from feed_aggregator.models.schemas import Feed
from feed_aggregator.services.feed_parser import fetch_feed, parse_entries
from feed_aggregator.storage.database import FeedStore

logger = logging.getLogger(__name__)


class Refresher:
    """Refreshes individual feeds into a FeedStore."""

    def __init__(self, store: FeedStore, timeout: float = DEFAULT_FETCH_TIMEOUT):
        self.store = store
        self.timeout = timeout

    async def refresh(self, feed: Feed) -> int:
        """Fetch, parse and store one feed, then stamp its last_updated.

        last_updated is stamped even when nothing new was added. It is not
        stamped when fetching or parsing fails.

        Returns:
            Number of new articles stored

        Raises:
            FetchFailed: If the feed could not be downloaded
            ParseFailed: If the document is not a valid feed
        """
        content = await fetch_feed(feed.feed_url, timeout=self.timeout)
        articles = parse_entries(content, source=feed.feed_url)

        for article in articles:
            article.feed = feed.name
            article.feed_id = feed.id

        added = await self.store.add_articles(articles)
        await self.store.update_feed_last_updated(self.store.clock(), feed.id)

        logger.info(f"Refreshed feed '{feed.name}': {added} new of {len(articles)} articles")
        return added
