"""Domain models for feed_aggregator."""

from .filters import Filter
from .identity import article_id, decode_id, feed_id
from .schemas import MAX_DATE, NEVER, Article, Cursor, Feed, Page, utc_timestamp

__all__ = [
    "Filter",
    "article_id",
    "decode_id",
    "feed_id",
    "MAX_DATE",
    "NEVER",
    "Article",
    "Cursor",
    "Feed",
    "Page",
    "utc_timestamp",
]
