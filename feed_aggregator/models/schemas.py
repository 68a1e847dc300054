"""Data models for feed_aggregator.

This module defines the core data structures for feeds, articles and pages.
Timestamps are RFC-3339 strings in UTC with millisecond precision, so they
order correctly as plain strings.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, TypeVar
from urllib.parse import urlsplit

from feed_aggregator.models.identity import article_id, feed_id

# Stored in last_updated / read_date until the event first happens.
NEVER = "-1"

# Pagination token meaning "start from the most recent record".
MAX_DATE = "9999-12-31T23:59:59.999Z"

T = TypeVar("T")


def format_timestamp(dt: datetime) -> str:
    """Format a datetime as RFC-3339 UTC with milliseconds and a Z suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_timestamp() -> str:
    """Current time as an RFC-3339 timestamp string."""
    return format_timestamp(datetime.now(timezone.utc))


def site_url_from_feed_url(feed_url: str) -> str:
    """Derive ``scheme://host`` from a feed URL, or "" if it has no host."""
    parts = urlsplit(feed_url)
    if not parts.scheme or not parts.netloc:
        return ""
    return f"{parts.scheme}://{parts.netloc}"


@dataclass
class Feed:
    """Represents a subscribed RSS/Atom feed."""

    id: str
    name: str
    site_url: str
    feed_url: str
    date_added: str
    last_updated: str = NEVER

    @classmethod
    def new(cls, name: str, site_url: str, feed_url: str, date_added: str) -> "Feed":
        return cls(
            id=feed_id(feed_url),
            name=name,
            site_url=site_url or site_url_from_feed_url(feed_url),
            feed_url=feed_url,
            date_added=date_added,
            last_updated=NEVER,
        )

    @property
    def pagination_key(self) -> str:
        return self.date_added

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Article:
    """Represents a single entry ingested from a feed.

    ``feed`` is the feed's display name at ingest time. ``feed_id`` records
    which feed first ingested the article and is only used for cascading
    deletes.
    """

    id: str
    feed: str
    title: str
    link: str
    author: str
    published: str
    read: bool = False
    favorited: bool = False
    read_date: str = NEVER
    feed_id: str = ""

    @classmethod
    def new(cls, title: str, link: str, author: str, published: str) -> "Article":
        return cls(
            id=article_id(link),
            feed="",
            title=title,
            link=link,
            author=author,
            published=published,
        )

    @property
    def pagination_key(self) -> str:
        return self.published

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Cursor:
    """Where the next page starts.

    ``next`` is an opaque token; pass it back verbatim to get the next page.
    """

    has_next: bool = False
    next: str = MAX_DATE


@dataclass
class Page(Generic[T]):
    """One page of results plus the cursor for the following page."""

    cursor: Cursor = field(default_factory=Cursor)
    items: List[T] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cursor": asdict(self.cursor),
            "items": [item.to_dict() for item in self.items],
        }
