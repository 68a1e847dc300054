"""Feed parser service.

This module fetches RSS/Atom documents and maps their entries to Articles.
"""

import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, List, Optional

import feedparser
import httpx

from feed_aggregator.exceptions import FetchFailed, ParseFailed
from feed_aggregator.models.schemas import Article, format_timestamp

logger = logging.getLogger(__name__)

USER_AGENT = "FeedAggregator/1.0 (RSS Feed Aggregator)"


async def fetch_feed(feed_url: str, timeout: float = 30.0) -> bytes:
    """Download a feed document.

    Raises:
        FetchFailed: On transport errors, timeouts, or non-2xx responses
    """
    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=timeout,
        headers={"User-Agent": USER_AGENT},
    ) as client:
        try:
            response = await client.get(feed_url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise FetchFailed(f"Failed to fetch feed {feed_url}: {e}") from e

    return response.content


def parse_entries(content: bytes, source: str = "") -> List[Article]:
    """Parse a syndication document into Articles.

    Raises:
        ParseFailed: If the document is not recognizable as RSS or Atom
    """
    feed = feedparser.parse(content)

    if not feed.entries and (feed.bozo or not feed.get("version")):
        raise ParseFailed(f"Could not parse feed {source}: {feed.get('bozo_exception')}")

    articles = [entry_to_article(entry) for entry in feed.entries]
    logger.debug(f"Parsed {len(articles)} entries from {source or 'document'}")
    return articles


def entry_to_article(entry: Any) -> Article:
    """Map one feedparser entry to an unsaved Article.

    Missing values become empty strings; the feed name is stamped later.
    """
    title = entry.get("title") or ""

    link = ""
    links = entry.get("links") or []
    if links:
        link = links[0].get("href", "") or ""
    if not link:
        link = entry.get("link") or ""

    author = ""
    authors = entry.get("authors") or []
    if authors:
        author = authors[0].get("name", "") or ""
    if not author:
        author = entry.get("author") or ""

    if entry.get("published"):
        published = normalize_date(entry.get("published"), entry.get("published_parsed"))
    elif entry.get("updated"):
        published = normalize_date(entry.get("updated"), entry.get("updated_parsed"))
    else:
        published = ""

    return Article.new(title=title, link=link, author=author, published=published)


def normalize_date(raw: str, parsed: Optional[tuple] = None) -> str:
    """Normalize a feed date to RFC-3339, or return the raw string untouched.

    Args:
        raw: Date string as it appeared in the feed
        parsed: feedparser's UTC time struct for ``raw``, if it parsed one

    Returns:
        RFC-3339 timestamp if the date could be parsed, otherwise ``raw``
    """
    dt = _parse_date(raw, parsed)
    if dt is None:
        return raw
    return format_timestamp(dt)


def _parse_date(raw: str, parsed: Optional[tuple]) -> Optional[datetime]:
    # feedparser already converted to UTC
    if parsed:
        try:
            return datetime(*parsed[:6], tzinfo=timezone.utc)
        except (ValueError, TypeError):
            pass

    # Try RFC 2822 format (common in RSS)
    try:
        dt = parsedate_to_datetime(raw)
        if dt is not None:
            return dt
    except (ValueError, TypeError, IndexError):
        pass

    # Try ISO format
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        pass

    return None
