"""Feed aggregator MCP tools.

This module provides MCP tools for managing feeds and browsing articles. The
tools are closures over an explicit FeedStore and Refresher, built by
``build_feed_tools``.

NOTE: Never use Optional parameters in MCP tools - they break MCP clients.
Use empty string "" for optional strings.
"""

import logging
from typing import Any, Callable, Dict, List

from mcp.server.fastmcp import Context

from feed_aggregator.exceptions import FeedAggregatorError
from feed_aggregator.models.filters import Filter
from feed_aggregator.services.refresher import Refresher
from feed_aggregator.services.scheduler import Scheduler
from feed_aggregator.storage.database import FeedStore

logger = logging.getLogger(__name__)


def _error(e: Exception) -> Dict[str, Any]:
    return {
        "success": False,
        "error": str(e),
        "error_type": type(e).__name__,
    }


def build_feed_tools(store: FeedStore, refresher: Refresher) -> List[Callable]:
    """Build the feed tools bound to a store and refresher.

    Returns:
        List of async tool functions, ready for registration
    """
    scheduler = Scheduler(store, refresher)

    async def add_feed(
        feed_name: str,
        site_url: str,
        feed_url: str,
        ctx: Context = None,
    ) -> Dict[str, Any]:
        """Subscribe to a new RSS/Atom feed.

        The feed id is derived from feed_url, so adding the same feed URL twice
        fails instead of creating a duplicate.

        Args:
            feed_name: Display name for the feed, stamped onto its articles
            site_url: Homepage of the site (empty string derives it from feed_url)
            feed_url: URL of the RSS/Atom document
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - feed: object with id, name, site_url, feed_url, date_added, last_updated
            - error: string if success is False
        """
        logger.info(f"add_feed called: name={feed_name}, feed_url={feed_url}")

        if not feed_url:
            return {"success": False, "error": "feed_url is required"}

        try:
            feed = await store.add_feed(feed_name, site_url, feed_url)
        except FeedAggregatorError as e:
            return _error(e)

        return {"success": True, "feed": feed.to_dict()}

    async def delete_feed(
        feed_id: str,
        pagination: str = "",
        ctx: Context = None,
    ) -> Dict[str, Any]:
        """Unsubscribe from a feed and delete the articles it ingested.

        Deleting an unknown feed id succeeds without changes.

        Args:
            feed_id: Id of the feed to delete
            pagination: Token of the feed page to return afterwards (empty for first page)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - articles_deleted: count of articles removed
            - page: the requested feed page after deletion
        """
        logger.info(f"delete_feed called: feed_id={feed_id}")

        try:
            article_count = await store.delete_feed(feed_id)
            page = await store.get_feeds(pagination)
        except FeedAggregatorError as e:
            return _error(e)

        return {
            "success": True,
            "articles_deleted": article_count,
            "page": page.to_dict(),
        }

    async def list_feeds(pagination: str = "", ctx: Context = None) -> Dict[str, Any]:
        """List subscribed feeds, most recently added first.

        Args:
            pagination: Token from a previous page's cursor.next (empty for first page)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - page: object with cursor (has_next, next) and items (feeds)
        """
        logger.info(f"list_feeds called: pagination={pagination!r}")

        try:
            page = await store.get_feeds(pagination)
        except FeedAggregatorError as e:
            return _error(e)

        return {"success": True, "page": page.to_dict()}

    async def refresh_feed(
        feed_id: str,
        pagination: str = "",
        ctx: Context = None,
    ) -> Dict[str, Any]:
        """Fetch a single feed now and store its new articles.

        Args:
            feed_id: Id of the feed to refresh
            pagination: Token of the feed page to return afterwards (empty for first page)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - new_articles: number of articles added
            - page: the requested feed page after the refresh
            - error: string if the feed is unknown or could not be fetched/parsed
        """
        logger.info(f"refresh_feed called: feed_id={feed_id}")

        try:
            feed = await store.get_feed_by_id(feed_id)
            added = await refresher.refresh(feed)
            page = await store.get_feeds(pagination)
        except FeedAggregatorError as e:
            logger.error(f"Error refreshing feed {feed_id}: {e}")
            return _error(e)

        return {
            "success": True,
            "new_articles": added,
            "page": page.to_dict(),
        }

    async def refresh_all_feeds(ctx: Context = None) -> Dict[str, Any]:
        """Run a full sweep over every feed now.

        Failures are counted per feed and do not stop the sweep.

        Returns:
            Dictionary with success, feeds_refreshed and feeds_failed
        """
        logger.info("refresh_all_feeds called")

        result = await scheduler.sweep()
        return {
            "success": True,
            "feeds_refreshed": result.refreshed,
            "feeds_failed": result.failed,
        }

    async def list_articles(
        article_filter: str = "unread",
        pagination: str = "",
        ctx: Context = None,
    ) -> Dict[str, Any]:
        """List articles in one read-state, newest published first.

        Args:
            article_filter: One of "unread", "read", "favorited"
            pagination: Token from a previous page's cursor.next (empty for first page)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with:
            - success: bool
            - article_filter: the canonical filter name
            - page: object with cursor (has_next, next) and items (articles)
        """
        logger.info(f"list_articles called: filter={article_filter}, pagination={pagination!r}")

        try:
            selected = Filter.parse(article_filter)
            page = await store.filter(selected, pagination)
        except FeedAggregatorError as e:
            return _error(e)

        return {
            "success": True,
            "article_filter": str(selected),
            "page": page.to_dict(),
        }

    async def get_article(article_id: str, ctx: Context = None) -> Dict[str, Any]:
        """Get a single article by id.

        Returns:
            Dictionary with success and article, or error if not found
        """
        try:
            article = await store.get_article_by_id(article_id)
        except FeedAggregatorError as e:
            return _error(e)

        return {"success": True, "article": article.to_dict()}

    async def mark_article_read(
        article_id: str,
        article_filter: str = "unread",
        pagination: str = "",
        ctx: Context = None,
    ) -> Dict[str, Any]:
        """Mark an article as read and return the refreshed article list.

        Args:
            article_id: Id of the article
            article_filter: Filter of the list to return ("unread", "read", "favorited")
            pagination: Token of the list page to return (empty for first page)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with success, article and page
        """
        logger.info(f"mark_article_read called: article_id={article_id}")

        try:
            selected = Filter.parse(article_filter)
            article = await store.get_article_by_id(article_id)
            article = await store.mark_article_read(article)
            page = await store.filter(selected, pagination)
        except FeedAggregatorError as e:
            return _error(e)

        return {
            "success": True,
            "article": article.to_dict(),
            "page": page.to_dict(),
        }

    async def mark_article_favorite(
        article_id: str,
        article_filter: str = "unread",
        pagination: str = "",
        ctx: Context = None,
    ) -> Dict[str, Any]:
        """Toggle an article's favorite flag and return the refreshed article list.

        Calling this twice restores the original state.

        Args:
            article_id: Id of the article
            article_filter: Filter of the list to return ("unread", "read", "favorited")
            pagination: Token of the list page to return (empty for first page)
            ctx: MCP Context object (injected automatically)

        Returns:
            Dictionary with success, article (including the new favorited value) and page
        """
        logger.info(f"mark_article_favorite called: article_id={article_id}")

        try:
            selected = Filter.parse(article_filter)
            article = await store.mark_article_favorite(article_id)
            page = await store.filter(selected, pagination)
        except FeedAggregatorError as e:
            return _error(e)

        return {
            "success": True,
            "article": article.to_dict(),
            "page": page.to_dict(),
        }

    return [
        add_feed,
        delete_feed,
        list_feeds,
        refresh_feed,
        refresh_all_feeds,
        list_articles,
        get_article,
        mark_article_read,
        mark_article_favorite,
    ]
