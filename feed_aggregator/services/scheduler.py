"""Periodic refresh of every feed."""

import logging
from dataclasses import dataclass
from typing import Optional

import anyio
from anyio.lowlevel import checkpoint

from feed_aggregator.config import DEFAULT_REFRESH_SECONDS
from feed_aggregator.models.schemas import MAX_DATE
from feed_aggregator.services.refresher import Refresher
from feed_aggregator.storage.database import FeedStore

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    refreshed: int = 0
    failed: int = 0


class Scheduler:
    """Drives full sweeps of all feeds through a Refresher on a fixed interval."""

    def __init__(
        self,
        store: FeedStore,
        refresher: Refresher,
        interval: float = DEFAULT_REFRESH_SECONDS,
    ):
        self.store = store
        self.refresher = refresher
        self.interval = interval

    async def sweep(self, shutdown: Optional[anyio.Event] = None) -> SweepResult:
        """Refresh every feed once, page by page, newest feed first.

        A failing feed is logged and skipped. If listing feeds fails the sweep
        ends early. Cancellation and ``shutdown`` are honored between feeds;
        the refresh in flight always completes.
        """
        result = SweepResult()
        token = MAX_DATE
        has_next = True

        while has_next:
            try:
                page = await self.store.get_feeds(token)
            except Exception as e:
                logger.error(f"Could not list feeds: {e}")
                break

            has_next = page.cursor.has_next
            token = page.cursor.next

            for feed in page.items:
                await checkpoint()
                if shutdown is not None and shutdown.is_set():
                    logger.info("Shutdown requested, ending sweep early")
                    return result

                # Let an in-flight refresh finish even if shutdown cancels us.
                with anyio.CancelScope(shield=True):
                    try:
                        await self.refresher.refresh(feed)
                        result.refreshed += 1
                    except Exception as e:
                        result.failed += 1
                        logger.error(f"Error updating feed {feed.feed_url}: {e}")

        logger.info(f"Sweep complete: {result.refreshed} refreshed, {result.failed} failed")
        return result

    async def run(self, shutdown: anyio.Event) -> None:
        """Sweep immediately, then every ``interval`` seconds until shutdown is set."""
        logger.info(f"Refreshing feeds every {self.interval} seconds")

        while not shutdown.is_set():
            await self.sweep(shutdown)
            with anyio.move_on_after(self.interval):
                await shutdown.wait()

        logger.info("Refresh loop stopped")
