"""Services for feed_aggregator."""

from .feed_parser import entry_to_article, fetch_feed, parse_entries
from .refresher import Refresher
from .scheduler import Scheduler, SweepResult

__all__ = [
    "entry_to_article",
    "fetch_feed",
    "parse_entries",
    "Refresher",
    "Scheduler",
    "SweepResult",
]
