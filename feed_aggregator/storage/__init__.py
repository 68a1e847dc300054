"""Storage layer for feed_aggregator."""

from .database import FeedStore
from .pagination import PageKey, decode_token

__all__ = [
    "FeedStore",
    "PageKey",
    "decode_token",
]
