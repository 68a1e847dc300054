"""Error taxonomy for feed_aggregator."""


class FeedAggregatorError(Exception):
    """Base class for all feed_aggregator errors."""


class NotFound(FeedAggregatorError, LookupError):
    """A feed or article lookup missed."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} '{identifier}' not found")


class DuplicateFeed(FeedAggregatorError):
    """A feed with the same derived id already exists."""

    def __init__(self, feed_url: str):
        self.feed_url = feed_url
        super().__init__(f"Feed with URL '{feed_url}' already exists")


class UnknownFilter(FeedAggregatorError, ValueError):
    """An article filter token was not recognized."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Unknown article filter '{value}'")


class RefreshError(FeedAggregatorError):
    """A single feed could not be refreshed."""


class FetchFailed(RefreshError):
    """The feed document could not be downloaded."""


class ParseFailed(RefreshError):
    """The downloaded document is not a syndication feed."""


class StoreUnavailable(FeedAggregatorError):
    """The persistence layer could not be reached or initialized."""
