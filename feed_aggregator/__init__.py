"""feed_aggregator - RSS/Atom feed aggregator with paginated article views."""

__version__ = "0.1.0"
