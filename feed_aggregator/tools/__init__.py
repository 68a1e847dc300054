"""MCP tools for feed_aggregator."""
