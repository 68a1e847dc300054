"""Main module for feed_aggregator.

This module allows the server to be run as a Python module using:
python -m feed_aggregator

It delegates to the server application's main function.
"""

from feed_aggregator.server.app import main

if __name__ == "__main__":
    main()
