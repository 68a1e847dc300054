"""Content addressing for feeds and articles.

Ids are the URL-safe base64 encoding of the URL bytes, not a hash, so they are
reversible and need no lookup table. URLs are not normalized: a trailing slash
or reordered query string yields a different id.
"""

import base64
import re

_ID_CHARS = re.compile(r"^[A-Za-z0-9_-]*=*$")


def feed_id(feed_url: str) -> str:
    """Derive a feed id from its feed URL (padded URL-safe base64)."""
    return base64.urlsafe_b64encode(feed_url.encode("utf-8")).decode("ascii")


def article_id(link: str) -> str:
    """Derive an article id from its link (URL-safe base64, no padding)."""
    encoded = base64.urlsafe_b64encode(link.encode("utf-8")).decode("ascii")
    return encoded.rstrip("=")


def decode_id(identifier: str) -> str:
    """Recover the URL an id was derived from.

    Accepts both padded feed ids and unpadded article ids.

    Raises:
        ValueError: If the identifier is not valid URL-safe base64
    """
    if not _ID_CHARS.match(identifier):
        raise ValueError(f"Invalid identifier '{identifier}'")

    padded = identifier + "=" * (-len(identifier) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (ValueError, UnicodeError) as e:
        raise ValueError(f"Invalid identifier '{identifier}'") from e
