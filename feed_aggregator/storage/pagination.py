"""Keyset pagination over a (key DESC, id DESC) ordering.

Tokens are opaque strings on the wire but decode to a typed PageKey. The
MAX_DATE sentinel (or an empty token) means "start from the top".
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple, TypeVar

from feed_aggregator.models.schemas import MAX_DATE, Cursor, Page

SEPARATOR = "|"

T = TypeVar("T")


@dataclass(frozen=True)
class PageKey:
    """Position of the last item seen.

    ``id`` is None for bare-key tokens, which resume strictly below ``key``.
    """

    key: str
    id: Optional[str] = None

    def encode(self) -> str:
        if self.id is None:
            return self.key
        return f"{self.key}{SEPARATOR}{self.id}"


def decode_token(token: Optional[str]) -> Optional[PageKey]:
    """Turn a transport token into a PageKey, or None for the first page."""
    if not token or token == MAX_DATE:
        return None

    # Ids are base64url and never contain the separator; keys might.
    key, sep, ident = token.rpartition(SEPARATOR)
    if not sep:
        return PageKey(key=token)
    return PageKey(key=key, id=ident)


def keyset_clause(key_column: str, position: Optional[PageKey]) -> Tuple[str, List[Any]]:
    """Build the WHERE fragment that resumes after ``position``.

    Returns an empty fragment for the first page.
    """
    if position is None:
        return "", []

    if position.id is None:
        return f"{key_column} < ?", [position.key]

    return (
        f"({key_column} < ? OR ({key_column} = ? AND id < ?))",
        [position.key, position.key, position.id],
    )


def order_clause(key_column: str) -> str:
    return f"ORDER BY {key_column} DESC, id DESC"


def build_page(rows: Sequence[T], page_size: int) -> Page[T]:
    """Trim a ``page_size + 1`` row fetch into a Page.

    Items must expose ``pagination_key`` and ``id``.
    """
    items = list(rows[:page_size])
    has_next = len(rows) > page_size

    if items:
        last = items[-1]
        next_token = PageKey(key=last.pagination_key, id=last.id).encode()
    else:
        next_token = MAX_DATE

    return Page(cursor=Cursor(has_next=has_next, next=next_token), items=items)
