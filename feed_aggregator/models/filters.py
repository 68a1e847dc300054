"""Named article read-states used to filter article views."""

from enum import Enum

from feed_aggregator.exceptions import UnknownFilter


class Filter(Enum):
    """Article filter.

    Read and Favorite are independent axes; Unread is the complement of Read
    only. The value is the canonical transport token.
    """

    UNREAD = "unread"
    READ = "read"
    FAVORITE = "favorited"

    def __str__(self) -> str:
        return self.value

    def to_string(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> "Filter":
        """Parse a canonical token.

        Raises:
            UnknownFilter: If the token is not one of the canonical values
        """
        try:
            return cls(value)
        except ValueError:
            raise UnknownFilter(value) from None

    @property
    def predicate(self) -> str:
        """SQL predicate over the articles table selecting this state."""
        return _PREDICATES[self]


_PREDICATES = {
    Filter.UNREAD: "read = 0",
    Filter.READ: "read = 1",
    Filter.FAVORITE: "favorited = 1",
}
