"""Node kinds shared by both stores."""

from enum import Enum


class NodeKind(str, Enum):
    """Kinds of entities that live in both stores.

    The value doubles as the ``dgraph.type`` label.
    """

    USER = "User"
    EVENT = "Event"
    POST = "Post"
    COMMENT = "Comment"

    @property
    def id_predicate(self) -> str:
        """Graph predicate holding the external id (``user_id``, ``event_id``...)."""
        return f"{self.value.lower()}_id"

    @property
    def table(self) -> str:
        """Relational table holding the display attributes."""
        return f"{self.value.lower()}s"
