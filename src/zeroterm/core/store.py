# =============================================================================
# Message Store
# =============================================================================
# In-memory collection of the messages fetched for the active mailbox.
#
# Pure data: the store keeps messages in arrival order and indexes them by
# id. It has exactly two mutation paths:
#   - load():   replace everything (initial fetch / refresh)
#   - remove(): drop ids after a server-side archive/delete succeeded
#
# Groups and threads are derived from the store and must be rebuilt after
# either mutation. `generation` lets callers detect that they are stale.
# =============================================================================

import logging
from collections.abc import Iterable, Iterator

from zeroterm.core.message import Message

logger = logging.getLogger(__name__)


class MessageStore:
    """
    Ordered, id-indexed collection of messages.

    Usage:
        >>> store = MessageStore()
        >>> store.load(messages)
        >>> store.remove({"12", "13"})
        {'12', '13'}
    """

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        # dicts keep insertion order, which is the fetch/arrival order
        self._messages: dict[str, Message] = {}
        self.generation = 0
        if messages:
            self.load(messages)

    def load(self, messages: Iterable[Message]) -> None:
        """
        Replace the full message set.

        Duplicate ids keep their first occurrence.
        """
        loaded: dict[str, Message] = {}
        for message in messages:
            if message.id in loaded:
                logger.warning(f"Duplicate message id {message.id!r} in fetch, keeping first")
                continue
            loaded[message.id] = message

        self._messages = loaded
        self.generation += 1
        logger.debug(f"Store loaded {len(loaded)} messages (generation {self.generation})")

    def remove(self, ids: Iterable[str]) -> set[str]:
        """
        Remove messages by id.

        Args:
            ids: Ids to remove. Unknown ids are ignored.

        Returns:
            The ids that were actually present and removed.
        """
        removed = set()
        for message_id in ids:
            if self._messages.pop(message_id, None) is not None:
                removed.add(message_id)

        if removed:
            self.generation += 1
            logger.debug(f"Store removed {len(removed)} messages (generation {self.generation})")
        return removed

    def all(self) -> list[Message]:
        """Return all messages in stable arrival order."""
        return list(self._messages.values())

    def get(self, message_id: str) -> Message | None:
        return self._messages.get(message_id)

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._messages

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages.values()))
