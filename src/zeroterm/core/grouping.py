# =============================================================================
# Grouping Engine
# =============================================================================
# Derives the ordered list of sender groups shown in the Group List.
#
# Two grouping modes exist:
#   - by address: "alice@example.com" and "bob@example.com" are two groups
#   - by domain:  both land in "example.com"
#
# Groups are ordered by the first time their key appears in the input (the
# fetch order), not alphabetically and not by size. Members keep their
# original order. Groups are always rebuilt from scratch; there is no
# incremental patching to drift out of sync with the store.
# =============================================================================

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from zeroterm.core.message import Message

logger = logging.getLogger(__name__)


class GroupMode(Enum):
    """How messages are grouped into sender groups."""
    BY_ADDRESS = "address"
    BY_DOMAIN = "domain"

    def toggled(self) -> "GroupMode":
        """Return the other mode."""
        if self is GroupMode.BY_ADDRESS:
            return GroupMode.BY_DOMAIN
        return GroupMode.BY_ADDRESS

    @property
    def label(self) -> str:
        """Short label for headers ("By Address" / "By Domain")."""
        return "By Address" if self is GroupMode.BY_ADDRESS else "By Domain"

    @classmethod
    def parse(cls, value: str) -> "GroupMode":
        """
        Parse a config value ("address"/"email"/"domain").

        Raises:
            ValueError: If the value names no known mode.
        """
        normalized = value.strip().lower()
        if normalized in ("address", "email", "by-address", "by_address"):
            return cls.BY_ADDRESS
        if normalized in ("domain", "by-domain", "by_domain"):
            return cls.BY_DOMAIN
        raise ValueError(f"Unknown grouping mode: {value!r}")


@dataclass(frozen=True)
class SenderGroup:
    """
    A set of messages sharing a grouping key.

    Attributes:
        key: Full address (by-address mode) or domain (by-domain mode).
        message_ids: Member ids in arrival order.
    """
    key: str
    message_ids: tuple[str, ...]

    @property
    def count(self) -> int:
        return len(self.message_ids)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self.message_ids


def grouping_key(message: Message, mode: GroupMode) -> str:
    """Return the key `message` is grouped under in `mode`."""
    if mode is GroupMode.BY_DOMAIN:
        return message.domain
    return message.address


def group_messages(messages: Iterable[Message], mode: GroupMode) -> list[SenderGroup]:
    """
    Partition messages into sender groups.

    Every message lands in exactly one group. A malformed sender (no "@")
    gets a group of its own keyed by the raw address and a data-quality
    warning is logged; grouping never fails.

    Args:
        messages: Messages in arrival order.
        mode: Grouping mode.

    Returns:
        Groups ordered by first appearance of their key.
    """
    # dict preserves first-seen key order
    members: dict[str, list[str]] = {}
    malformed: set[str] = set()

    for message in messages:
        if not message.has_valid_address and message.address not in malformed:
            malformed.add(message.address)
            logger.warning(
                f"Data quality: sender {message.sender!r} of message {message.id} "
                f"has no '@', grouping it on its own"
            )
        key = grouping_key(message, mode)
        members.setdefault(key, []).append(message.id)

    return [SenderGroup(key=key, message_ids=tuple(ids)) for key, ids in members.items()]
