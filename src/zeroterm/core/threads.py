# =============================================================================
# Thread Index
# =============================================================================
# Maps messages to conversations. A thread cuts across sender groups: a
# conversation with Alice and Bob contains messages from both, and any bulk
# action on "alice@..." touches a thread Bob is part of.
#
# The index is rebuilt from the full store after every mutation. Inbox
# volumes are human-scale, and a full rebuild cannot go stale.
#
# Providers like Gmail supply thread ids directly. For plain IMAP, thread ids
# are derived from Message-ID / In-Reply-To / References headers with
# assign_thread_ids().
# =============================================================================

import dataclasses
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from zeroterm.core.message import Message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Thread:
    """
    A conversation.

    Attributes:
        thread_id: Conversation identifier.
        message_ids: Member ids in store (arrival) order.
        senders: Distinct normalized sender addresses among the members.
    """
    thread_id: str
    message_ids: tuple[str, ...]
    senders: frozenset[str]

    @property
    def size(self) -> int:
        return len(self.message_ids)

    @property
    def is_multi_participant(self) -> bool:
        """True if more than one distinct sender wrote into this thread."""
        return len(self.senders) > 1

    @property
    def is_single_message(self) -> bool:
        return len(self.message_ids) == 1


class ThreadIndex:
    """
    Thread lookup built from a snapshot of messages.

    Usage:
        >>> index = ThreadIndex.build(store.all())
        >>> index.thread_of("42").is_multi_participant
        True
    """

    def __init__(self, threads: dict[str, Thread], messages: dict[str, Message]) -> None:
        self._threads = threads
        self._messages = messages

    @classmethod
    def build(cls, messages: Iterable[Message]) -> "ThreadIndex":
        """Index messages by thread. A message without thread id is its own thread."""
        by_id: dict[str, Message] = {}
        members: dict[str, list[str]] = {}
        senders: dict[str, set[str]] = {}

        for message in messages:
            thread_id = message.thread_id or message.id
            by_id[message.id] = message
            members.setdefault(thread_id, []).append(message.id)
            senders.setdefault(thread_id, set()).add(message.address)

        threads = {
            thread_id: Thread(
                thread_id=thread_id,
                message_ids=tuple(ids),
                senders=frozenset(senders[thread_id]),
            )
            for thread_id, ids in members.items()
        }
        return cls(threads, by_id)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get(self, thread_id: str) -> Thread | None:
        return self._threads.get(thread_id)

    def message(self, message_id: str) -> Message | None:
        return self._messages.get(message_id)

    def thread_of(self, message_id: str) -> Thread | None:
        """Return the thread containing `message_id`, or None if unknown."""
        message = self._messages.get(message_id)
        if message is None:
            return None
        return self._threads.get(message.thread_id or message.id)

    def messages_in(self, thread_id: str) -> list[Message]:
        """Return the thread's messages in store order."""
        thread = self._threads.get(thread_id)
        if thread is None:
            return []
        return [self._messages[mid] for mid in thread.message_ids]

    def participants_other_than(self, thread_id: str, acting_sender: str) -> set[str]:
        """Distinct sender addresses in the thread, excluding `acting_sender`."""
        thread = self._threads.get(thread_id)
        if thread is None:
            return set()
        return set(thread.senders) - {acting_sender.lower()}

    def is_multi_participant(self, thread_id: str) -> bool:
        thread = self._threads.get(thread_id)
        return thread is not None and thread.is_multi_participant

    def __contains__(self, thread_id: object) -> bool:
        return thread_id in self._threads

    def __len__(self) -> int:
        return len(self._threads)


# =============================================================================
# Header-based threading
# =============================================================================

def _normalize_message_id(value: str) -> str:
    return value.strip().strip("<>").lower()


def assign_thread_ids(messages: Iterable[Message]) -> list[Message]:
    """
    Fill in thread ids for messages the provider did not thread.

    Messages are linked when one's Message-ID appears in another's
    In-Reply-To or References headers (transitively, via union-find).
    A message that already has a thread_id keeps it, and any header-linked
    message without one joins that thread.

    Returns:
        New Message objects (messages are immutable) in the input order.
    """
    messages = list(messages)
    parent: dict[str, str] = {}

    def find(node: str) -> str:
        parent.setdefault(node, node)
        while parent[node] != node:
            parent[node] = parent[parent[node]]
            node = parent[node]
        return node

    def union(a: str, b: str) -> None:
        root_a, root_b = find(a), find(b)
        if root_a != root_b:
            parent[root_b] = root_a

    # Nodes: "m:<message-id header>" for header ids, "u:<id>" for messages
    for message in messages:
        node = f"u:{message.id}"
        find(node)
        if message.message_id:
            union(node, f"m:{_normalize_message_id(message.message_id)}")
        linked = list(message.references)
        if message.in_reply_to:
            linked.append(message.in_reply_to)
        for ref in linked:
            ref = _normalize_message_id(ref)
            if ref:
                union(node, f"m:{ref}")

    # Provider thread ids win for the whole component
    component_ids: dict[str, str] = {}
    for message in messages:
        if message.thread_id:
            component_ids.setdefault(find(f"u:{message.id}"), message.thread_id)

    result = []
    for message in messages:
        if message.thread_id:
            result.append(message)
            continue
        root = find(f"u:{message.id}")
        # First member's id names the thread, so ids are stable across refreshes
        thread_id = component_ids.setdefault(root, f"t:{message.id}")
        result.append(dataclasses.replace(message, thread_id=thread_id))

    logger.debug(f"Assigned thread ids: {len(set(m.thread_id for m in result))} threads")
    return result
