# =============================================================================
# Scope Calculator
# =============================================================================
# Computes the exact set of messages an archive/delete will change, plus a
# warning summary of everyone else in the affected conversations.
#
# The rules are asymmetric on purpose:
#
#   Group List / Email List:
#       Only the acting sender's messages are ever in scope. Messages from
#       other participants in the same threads are counted for the warning
#       but never touched.
#
#   Thread View:
#       The whole thread is in scope, every sender included. This is the
#       only place a cross-sender mutation is possible, and it always needs
#       confirmation.
#
# Thread protection (config `protect_threads`): a multi-message thread may
# only be changed from a sender view after the user has opened it in Thread
# View at least once this session.
# =============================================================================

import logging
from collections.abc import Collection
from dataclasses import dataclass, field
from enum import Enum

from zeroterm.core.grouping import GroupMode, SenderGroup, grouping_key
from zeroterm.core.threads import Thread, ThreadIndex
from zeroterm.core.views import BaseView, EmailListView, GroupListView, ThreadView

logger = logging.getLogger(__name__)


class ActionKind(Enum):
    """The two mutations zeroterm performs."""
    ARCHIVE = "archive"
    DELETE = "delete"

    @property
    def verb(self) -> str:
        return "Archive" if self is ActionKind.ARCHIVE else "Delete"

    @property
    def icon(self) -> str:
        return "📥" if self is ActionKind.ARCHIVE else "🗑"


# -----------------------------------------------------------------------------
# Action targets
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class MessageTarget:
    """One message, from a sender view."""
    message_id: str


@dataclass(frozen=True)
class GroupTarget:
    """Every message of a sender group, from a sender view."""
    group: SenderGroup


@dataclass(frozen=True)
class ThreadTarget:
    """A whole conversation, from Thread View."""
    thread_id: str


ActionTarget = MessageTarget | GroupTarget | ThreadTarget


@dataclass(frozen=True)
class ActionScope:
    """
    The blast radius of one archive/delete request.

    Attributes:
        action: Archive or delete.
        target: What the user asked to act on.
        target_message_ids: Exactly the ids that will be sent to the server.
        excluded_other_sender_count: Messages in the affected threads that
            belong to other senders and will NOT be touched.
        affected_thread_count: Distinct threads containing scope messages.
        requires_confirmation: Whether the user must confirm first.
        acting_key: Grouping key of the acting sender ("" for threads).
        other_senders: Distinct addresses behind the excluded messages.
        unreviewed_threads: Multi-message threads that block the action
            until they are opened in Thread View (thread protection).
    """
    action: ActionKind
    target: ActionTarget
    target_message_ids: frozenset[str]
    excluded_other_sender_count: int = 0
    affected_thread_count: int = 0
    requires_confirmation: bool = True
    acting_key: str = ""
    other_senders: frozenset[str] = field(default_factory=frozenset)
    unreviewed_threads: frozenset[str] = field(default_factory=frozenset)

    @property
    def count(self) -> int:
        return len(self.target_message_ids)

    @property
    def is_blocked(self) -> bool:
        """True if thread protection forbids running this action yet."""
        return bool(self.unreviewed_threads)

    def describe(self) -> str:
        """One-line confirmation prompt."""
        noun = "email" if self.count == 1 else "emails"
        if isinstance(self.target, ThreadTarget):
            return f"{self.action.icon} {self.action.verb} entire thread ({self.count} {noun})?"
        return f"{self.action.icon} {self.action.verb} {self.count} {noun} from {self.acting_key}?"

    def warning(self) -> str:
        """Cross-sender warning, or "" when nobody else is involved."""
        if not self.excluded_other_sender_count:
            return ""
        noun = "email" if self.excluded_other_sender_count == 1 else "emails"
        senders = ", ".join(sorted(self.other_senders))
        return (
            f"⚠ {self.excluded_other_sender_count} {noun} from other participants "
            f"({senders}) in {self.affected_thread_count} thread(s) will stay in the inbox"
        )


# =============================================================================
# Computation
# =============================================================================

def compute_scope(
    action: ActionKind,
    target: ActionTarget,
    view: BaseView,
    thread_index: ThreadIndex,
    *,
    mode: GroupMode,
    reviewed_threads: Collection[str] = (),
    protect_threads: bool = True,
) -> ActionScope:
    """
    Compute the scope of an action.

    Args:
        action: Archive or delete.
        target: Message, group or thread to act on.
        view: The view the action was requested from.
        thread_index: Index built from the current store.
        mode: Current grouping mode. "Other sender" means "other grouping
              key", so in domain mode colleagues on the same domain count
              as the acting sender.
        reviewed_threads: Threads opened in Thread View this session.
        protect_threads: Whether thread protection is enabled.

    Returns:
        The computed ActionScope.

    Raises:
        InvariantViolation: If the target is not legal in `view` or refers
            to messages/threads that are not in the index.
    """
    if isinstance(target, ThreadTarget):
        return _thread_scope(action, target, view, thread_index)

    if isinstance(view, ThreadView):
        raise InvariantViolation("Only whole-thread actions are allowed in thread view")
    if not isinstance(view, (GroupListView, EmailListView)):
        raise InvariantViolation(f"Unknown view {view!r}")

    if isinstance(target, MessageTarget):
        message = thread_index.message(target.message_id)
        if message is None:
            raise InvariantViolation(f"Message {target.message_id!r} is not in the store")
        acting_key = grouping_key(message, mode)
        if isinstance(view, EmailListView) and view.group_key != acting_key:
            raise InvariantViolation(
                f"Message {message.id!r} is not in the group shown ({view.group_key!r})"
            )
        ids = frozenset({message.id})
        requires_confirmation = False
    elif isinstance(target, GroupTarget):
        group = target.group
        if isinstance(view, EmailListView) and view.group_key != group.key:
            raise InvariantViolation(
                f"Group {group.key!r} is not the group shown ({view.group_key!r})"
            )
        for message_id in group.message_ids:
            message = thread_index.message(message_id)
            if message is None or grouping_key(message, mode) != group.key:
                raise InvariantViolation(f"Group {group.key!r} is stale")
        acting_key = group.key
        ids = frozenset(group.message_ids)
        requires_confirmation = True
    else:
        raise InvariantViolation(f"Unknown action target {target!r}")

    touched = _touched_threads(ids, thread_index)
    excluded = 0
    other_senders: set[str] = set()
    unreviewed: set[str] = set()

    for thread in touched:
        for member_id in thread.message_ids:
            if member_id in ids:
                continue
            member = thread_index.message(member_id)
            if grouping_key(member, mode) != acting_key:
                excluded += 1
                other_senders.add(member.address)
        if protect_threads and not thread.is_single_message and thread.thread_id not in reviewed_threads:
            unreviewed.add(thread.thread_id)

    scope = ActionScope(
        action=action,
        target=target,
        target_message_ids=ids,
        excluded_other_sender_count=excluded,
        affected_thread_count=len(touched),
        requires_confirmation=requires_confirmation,
        acting_key=acting_key,
        other_senders=frozenset(other_senders),
        unreviewed_threads=frozenset(unreviewed),
    )
    logger.debug(
        f"Scope {action.value} {acting_key}: {scope.count} ids, "
        f"{excluded} excluded, {len(unreviewed)} unreviewed threads"
    )
    return scope


def _thread_scope(
    action: ActionKind,
    target: ThreadTarget,
    view: BaseView,
    thread_index: ThreadIndex,
) -> ActionScope:
    """Whole-thread scope: every member, no exclusions, always confirmed."""
    if not isinstance(view, ThreadView) or view.thread_id != target.thread_id:
        raise InvariantViolation("Whole-thread actions are only allowed from that thread's view")

    thread = thread_index.get(target.thread_id)
    if thread is None:
        raise InvariantViolation(f"Thread {target.thread_id!r} is not in the store")

    return ActionScope(
        action=action,
        target=target,
        target_message_ids=frozenset(thread.message_ids),
        excluded_other_sender_count=0,
        affected_thread_count=1,
        requires_confirmation=True,
    )


def _touched_threads(ids: Collection[str], thread_index: ThreadIndex) -> list[Thread]:
    """Distinct threads containing any of `ids`, in first-touch order."""
    seen: dict[str, Thread] = {}
    for message_id in ids:
        thread = thread_index.thread_of(message_id)
        if thread is not None:
            seen.setdefault(thread.thread_id, thread)
    return list(seen.values())


# =============================================================================
# Exceptions
# =============================================================================

class InvariantViolation(Exception):
    """
    Raised when an action target is not legal in the current view.

    This is a programming fault; callers recover by doing nothing.
    """
    pass
