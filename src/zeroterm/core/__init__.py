# =============================================================================
# zeroterm Core Module
# =============================================================================
# The navigation-and-action core. Pure Python with no dependency on the
# terminal UI or the mail transport, so it can be driven directly in tests.
#
#   - Message / Account: the domain models
#   - MessageStore: the fetched inbox
#   - group_messages / ThreadIndex: views derived from the store
#   - compute_scope: what an archive/delete will actually change
#   - Navigator: the view state machine that ties it all together
# =============================================================================

from zeroterm.core.account import Account
from zeroterm.core.grouping import GroupMode, SenderGroup, group_messages
from zeroterm.core.message import Message, MessageFlags
from zeroterm.core.navigation import Navigator, NavigatorSettings
from zeroterm.core.scope import ActionKind, ActionScope, InvariantViolation, compute_scope
from zeroterm.core.store import MessageStore
from zeroterm.core.threads import Thread, ThreadIndex

__all__ = [
    "Account",
    "ActionKind",
    "ActionScope",
    "GroupMode",
    "InvariantViolation",
    "Message",
    "MessageFlags",
    "MessageStore",
    "Navigator",
    "NavigatorSettings",
    "SenderGroup",
    "Thread",
    "ThreadIndex",
    "compute_scope",
    "group_messages",
]
