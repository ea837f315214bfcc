# =============================================================================
# View States
# =============================================================================
# The three base views of the navigation model, as immutable variants:
#
#   GroupListView  ->  EmailListView  ->  ThreadView
#   (all senders)      (one sender)       (one conversation, all senders)
#
# Exactly one base view is active at a time (overlays like search or a
# pending confirmation wrap one, see navigation.py). The active view is the
# only source of truth for what is rendered and which actions are legal.
#
# `selected_index` is None when the view's list is empty.
# =============================================================================

from dataclasses import dataclass

from zeroterm.core.grouping import GroupMode


@dataclass(frozen=True)
class GroupListView:
    """
    The list of sender groups.

    Attributes:
        mode: Grouping mode the list was built with.
        selected_index: Highlighted group, None if there are no groups.
        search: Last confirmed search query ("" if none).
    """
    mode: GroupMode
    selected_index: int | None = 0
    search: str = ""


@dataclass(frozen=True)
class EmailListView:
    """
    The messages of one sender group.

    Attributes:
        group_key: Key of the group being shown.
        selected_index: Highlighted message, None if the group is empty.
        search: Last confirmed search query ("" if none).
        group_index: Row of the group in the Group List, used to restore
                     the selection there when going back.
    """
    group_key: str
    selected_index: int | None = 0
    search: str = ""
    group_index: int = 0


@dataclass(frozen=True)
class ThreadView:
    """
    All messages of one conversation, from every sender.

    Attributes:
        thread_id: Conversation being shown.
        selected_index: Highlighted message.
        return_to: View to go back to (the Email List it was opened from,
                   or the Group List if entered directly).
    """
    thread_id: str
    selected_index: int | None = 0
    return_to: "GroupListView | EmailListView | None" = None


BaseView = GroupListView | EmailListView | ThreadView
