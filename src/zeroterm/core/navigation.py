# =============================================================================
# Navigation State Machine
# =============================================================================
# Owns everything the user can see and do:
#   - the current view (Group List / Email List / Thread View)
#   - overlays on top of it (search prompt, pending confirmation, busy, help)
#   - the grouping mode
#   - which threads were reviewed in Thread View this session
#   - which ids failed in the last partial failure
#
# The navigator is synchronous and processes one input at a time. It never
# talks to the mail server itself: when something has to happen on the
# server it returns a StartOperation effect, enters the Busy overlay, and
# waits for the UI to report the result via complete_operation() /
# complete_fetch() / fail_operation().
#
# After every store mutation groups and threads are rebuilt from scratch and
# the view is reconciled: selection is clamped, and a view whose group or
# thread disappeared pops back one level (or more).
# =============================================================================

import dataclasses
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from zeroterm.core.grouping import GroupMode, SenderGroup, group_messages
from zeroterm.core.keys import Key
from zeroterm.core.message import Message
from zeroterm.core.operations import Operation, OperationKind, OperationOutcome
from zeroterm.core.scope import (
    ActionKind,
    ActionScope,
    GroupTarget,
    InvariantViolation,
    MessageTarget,
    ThreadTarget,
    compute_scope,
)
from zeroterm.core.store import MessageStore
from zeroterm.core.threads import ThreadIndex
from zeroterm.core.views import BaseView, EmailListView, GroupListView, ThreadView

logger = logging.getLogger(__name__)


# =============================================================================
# Overlays
# =============================================================================

@dataclass(frozen=True)
class PendingConfirmation:
    """An action waiting for y/n. Nothing has been sent to the server yet."""
    scope: ActionScope
    return_state: BaseView


@dataclass(frozen=True)
class SearchMode:
    """
    Incremental search prompt.

    Attributes:
        return_state: The view being searched; its selection follows the
                      current match.
        query: Text typed so far.
        original_selection: Selection before the search started, restored
                            exactly on cancel.
    """
    return_state: GroupListView | EmailListView
    query: str = ""
    original_selection: int | None = None


@dataclass(frozen=True)
class Busy:
    """A server operation is in flight; only cancel and quit are accepted."""
    operation: Operation
    return_state: BaseView


@dataclass(frozen=True)
class HelpOverlay:
    return_state: BaseView


Overlay = PendingConfirmation | SearchMode | Busy | HelpOverlay
State = BaseView | Overlay


# =============================================================================
# Effects returned to the UI
# =============================================================================

@dataclass(frozen=True)
class StartOperation:
    """Run `operation` against the mail port and report back."""
    operation: Operation


@dataclass(frozen=True)
class CancelOperation:
    """Stop the background work for `operation`."""
    operation: Operation


@dataclass(frozen=True)
class Notice:
    """Something to tell the user. Severity uses Textual's names."""
    text: str
    severity: str = "information"


@dataclass(frozen=True)
class ExitRequested:
    pass


Effect = StartOperation | CancelOperation | Notice | ExitRequested


# =============================================================================
# Rows
# =============================================================================

@dataclass(frozen=True)
class ListItem:
    """
    One row of the current list.

    Attributes:
        key: Group key (Group List) or message id (Email List, Thread View).
        text: Display text, also what search matches against.
        count: Number of messages behind the row.
        message: The message for message rows.
        warning: Row touches a thread with other participants.
        failed: Row contains ids that failed in the last operation.
    """
    key: str
    text: str
    count: int = 1
    message: Message | None = None
    warning: bool = False
    failed: bool = False


@dataclass
class NavigatorSettings:
    """
    The part of the configuration the navigation core consumes.

    Attributes:
        protect_threads: Require multi-message threads to be opened in
                         Thread View before acting on them from a sender view.
        grouping_mode: Mode the Group List starts in.
    """
    protect_threads: bool = True
    grouping_mode: GroupMode = GroupMode.BY_ADDRESS


def clamp_index(index: int | None, length: int) -> int | None:
    """Clamp a selection into [0, length - 1], or None for an empty list."""
    if length <= 0:
        return None
    if index is None:
        return 0
    return max(0, min(index, length - 1))


# Movement keys and what they do to the selection
MOVEMENT_KEYS = (
    Key.DOWN,
    Key.UP,
    Key.TOP,
    Key.BOTTOM,
    Key.HALF_PAGE_DOWN,
    Key.HALF_PAGE_UP,
)

ACTION_KEYS = {
    Key.ARCHIVE: (ActionKind.ARCHIVE, False),
    Key.DELETE: (ActionKind.DELETE, False),
    Key.ARCHIVE_ALL: (ActionKind.ARCHIVE, True),
    Key.DELETE_ALL: (ActionKind.DELETE, True),
}


class Navigator:
    """
    The navigation-and-action state machine.

    Usage:
        >>> nav = Navigator(MessageStore(messages))
        >>> nav.handle(Key.SELECT)        # open the selected group
        >>> effect = nav.handle(Key.ARCHIVE_ALL)
        >>> nav.handle(Key.CONFIRM)       # -> StartOperation(...)
        >>> nav.complete_operation(op.op_id, OperationOutcome.success(op.message_ids))

    Attributes:
        store: The message store for the active mailbox.
        settings: Thread protection and initial grouping mode.
        mode: Current (process-wide) grouping mode.
        groups: Sender groups derived from the store.
        thread_index: Thread index derived from the store.
        reviewed_threads: Threads opened in Thread View this session.
        failed_ids: Ids that failed in the last partial failure.
        page_size: Visible rows, used for half-page movement.
        state: Current view or overlay.
    """

    def __init__(
        self,
        store: MessageStore | None = None,
        settings: NavigatorSettings | None = None,
    ) -> None:
        self.store = store if store is not None else MessageStore()
        self.settings = settings or NavigatorSettings()
        self.mode = self.settings.grouping_mode

        self.groups: list[SenderGroup] = []
        self._groups_by_key: dict[str, SenderGroup] = {}
        self.thread_index = ThreadIndex.build([])

        self.reviewed_threads: set[str] = set()
        self.failed_ids: set[str] = set()
        self.page_size = 20

        self._next_op_id = 1
        self._in_flight: Operation | None = None

        self._rebuild()
        self.state: State = GroupListView(self.mode, clamp_index(0, len(self.groups)))

    # =========================================================================
    # Derived data
    # =========================================================================

    def _rebuild(self) -> None:
        """Recompute groups and threads from the store."""
        messages = self.store.all()
        self.groups = group_messages(messages, self.mode)
        self._groups_by_key = {group.key: group for group in self.groups}
        self.thread_index = ThreadIndex.build(messages)
        self.failed_ids = {mid for mid in self.failed_ids if mid in self.store}

    def group(self, key: str) -> SenderGroup | None:
        return self._groups_by_key.get(key)

    @property
    def base_view(self) -> BaseView:
        """The view under any overlay."""
        state = self.state
        if isinstance(state, (PendingConfirmation, SearchMode, Busy, HelpOverlay)):
            return state.return_state
        return state

    @property
    def busy(self) -> bool:
        return self._in_flight is not None

    @property
    def in_flight(self) -> Operation | None:
        return self._in_flight

    def items(self, view: BaseView | None = None) -> list[ListItem]:
        """Rows of `view` (default: the current base view)."""
        view = view if view is not None else self.base_view

        if isinstance(view, GroupListView):
            rows = []
            for group in self.groups:
                rows.append(ListItem(
                    key=group.key,
                    text=group.key,
                    count=group.count,
                    warning=any(self._has_other_participants(mid) for mid in group.message_ids),
                    failed=any(mid in self.failed_ids for mid in group.message_ids),
                ))
            return rows

        if isinstance(view, EmailListView):
            group = self.group(view.group_key)
            if group is None:
                return []
            return [self._message_item(self.store.get(mid)) for mid in group.message_ids]

        if isinstance(view, ThreadView):
            return [self._message_item(m) for m in self.thread_index.messages_in(view.thread_id)]

        raise InvariantViolation(f"Unknown view {view!r}")

    def _message_item(self, message: Message) -> ListItem:
        return ListItem(
            key=message.id,
            text=message.display_text,
            message=message,
            warning=self._has_other_participants(message.id),
            failed=message.id in self.failed_ids,
        )

    def _has_other_participants(self, message_id: str) -> bool:
        thread = self.thread_index.thread_of(message_id)
        return thread is not None and thread.is_multi_participant

    def selected_item(self, view: BaseView | None = None) -> ListItem | None:
        view = view if view is not None else self.base_view
        items = self.items(view)
        index = clamp_index(view.selected_index, len(items))
        if index is None:
            return None
        if index != view.selected_index:
            logger.error(f"Selection {view.selected_index} out of bounds for {len(items)} rows")
        return items[index]

    # =========================================================================
    # Loading
    # =========================================================================

    def load(self, messages: Iterable[Message]) -> None:
        """Replace the store contents (initial fetch) and reconcile the view."""
        self.store.load(messages)
        self.failed_ids.clear()
        self._rebuild()
        self.state = self._reconcile(self.base_view)

    # =========================================================================
    # Input
    # =========================================================================

    def handle(self, key: Key) -> Effect | None:
        """
        Process one input event.

        Returns:
            An effect for the UI to carry out, or None.
        """
        state = self.state

        if key is Key.QUIT:
            return ExitRequested()
        if isinstance(state, Busy):
            return self._handle_busy(key)
        if isinstance(state, PendingConfirmation):
            return self._handle_confirmation(key, state)
        if isinstance(state, SearchMode):
            return self._handle_search(key, state)
        if isinstance(state, HelpOverlay):
            if key in (Key.HELP, Key.CANCEL, Key.BACK, Key.SELECT):
                self.state = state.return_state
            return None
        return self._handle_view(key, state)

    def type_text(self, text: str) -> None:
        """Append typed characters to the search query."""
        state = self.state
        if not isinstance(state, SearchMode):
            return
        self.state = self._search(state, state.query + text)

    # -------------------------------------------------------------------------
    # Base views
    # -------------------------------------------------------------------------

    def _handle_view(self, key: Key, view: BaseView) -> Effect | None:
        if key in MOVEMENT_KEYS:
            self.state = self._move(view, key)
            return None

        if key in ACTION_KEYS:
            action, bulk = ACTION_KEYS[key]
            return self._request_action(action, bulk, view)

        if key is Key.SELECT:
            self.state = self._open(view)
            return None

        if key is Key.BACK:
            if isinstance(view, GroupListView):
                return ExitRequested()
            self.state = self._back(view)
            return None

        if key is Key.CANCEL:
            if isinstance(view, GroupListView):
                if view.search:
                    self.state = dataclasses.replace(view, search="")
                return None
            self.state = self._back(view)
            return None

        if key is Key.SEARCH:
            if isinstance(view, ThreadView):
                return Notice("Search is not available in thread view", "warning")
            self.state = SearchMode(view, "", view.selected_index)
            return None

        if key is Key.TOGGLE_MODE:
            return self._toggle_mode()

        if key is Key.REFRESH:
            return self._start_operation(OperationKind.FETCH, frozenset(), None, view)

        if key is Key.HELP:
            self.state = HelpOverlay(view)
            return None

        # CONFIRM, DENY and BACKSPACE mean nothing outside their overlays
        return None

    def _move(self, view: BaseView, key: Key) -> BaseView:
        length = len(self.items(view))
        if length == 0:
            return dataclasses.replace(view, selected_index=None)

        current = clamp_index(view.selected_index, length)
        half_page = max(1, self.page_size // 2)

        if key is Key.DOWN:
            target = current + 1
        elif key is Key.UP:
            target = current - 1
        elif key is Key.TOP:
            target = 0
        elif key is Key.BOTTOM:
            target = length - 1
        elif key is Key.HALF_PAGE_DOWN:
            target = current + half_page
        else:
            target = current - half_page

        return dataclasses.replace(view, selected_index=clamp_index(target, length))

    def _open(self, view: BaseView) -> BaseView:
        if isinstance(view, GroupListView):
            index = clamp_index(view.selected_index, len(self.groups))
            if index is None:
                return view
            group = self.groups[index]
            return EmailListView(
                group_key=group.key,
                selected_index=clamp_index(0, group.count),
                group_index=index,
            )

        if isinstance(view, EmailListView):
            item = self.selected_item(view)
            if item is None:
                return view
            thread = self.thread_index.thread_of(item.key)
            if thread is None:
                logger.error(f"Message {item.key} has no thread in the index")
                return view
            self.reviewed_threads.add(thread.thread_id)
            logger.debug(f"Thread {thread.thread_id} reviewed")
            return ThreadView(
                thread_id=thread.thread_id,
                selected_index=thread.message_ids.index(item.key),
                return_to=view,
            )

        # Thread View has no forward navigation
        return view

    def _back(self, view: BaseView) -> BaseView:
        if isinstance(view, EmailListView):
            return self._group_list_at(view.group_key, view.group_index)
        if isinstance(view, ThreadView):
            return self._reconcile(view.return_to or GroupListView(self.mode, 0))
        return view

    def _group_list_at(self, key: str, fallback_index: int) -> GroupListView:
        """Group List with `key` selected, or the nearest row if it is gone."""
        group = self.group(key)
        index = self.groups.index(group) if group is not None else fallback_index
        return GroupListView(self.mode, clamp_index(index, len(self.groups)))

    def _toggle_mode(self) -> Notice:
        """Switch grouping mode. Group identity changes, so return to Group List."""
        self.mode = self.mode.toggled()
        self._rebuild()
        self.state = GroupListView(self.mode, clamp_index(0, len(self.groups)))
        logger.info(f"Grouping mode: {self.mode.value}")
        return Notice(f"Grouping {self.mode.label.lower()}")

    # -------------------------------------------------------------------------
    # Search overlay
    # -------------------------------------------------------------------------

    def _handle_search(self, key: Key, state: SearchMode) -> Effect | None:
        if key is Key.SELECT:
            self.state = dataclasses.replace(state.return_state, search=state.query)
        elif key is Key.CANCEL:
            self.state = dataclasses.replace(
                state.return_state,
                selected_index=state.original_selection,
            )
        elif key is Key.BACKSPACE:
            self.state = self._search(state, state.query[:-1])
        return None

    def _search(self, state: SearchMode, query: str) -> SearchMode:
        """Jump to the first row matching `query`, evaluated over all rows."""
        selection = state.original_selection
        needle = query.lower()
        if needle:
            for index, item in enumerate(self.items(state.return_state)):
                if needle in item.text.lower():
                    selection = index
                    break

        view = dataclasses.replace(state.return_state, selected_index=selection)
        return SearchMode(view, query, state.original_selection)

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def _request_action(self, action: ActionKind, bulk: bool, view: BaseView) -> Effect | None:
        """Compute the scope of an archive/delete and gate it."""
        if isinstance(view, ThreadView):
            if not bulk:
                return Notice(
                    f"Use {action.verb[0]} to {action.verb.lower()} the whole thread",
                    "warning",
                )
            target = ThreadTarget(view.thread_id)
        elif isinstance(view, GroupListView):
            # The selected item is itself a group
            index = clamp_index(view.selected_index, len(self.groups))
            if index is None:
                return None
            target = GroupTarget(self.groups[index])
        else:
            group = self.group(view.group_key)
            if group is None:
                return None
            if bulk:
                target = GroupTarget(group)
            else:
                item = self.selected_item(view)
                if item is None:
                    return None
                target = MessageTarget(item.key)

        try:
            scope = compute_scope(
                action,
                target,
                view,
                self.thread_index,
                mode=self.mode,
                reviewed_threads=self.reviewed_threads,
                protect_threads=self.settings.protect_threads,
            )
        except InvariantViolation as e:
            logger.error(f"Ignoring illegal action {action.value} on {target!r}: {e}")
            return None

        if scope.is_blocked:
            count = len(scope.unreviewed_threads)
            return Notice(
                f"Thread protection: review {count} thread(s) in thread view first (Enter)",
                "warning",
            )

        if scope.requires_confirmation:
            self.state = PendingConfirmation(scope, view)
            return None

        return self._start_operation(
            OperationKind.for_action(action), scope.target_message_ids, scope, view
        )

    def _handle_confirmation(self, key: Key, state: PendingConfirmation) -> Effect | None:
        if key in (Key.CONFIRM, Key.SELECT):
            scope = state.scope
            return self._start_operation(
                OperationKind.for_action(scope.action),
                scope.target_message_ids,
                scope,
                state.return_state,
            )
        if key in (Key.DENY, Key.CANCEL, Key.BACK):
            self.state = state.return_state
        return None

    # =========================================================================
    # Operation lifecycle
    # =========================================================================

    def _start_operation(
        self,
        kind: OperationKind,
        ids: frozenset[str],
        scope: ActionScope | None,
        return_state: BaseView,
    ) -> Effect:
        if self._in_flight is not None:
            overlap = ids & self._in_flight.message_ids
            logger.warning(
                f"Rejecting {kind.value} while op {self._in_flight.op_id} is in flight "
                f"({len(overlap)} overlapping ids)"
            )
            return Notice("Another operation is still running", "warning")

        operation = Operation(self._next_op_id, kind, frozenset(ids), scope)
        self._next_op_id += 1
        self._in_flight = operation
        self.state = Busy(operation, return_state)
        logger.info(f"Starting op {operation.op_id}: {kind.value} {len(ids)} ids")
        return StartOperation(operation)

    def _handle_busy(self, key: Key) -> Effect | None:
        if key in (Key.CANCEL, Key.BACK):
            return self.cancel_operation()
        if key in ACTION_KEYS or key is Key.REFRESH:
            return Notice("Another operation is still running (Esc to cancel)", "warning")
        return None

    def _finish(self, op_id: int) -> tuple[Operation, BaseView] | None:
        """Clear the in-flight operation if `op_id` is it."""
        operation = self._in_flight
        if operation is None or operation.op_id != op_id:
            logger.warning(f"Dropping result for stale op {op_id}")
            return None
        self._in_flight = None
        state = self.state
        return_state = state.return_state if isinstance(state, Busy) else self.base_view
        return operation, return_state

    def complete_operation(self, op_id: int, outcome: OperationOutcome) -> Notice | None:
        """
        Fold an archive/delete result back into the store.

        Only ids that were part of the operation and that the server
        confirmed are removed. Failed ids stay visible with a failure marker
        when the failure was partial.
        """
        finished = self._finish(op_id)
        if finished is None:
            return None
        operation, return_state = finished

        succeeded = outcome.succeeded & operation.message_ids
        failed = outcome.failed & operation.message_ids
        removed = self.store.remove(succeeded)
        if outcome.partial:
            self.failed_ids |= failed
        self.failed_ids -= removed

        self._rebuild()
        self.state = self._reconcile(return_state)
        logger.info(
            f"Op {op_id} done: {len(removed)} removed, {len(failed)} failed"
            + (f" ({outcome.error})" if outcome.error else "")
        )

        verb = operation.kind.past_tense
        if outcome.ok:
            return self._success_notice(f"{verb} {len(removed)} email(s)")
        if outcome.partial:
            senders = sorted({self.store.get(mid).address for mid in failed if mid in self.store})
            return Notice(
                f"{verb} {len(removed)}, {len(failed)} failed: {', '.join(senders)}",
                "warning",
            )
        return Notice(f"{operation.kind.value.capitalize()} failed: {outcome.error}", "error")

    def complete_fetch(self, op_id: int, messages: Iterable[Message]) -> Notice | None:
        """Replace the store with freshly fetched messages."""
        finished = self._finish(op_id)
        if finished is None:
            return None
        _, return_state = finished

        self.store.load(messages)
        self.failed_ids.clear()
        self._rebuild()
        self.state = self._reconcile(return_state)
        return self._success_notice(f"Loaded {len(self.store)} email(s)")

    def fail_operation(self, op_id: int, error: str) -> Notice | None:
        """The operation failed before touching anything. The view is unchanged."""
        finished = self._finish(op_id)
        if finished is None:
            return None
        operation, return_state = finished
        self.state = return_state
        logger.error(f"Op {op_id} ({operation.kind.value}) failed: {error}")
        return Notice(f"{operation.kind.value.capitalize()} failed: {error}", "error")

    def cancel_operation(self) -> CancelOperation | None:
        """Abandon the in-flight operation and return to the view it came from."""
        state = self.state
        operation = self._in_flight
        if operation is None or not isinstance(state, Busy):
            return None
        self._in_flight = None
        self.state = state.return_state
        logger.info(f"Op {operation.op_id} cancelled by user")
        return CancelOperation(operation)

    def _success_notice(self, text: str) -> Notice:
        if len(self.store) == 0:
            return Notice(f"{text}. 🎉 Inbox zero!")
        return Notice(text)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def _reconcile(self, view: BaseView) -> BaseView:
        """
        Re-validate a view against freshly rebuilt groups and threads.

        Clamps the selection and pops views whose group/thread is gone.
        """
        if isinstance(view, GroupListView):
            return dataclasses.replace(
                view,
                mode=self.mode,
                selected_index=clamp_index(view.selected_index, len(self.groups)),
            )

        if isinstance(view, EmailListView):
            group = self.group(view.group_key)
            if group is None:
                return GroupListView(self.mode, clamp_index(view.group_index, len(self.groups)))
            return dataclasses.replace(
                view,
                selected_index=clamp_index(view.selected_index, group.count),
                group_index=self.groups.index(group),
            )

        if isinstance(view, ThreadView):
            thread = self.thread_index.get(view.thread_id)
            if thread is None:
                return self._reconcile(view.return_to or GroupListView(self.mode, 0))
            return dataclasses.replace(
                view,
                selected_index=clamp_index(view.selected_index, thread.size),
            )

        raise InvariantViolation(f"Unknown view {view!r}")
