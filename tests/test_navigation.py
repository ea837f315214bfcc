# =============================================================================
# Navigator Tests
# =============================================================================
# Drives the state machine with abstract keys, the same way the inbox
# screen does, and checks state, effects and the store.
# =============================================================================

import pytest

from zeroterm.core.grouping import GroupMode
from zeroterm.core.keys import Key
from zeroterm.core.message import Message
from zeroterm.core.navigation import (
    Busy,
    CancelOperation,
    ExitRequested,
    HelpOverlay,
    Navigator,
    NavigatorSettings,
    Notice,
    PendingConfirmation,
    SearchMode,
    StartOperation,
    clamp_index,
)
from zeroterm.core.operations import OperationKind, OperationOutcome
from zeroterm.core.store import MessageStore
from zeroterm.core.views import EmailListView, GroupListView, ThreadView


def senders_inbox(*senders: str) -> Navigator:
    """A navigator with one message per sender, each in its own thread."""
    messages = [Message(id=f"m{i}", sender=s, thread_id=f"T{i}") for i, s in enumerate(senders)]
    return Navigator(MessageStore(messages))


def press(navigator: Navigator, *keys: Key):
    effect = None
    for key in keys:
        effect = navigator.handle(key)
    return effect


def test_clamp_index():
    assert clamp_index(5, 3) == 2
    assert clamp_index(-1, 3) == 0
    assert clamp_index(None, 3) == 0
    assert clamp_index(0, 0) is None


class TestMovement:
    @pytest.fixture
    def nav(self):
        return senders_inbox("a@x.com", "b@x.com", "c@x.com", "d@x.com", "e@x.com")

    def test_down_and_up_clamp(self, nav):
        press(nav, Key.UP)
        assert nav.state.selected_index == 0
        press(nav, *[Key.DOWN] * 10)
        assert nav.state.selected_index == 4

    def test_top_and_bottom(self, nav):
        press(nav, Key.BOTTOM)
        assert nav.state.selected_index == 4
        press(nav, Key.TOP)
        assert nav.state.selected_index == 0

    def test_half_page(self, nav):
        nav.page_size = 4
        press(nav, Key.HALF_PAGE_DOWN)
        assert nav.state.selected_index == 2
        press(nav, Key.HALF_PAGE_DOWN)
        assert nav.state.selected_index == 4
        press(nav, Key.HALF_PAGE_UP)
        assert nav.state.selected_index == 2

    def test_empty_inbox(self):
        nav = Navigator()
        assert nav.state == GroupListView(GroupMode.BY_ADDRESS, None)
        press(nav, Key.DOWN, Key.SELECT)
        assert nav.state.selected_index is None
        assert press(nav, Key.ARCHIVE) is None
        assert nav.selected_item() is None


class TestDrillDown:
    def test_enter_opens_email_list_then_thread(self, navigator):
        press(navigator, Key.SELECT)
        assert navigator.state == EmailListView("a@x.com", 0, group_index=0)
        assert [item.key for item in navigator.items()] == ["msg1", "msg3"]

        press(navigator, Key.SELECT)
        state = navigator.state
        assert isinstance(state, ThreadView)
        assert state.thread_id == "T1"
        assert [item.key for item in navigator.items()] == ["msg1", "msg2"]
        assert "T1" in navigator.reviewed_threads

    def test_back_restores_group_selection(self, navigator):
        press(navigator, Key.DOWN, Key.SELECT)
        assert navigator.state.group_key == "b@x.com"
        press(navigator, Key.BACK)
        assert navigator.state == GroupListView(GroupMode.BY_ADDRESS, 1)

    def test_escape_from_thread_returns_to_email_list(self, navigator):
        press(navigator, Key.SELECT, Key.DOWN, Key.SELECT)
        assert navigator.state.thread_id == "T2"
        press(navigator, Key.CANCEL)
        assert navigator.state == EmailListView("a@x.com", 1, group_index=0)

    def test_q_in_group_list_exits(self, navigator):
        assert isinstance(press(navigator, Key.BACK), ExitRequested)

    def test_quit_is_accepted_everywhere(self, navigator):
        press(navigator, Key.SELECT, Key.SELECT)
        assert isinstance(press(navigator, Key.QUIT), ExitRequested)

    def test_help_overlay(self, navigator):
        press(navigator, Key.HELP)
        assert isinstance(navigator.state, HelpOverlay)
        press(navigator, Key.DOWN)
        assert isinstance(navigator.state, HelpOverlay)
        press(navigator, Key.HELP)
        assert navigator.state == GroupListView(GroupMode.BY_ADDRESS, 0)

    def test_rows_flag_other_participants(self, navigator):
        rows = {item.key: item for item in navigator.items()}
        assert rows["a@x.com"].warning
        assert rows["a@x.com"].count == 2
        press(navigator, Key.SELECT)
        rows = {item.key: item for item in navigator.items()}
        assert rows["msg1"].warning
        assert not rows["msg3"].warning


class TestSearch:
    @pytest.fixture
    def nav(self):
        return senders_inbox("alpha@x.com", "beta@x.com", "gamma@x.com", "delta@x.com")

    def test_jumps_to_first_match(self, nav):
        press(nav, Key.SEARCH)
        nav.type_text("ta")
        assert isinstance(nav.state, SearchMode)
        assert nav.base_view.selected_index == 1

    def test_cancel_restores_exact_selection(self, nav):
        press(nav, Key.BOTTOM, Key.SEARCH)
        nav.type_text("a")
        nav.type_text("l")
        assert nav.base_view.selected_index == 0
        press(nav, Key.CANCEL)
        assert nav.state == GroupListView(GroupMode.BY_ADDRESS, 3)

    def test_no_match_keeps_original_selection(self, nav):
        press(nav, Key.DOWN, Key.DOWN, Key.SEARCH)
        nav.type_text("zzz")
        assert nav.base_view.selected_index == 2

    def test_backspace_reevaluates(self, nav):
        press(nav, Key.SEARCH)
        nav.type_text("del")
        assert nav.base_view.selected_index == 3
        press(nav, Key.BACKSPACE, Key.BACKSPACE)
        assert nav.state.query == "d"
        assert nav.base_view.selected_index == 3

    def test_enter_keeps_match_and_query(self, nav):
        press(nav, Key.SEARCH)
        nav.type_text("gam")
        press(nav, Key.SELECT)
        assert nav.state == GroupListView(GroupMode.BY_ADDRESS, 2, search="gam")
        press(nav, Key.CANCEL)
        assert nav.state == GroupListView(GroupMode.BY_ADDRESS, 2)

    def test_not_available_in_thread_view(self, navigator):
        press(navigator, Key.SELECT, Key.SELECT)
        effect = press(navigator, Key.SEARCH)
        assert isinstance(effect, Notice)
        assert isinstance(navigator.state, ThreadView)


class TestThreadProtection:
    def test_review_then_act(self, navigator):
        # Bulk archive of a@x.com is blocked: T1 has not been reviewed
        effect = press(navigator, Key.ARCHIVE_ALL)
        assert isinstance(effect, Notice)
        assert effect.severity == "warning"
        assert navigator.state == GroupListView(GroupMode.BY_ADDRESS, 0)

        # Opening msg1's thread reviews T1
        press(navigator, Key.SELECT, Key.SELECT, Key.BACK)
        assert isinstance(navigator.state, EmailListView)

        effect = press(navigator, Key.ARCHIVE_ALL)
        assert effect is None
        state = navigator.state
        assert isinstance(state, PendingConfirmation)
        assert state.scope.target_message_ids == {"msg1", "msg3"}
        assert state.scope.excluded_other_sender_count == 1

    def test_single_message_in_reviewed_thread_runs_at_once(self, navigator):
        press(navigator, Key.SELECT)
        assert isinstance(press(navigator, Key.ARCHIVE), Notice)
        press(navigator, Key.SELECT, Key.BACK)
        effect = press(navigator, Key.ARCHIVE)
        assert isinstance(effect, StartOperation)
        assert effect.operation.message_ids == {"msg1"}

    def test_disabled_protection(self, unprotected_navigator):
        press(unprotected_navigator, Key.ARCHIVE_ALL)
        assert isinstance(unprotected_navigator.state, PendingConfirmation)


class TestActions:
    def test_confirm_archive_removes_group(self, unprotected_navigator):
        nav = unprotected_navigator
        press(nav, Key.SELECT, Key.ARCHIVE_ALL)
        effect = press(nav, Key.CONFIRM)
        assert isinstance(effect, StartOperation)
        operation = effect.operation
        assert operation.kind is OperationKind.ARCHIVE
        assert operation.message_ids == {"msg1", "msg3"}
        assert isinstance(nav.state, Busy)

        notice = nav.complete_operation(operation.op_id, OperationOutcome.success(operation.message_ids))
        assert notice.text == "Archived 2 email(s)"
        assert [m.id for m in nav.store] == ["msg2"]
        # The group is gone, so the Email List popped back to the Group List
        assert nav.state == GroupListView(GroupMode.BY_ADDRESS, 0)
        assert [g.key for g in nav.groups] == ["b@x.com"]

    def test_deny_changes_nothing(self, unprotected_navigator):
        nav = unprotected_navigator
        press(nav, Key.DELETE)
        assert isinstance(nav.state, PendingConfirmation)
        assert press(nav, Key.DENY) is None
        assert nav.state == GroupListView(GroupMode.BY_ADDRESS, 0)
        assert len(nav.store) == 3

    def test_single_message_needs_no_confirmation(self, unprotected_navigator):
        nav = unprotected_navigator
        press(nav, Key.SELECT, Key.DOWN)
        effect = press(nav, Key.DELETE)
        assert isinstance(effect, StartOperation)
        assert effect.operation.kind is OperationKind.DELETE
        assert effect.operation.message_ids == {"msg3"}

        nav.complete_operation(effect.operation.op_id, OperationOutcome.success({"msg3"}))
        # Selection clamps to the remaining message
        assert nav.state == EmailListView("a@x.com", 0, group_index=0)

    def test_whole_thread_delete(self, navigator):
        press(navigator, Key.SELECT, Key.SELECT)
        press(navigator, Key.DELETE_ALL)
        state = navigator.state
        assert isinstance(state, PendingConfirmation)
        assert state.scope.target_message_ids == {"msg1", "msg2"}
        assert state.scope.excluded_other_sender_count == 0

        effect = press(navigator, Key.CONFIRM)
        navigator.complete_operation(effect.operation.op_id, OperationOutcome.success({"msg1", "msg2"}))
        assert [m.id for m in navigator.store] == ["msg3"]
        # Thread gone: back to the Email List it was opened from
        assert navigator.state == EmailListView("a@x.com", 0, group_index=0)

    def test_single_actions_in_thread_view_are_refused(self, navigator):
        press(navigator, Key.SELECT, Key.SELECT)
        effect = press(navigator, Key.ARCHIVE)
        assert isinstance(effect, Notice)
        assert isinstance(navigator.state, ThreadView)

    def test_partial_failure_keeps_failed_ids(self, unprotected_navigator):
        nav = unprotected_navigator
        press(nav, Key.SELECT, Key.ARCHIVE_ALL)
        operation = press(nav, Key.CONFIRM).operation

        outcome = OperationOutcome.partial_failure(frozenset({"msg1"}), frozenset({"msg3"}))
        notice = nav.complete_operation(operation.op_id, outcome)

        assert notice.severity == "warning"
        assert "a@x.com" in notice.text
        assert [m.id for m in nav.store] == ["msg2", "msg3"]
        assert nav.state == EmailListView("a@x.com", 0, group_index=1)
        rows = nav.items()
        assert [row.key for row in rows] == ["msg3"]
        assert rows[0].failed

    def test_transport_failure_removes_nothing(self, unprotected_navigator):
        nav = unprotected_navigator
        press(nav, Key.ARCHIVE_ALL)
        operation = press(nav, Key.CONFIRM).operation

        outcome = OperationOutcome.transport_failure(operation.message_ids, "connection reset")
        notice = nav.complete_operation(operation.op_id, outcome)
        assert notice.severity == "error"
        assert "connection reset" in notice.text
        assert len(nav.store) == 3
        assert not nav.failed_ids

    def test_inbox_zero(self):
        nav = Navigator(MessageStore([Message(id="1", sender="z@x.com", thread_id="T")]))
        press(nav, Key.ARCHIVE)
        operation = press(nav, Key.CONFIRM).operation
        notice = nav.complete_operation(operation.op_id, OperationOutcome.success({"1"}))
        assert notice.text.endswith("🎉 Inbox zero!")
        assert nav.state == GroupListView(GroupMode.BY_ADDRESS, None)


class TestBusy:
    @pytest.fixture
    def busy(self, unprotected_navigator):
        press(unprotected_navigator, Key.ARCHIVE_ALL)
        operation = press(unprotected_navigator, Key.CONFIRM).operation
        return unprotected_navigator, operation

    def test_rejects_other_actions(self, busy):
        nav, operation = busy
        assert isinstance(press(nav, Key.DELETE), Notice)
        assert isinstance(press(nav, Key.REFRESH), Notice)
        assert press(nav, Key.DOWN) is None
        assert nav.in_flight == operation
        assert isinstance(nav.state, Busy)

    def test_escape_cancels_and_late_result_is_dropped(self, busy):
        nav, operation = busy
        effect = press(nav, Key.CANCEL)
        assert effect == CancelOperation(operation)
        assert not nav.busy
        assert nav.state == GroupListView(GroupMode.BY_ADDRESS, 0)

        assert nav.complete_operation(operation.op_id, OperationOutcome.success(operation.message_ids)) is None
        assert len(nav.store) == 3

    def test_q_cancels_instead_of_exiting(self, busy):
        nav, _ = busy
        assert isinstance(press(nav, Key.BACK), CancelOperation)


class TestFetch:
    def test_refresh_loads_messages(self, scenario_messages):
        nav = Navigator()
        effect = press(nav, Key.REFRESH)
        assert isinstance(effect, StartOperation)
        assert effect.operation.kind is OperationKind.FETCH
        assert isinstance(nav.state, Busy)

        notice = nav.complete_fetch(effect.operation.op_id, scenario_messages)
        assert notice.text == "Loaded 3 email(s)"
        assert nav.state == GroupListView(GroupMode.BY_ADDRESS, 0)
        assert [g.key for g in nav.groups] == ["a@x.com", "b@x.com"]

    def test_failed_fetch_leaves_view_unchanged(self, navigator):
        press(navigator, Key.DOWN)
        operation = press(navigator, Key.REFRESH).operation
        notice = navigator.fail_operation(operation.op_id, "timed out")
        assert notice.severity == "error"
        assert navigator.state == GroupListView(GroupMode.BY_ADDRESS, 1)
        assert len(navigator.store) == 3


class TestGroupingMode:
    def test_toggle_regroups_and_returns_to_group_list(self, navigator):
        press(navigator, Key.SELECT)
        effect = press(navigator, Key.TOGGLE_MODE)
        assert isinstance(effect, Notice)
        assert navigator.state == GroupListView(GroupMode.BY_DOMAIN, 0)
        assert [(g.key, g.count) for g in navigator.groups] == [("x.com", 3)]

        press(navigator, Key.TOGGLE_MODE)
        assert navigator.mode is GroupMode.BY_ADDRESS
        assert [g.key for g in navigator.groups] == ["a@x.com", "b@x.com"]

    def test_domain_group_scope(self, unprotected_navigator):
        nav = unprotected_navigator
        press(nav, Key.TOGGLE_MODE, Key.ARCHIVE_ALL)
        scope = nav.state.scope
        assert scope.target_message_ids == {"msg1", "msg2", "msg3"}
        assert scope.excluded_other_sender_count == 0

    def test_initial_mode_from_settings(self, scenario_store):
        nav = Navigator(scenario_store, NavigatorSettings(grouping_mode=GroupMode.BY_DOMAIN))
        assert nav.state == GroupListView(GroupMode.BY_DOMAIN, 0)
