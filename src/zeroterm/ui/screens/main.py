# =============================================================================
# Inbox Screen
# =============================================================================
# The primary view of zeroterm:
#   - Title line: which view is shown (all senders / one sender / a thread)
#   - Item list: groups or messages
#   - Status line: busy indicator, search prompt
#   - Help line: the keys that do something in this view
#
# The screen holds no navigation state of its own. Every key press is
# translated to a Key, handed to the Navigator, and the screen is redrawn
# from the navigator's state. Mail operations run in a background worker
# and report back with a Textual message on the event loop.
# =============================================================================

import logging

import keyring
import keyring.errors
from rich.markup import escape
from textual import work
from textual.app import ComposeResult
from textual.events import Key as KeyEvent
from textual.message import Message as TextualMessage
from textual.screen import Screen
from textual.widgets import Header, Static

from zeroterm.config import UIConfig
from zeroterm.core.account import Account
from zeroterm.core.grouping import GroupMode
from zeroterm.core.keys import Key, KeyTranslator, TextInput
from zeroterm.core.message import Message
from zeroterm.core.navigation import (
    Busy,
    CancelOperation,
    Effect,
    ExitRequested,
    HelpOverlay,
    Navigator,
    Notice,
    PendingConfirmation,
    SearchMode,
    StartOperation,
)
from zeroterm.core.operations import Operation, OperationKind, OperationOutcome
from zeroterm.core.views import EmailListView, GroupListView, ThreadView
from zeroterm.mail.imap import IMAPMailbox
from zeroterm.mail.port import AuthenticationError, MailOperations, TransportError, run_operation
from zeroterm.ui.screens.confirm import ConfirmScreen
from zeroterm.ui.screens.help import HelpScreen
from zeroterm.ui.screens.password import LoginEntry, PasswordScreen
from zeroterm.ui.widgets.item_list import ItemList

logger = logging.getLogger(__name__)


# Key hints per view
HELP_LINES = {
    GroupListView: "Enter open  a/d archive/delete sender  / search  m mode  r refresh  ? help  q quit",
    EmailListView: "Enter thread  a/d one email  A/D whole sender  / search  q back  ? help",
    ThreadView: "A/D archive/delete whole thread  q back  ? help",
}


class InboxScreen(Screen):
    """
    The inbox triage screen.

    Attributes:
        navigator: The navigation state machine.
        mailbox: Mail provider, or None when no account is configured.
        account: The account behind `mailbox` (None in demo mode).
    """

    CSS = """
    #view-title {
        height: 1;
        background: $primary;
        color: $text;
        text-style: bold;
        padding: 0 1;
    }

    #items {
        height: 1fr;
    }

    #status-line {
        height: 1;
        background: $surface-darken-2;
        color: $text-muted;
        padding: 0 1;
    }

    #help-line {
        height: 1;
        background: $surface-darken-1;
        color: $text-muted;
        padding: 0 1;
    }
    """

    class FetchFinished(TextualMessage):
        """Posted by the worker when a fetch ends."""

        def __init__(
            self,
            op_id: int,
            messages: list[Message] | None = None,
            error: str = "",
            auth_failed: bool = False,
        ) -> None:
            super().__init__()
            self.op_id = op_id
            self.messages = messages
            self.error = error
            self.auth_failed = auth_failed

    class OperationFinished(TextualMessage):
        """Posted by the worker when an archive/delete ends."""

        def __init__(self, op_id: int, outcome: OperationOutcome) -> None:
            super().__init__()
            self.op_id = op_id
            self.outcome = outcome

    def __init__(
        self,
        navigator: Navigator,
        mailbox: MailOperations | None,
        account: Account | None = None,
        ui_config: UIConfig | None = None,
    ) -> None:
        super().__init__()
        self.navigator = navigator
        self.mailbox = mailbox
        self.account = account
        self.ui_config = ui_config or UIConfig()
        self._translator = KeyTranslator()
        self._modal_open = False

    def compose(self) -> ComposeResult:
        yield Header()
        yield Static("", id="view-title")
        yield ItemList(
            date_format=self.ui_config.date_format,
            time_format=self.ui_config.time_format,
            id="items",
        )
        yield Static("", id="status-line")
        yield Static("", id="help-line")

    def on_mount(self) -> None:
        if self.mailbox is None:
            self.refresh_view()
            self.update_status("No account configured. Try `zeroterm --demo` or `zeroterm --init-config`.")
            return
        self.dispatch(Key.REFRESH)

    async def on_unmount(self) -> None:
        self.workers.cancel_group(self, "mail")
        if isinstance(self.mailbox, IMAPMailbox):
            await self.mailbox.disconnect()

    def on_resize(self) -> None:
        self.navigator.page_size = max(2, self.query_one("#items", ItemList).size.height - 1)

    def update_status(self, text: str) -> None:
        self.query_one("#status-line", Static).update(escape(text))

    # =========================================================================
    # Input
    # =========================================================================

    def on_key(self, event: KeyEvent) -> None:
        """Translate a key press and hand it to the navigator."""
        if self._modal_open:
            return

        text_entry = isinstance(self.navigator.state, SearchMode)
        result = self._translator.translate(event.key, event.character, text_entry=text_entry)
        if result is None:
            return

        event.stop()
        event.prevent_default()

        if isinstance(result, TextInput):
            self.navigator.type_text(result.text)
            self.refresh_view()
        else:
            self.dispatch(result)

    def dispatch(self, key: Key) -> None:
        """Run one input through the navigator, carry out its effect, redraw."""
        effect = self.navigator.handle(key)
        self.apply(effect)
        self.refresh_view()

    def apply(self, effect: Effect | None) -> None:
        if effect is None:
            return
        if isinstance(effect, StartOperation):
            self.run_mail_operation(effect.operation)
        elif isinstance(effect, CancelOperation):
            self.workers.cancel_group(self, "mail")
            self.notify(f"Cancelled: {effect.operation.description}", severity="warning")
        elif isinstance(effect, Notice):
            self.notify(effect.text, severity=effect.severity)
        elif isinstance(effect, ExitRequested):
            self.app.exit()

    # =========================================================================
    # Rendering
    # =========================================================================

    def refresh_view(self) -> None:
        """Redraw everything from navigator state."""
        navigator = self.navigator
        view = navigator.base_view
        table = self.query_one("#items", ItemList)
        items = navigator.items(view)

        if isinstance(view, GroupListView):
            total = len(navigator.store)
            title = f"Inbox · {navigator.mode.label} · {len(items)} senders · {total} emails"
            key_label = "Domain" if view.mode is GroupMode.BY_DOMAIN else "Sender"
            table.show_groups(items, view.selected_index, key_label)
        elif isinstance(view, EmailListView):
            title = f"{view.group_key} · {len(items)} emails"
            table.show_messages(items, view.selected_index)
        else:
            thread = navigator.thread_index.get(view.thread_id)
            subject = items[0].message.subject if items else ""
            participants = len(thread.senders) if thread else 0
            title = f"Thread: {subject} · {len(items)} emails · {participants} participants"
            table.show_messages(items, view.selected_index)

        self.query_one("#view-title", Static).update(escape(title))
        self.query_one("#help-line", Static).update(HELP_LINES[type(view)])
        self.update_status(self._status_text())
        self._show_modal()

    def _status_text(self) -> str:
        state = self.navigator.state
        if isinstance(state, Busy):
            return f"⏳ {state.operation.description}  (Esc to cancel)"
        if isinstance(state, SearchMode):
            return f"/{state.query}"
        view = self.navigator.base_view
        if isinstance(view, (GroupListView, EmailListView)) and view.search:
            return f"Search: {view.search}"
        return ""

    def _show_modal(self) -> None:
        """Push the modal that matches an overlay, once."""
        state = self.navigator.state
        if self._modal_open:
            return

        if isinstance(state, PendingConfirmation):
            messages = [
                self.navigator.store.get(mid)
                for mid in self._ordered_ids(state.scope.target_message_ids)
            ]
            self._modal_open = True
            self.app.push_screen(ConfirmScreen(state.scope, messages), self._on_confirm_closed)
        elif isinstance(state, HelpOverlay):
            self._modal_open = True
            self.app.push_screen(HelpScreen(), self._on_help_closed)

    def _ordered_ids(self, ids: frozenset[str]) -> list[str]:
        """`ids` in store order."""
        return [m.id for m in self.navigator.store if m.id in ids]

    def _on_confirm_closed(self, confirmed: bool | None) -> None:
        self._modal_open = False
        self.dispatch(Key.CONFIRM if confirmed else Key.DENY)

    def _on_help_closed(self, _: None) -> None:
        self._modal_open = False
        self.dispatch(Key.HELP)

    # =========================================================================
    # Mail operations
    # =========================================================================

    @work(exclusive=True, group="mail")
    async def run_mail_operation(self, operation: Operation) -> None:
        """Run one operation against the mailbox and post the result."""
        if self.mailbox is None:
            self.post_message(self.FetchFinished(operation.op_id, error="No account configured"))
            return

        if operation.kind is OperationKind.FETCH:
            try:
                messages = await self.mailbox.fetch()
            except AuthenticationError as e:
                self.post_message(self.FetchFinished(operation.op_id, error=str(e), auth_failed=True))
            except TransportError as e:
                self.post_message(self.FetchFinished(operation.op_id, error=str(e)))
            except Exception as e:
                logger.exception(f"Op {operation.op_id}: fetch crashed")
                self.post_message(self.FetchFinished(operation.op_id, error=f"Unexpected error: {e}"))
            else:
                self.post_message(self.FetchFinished(operation.op_id, messages=messages))
            return

        try:
            outcome = await run_operation(self.mailbox, operation)
        except Exception as e:
            logger.exception(f"Op {operation.op_id}: {operation.kind.value} crashed")
            outcome = OperationOutcome.transport_failure(operation.message_ids, f"Unexpected error: {e}")
        self.post_message(self.OperationFinished(operation.op_id, outcome))

    def on_inbox_screen_fetch_finished(self, message: FetchFinished) -> None:
        if message.messages is None:
            notice = self.navigator.fail_operation(message.op_id, message.error)
            if notice is not None and message.auth_failed:
                self._prompt_for_password(message.error)
                notice = None
        else:
            notice = self.navigator.complete_fetch(message.op_id, message.messages)
        self.apply(notice)
        self.refresh_view()

    def on_inbox_screen_operation_finished(self, message: OperationFinished) -> None:
        self.apply(self.navigator.complete_operation(message.op_id, message.outcome))
        self.refresh_view()

    def _prompt_for_password(self, error: str) -> None:
        """Ask for the password, optionally store it in the keyring, fetch again."""
        account = self.account
        if account is None:
            self.notify(error, severity="error")
            return

        def on_login(entry: LoginEntry | None) -> None:
            self._modal_open = False
            if entry is None:
                self.update_status("Not logged in. Press r to retry.")
                return
            if entry.remember:
                try:
                    keyring.set_password(account.keyring_service, account.email, entry.password)
                    self.notify("Password saved to keyring")
                except keyring.errors.KeyringError as e:
                    logger.warning(f"Could not store password: {e}")
                    self.notify(f"Keyring unavailable ({e}), password kept for this session", severity="warning")
            if isinstance(self.mailbox, IMAPMailbox):
                self.mailbox.password = entry.password
            self.dispatch(Key.REFRESH)

        self._modal_open = True
        self.app.push_screen(PasswordScreen(account, reason=error), on_login)
