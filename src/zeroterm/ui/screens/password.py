# =============================================================================
# Login Prompt
# =============================================================================
# Asks for the IMAP password when the keyring has none for the account, or
# when the server rejected the stored one.
#
# The prompt only collects input. The inbox screen decides what to do with
# it: keep it for this session, or also write it to the keyring.
# =============================================================================

from dataclasses import dataclass

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Checkbox, Input, Static

from zeroterm.core.account import Account


@dataclass(frozen=True)
class LoginEntry:
    """
    What the user typed.

    Attributes:
        password: The password (never empty).
        remember: Store it in the system keyring.
    """
    password: str
    remember: bool = True


class PasswordScreen(ModalScreen[LoginEntry | None]):
    """
    Login prompt for one account. Dismisses with None when cancelled.
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    CSS = """
    PasswordScreen {
        align: center middle;
    }

    #login-dialog {
        width: 64;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }

    #login-title {
        text-style: bold;
        margin-bottom: 1;
    }

    #login-reason {
        color: $error;
        height: auto;
        margin-bottom: 1;
    }

    #login-hint {
        color: $text-muted;
        margin-bottom: 1;
    }

    #login-buttons {
        align: right middle;
        height: auto;
        margin-top: 1;
    }

    #login-buttons Button {
        margin-left: 1;
    }
    """

    def __init__(self, account: Account, reason: str = "") -> None:
        super().__init__()
        self.account = account
        self.reason = reason

    def compose(self) -> ComposeResult:
        account = self.account
        with Vertical(id="login-dialog"):
            yield Static(f"Log in to {account.imap_host}", id="login-title", markup=False)
            if self.reason:
                yield Static(self.reason, id="login-reason", markup=False)
            yield Static(
                f"{account.email} ({account.name})\n"
                f"Gmail and Fastmail need an app password.\n"
                f"Stored under keyring service {account.keyring_service!r}.",
                id="login-hint",
                markup=False,
            )
            yield Input(placeholder="Password", password=True, id="login-password")
            yield Checkbox("Remember in system keyring", value=True, id="login-remember")
            with Horizontal(id="login-buttons"):
                yield Button("Cancel", id="login-cancel")
                yield Button("Log in", id="login-submit", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#login-password", Input).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "login-submit":
            self.action_submit()
        else:
            self.action_cancel()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.action_submit()

    def action_submit(self) -> None:
        # Passwords can legitimately contain spaces, so no strip()
        password = self.query_one("#login-password", Input).value
        if not password:
            self.notify("Password cannot be empty", severity="warning")
            return
        remember = self.query_one("#login-remember", Checkbox).value
        self.dismiss(LoginEntry(password, remember))

    def action_cancel(self) -> None:
        self.dismiss(None)
