# =============================================================================
# Confirmation Screen
# =============================================================================
# Shows the exact scope of a pending archive/delete and asks y/n.
#
# The list in the dialog is built from ActionScope.target_message_ids and
# nothing else, so every message shown is one that will be changed and
# every message that will be changed is shown.
# =============================================================================

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Static

from zeroterm.core.message import Message
from zeroterm.core.scope import ActionKind, ActionScope


class ConfirmScreen(ModalScreen[bool]):
    """
    Modal y/n prompt for one ActionScope.

    Returns:
        True to run the action, False to cancel it.
    """

    BINDINGS = [
        Binding("y", "confirm", "Yes"),
        Binding("Y", "confirm", "Yes", show=False),
        Binding("enter", "confirm", "Yes", show=False),
        Binding("n", "cancel", "No"),
        Binding("N", "cancel", "No", show=False),
        Binding("escape", "cancel", "No", show=False),
        Binding("q", "cancel", "No", show=False),
    ]

    CSS = """
    ConfirmScreen {
        align: center middle;
    }

    #confirm-dialog {
        width: 80%;
        max-width: 100;
        height: auto;
        max-height: 80%;
        padding: 1 2;
        background: $surface;
        border: thick $warning;
    }

    #confirm-dialog.delete {
        border: thick $error;
    }

    #confirm-title {
        text-style: bold;
        margin-bottom: 1;
    }

    #confirm-warning {
        color: $warning;
        margin-bottom: 1;
        height: auto;
    }

    #confirm-members {
        height: auto;
        max-height: 20;
        margin-bottom: 1;
    }

    #confirm-hint {
        color: $text-muted;
        text-align: center;
    }
    """

    def __init__(self, scope: ActionScope, messages: list[Message]) -> None:
        """
        Args:
            scope: The computed scope awaiting confirmation.
            messages: The messages behind scope.target_message_ids.
        """
        super().__init__()
        self.scope = scope
        self.messages = messages

    def compose(self) -> ComposeResult:
        classes = "delete" if self.scope.action is ActionKind.DELETE else ""
        with Vertical(id="confirm-dialog", classes=classes):
            yield Static(self.scope.describe(), id="confirm-title", markup=False)
            warning = self.scope.warning()
            if warning:
                yield Static(warning, id="confirm-warning", markup=False)
            with VerticalScroll(id="confirm-members"):
                for message in self.messages:
                    yield Static(
                        f"  {message.display_sender}: {message.subject or '(no subject)'}",
                        markup=False,
                    )
            yield Static("[b]y[/b] / Enter confirm    [b]n[/b] / Esc cancel", id="confirm-hint")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)
