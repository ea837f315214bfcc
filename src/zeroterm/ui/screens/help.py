# =============================================================================
# Help Screen
# =============================================================================

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Static


HELP_TEXT = """\
[b]Navigation[/b]
  j / ↓        down                 g g / Home   top
  k / ↑        up                   G / End      bottom
  Ctrl+d       half page down       Ctrl+u       half page up
  Enter        open group / thread  q / Esc      back
  /            search               m            group by address/domain
  r            refresh              ?            this help

[b]Actions[/b]
  a / d        archive / delete the selected email
               (in the group list: the selected sender)
  A / D        archive / delete every email of the sender
               (in a thread: the whole thread, every participant)
  y / n        confirm / cancel

[b]Markers[/b]
  ●  unread    ⚠  thread with other participants    ✗  last action failed

Thread protection: conversations with several messages must be opened
(Enter) before they can be archived or deleted from a sender list.
"""


class HelpScreen(ModalScreen[None]):
    """Key reference. Any of ?, q, Esc or Enter closes it."""

    BINDINGS = [
        Binding("question_mark", "close", "Close"),
        Binding("escape", "close", "Close", show=False),
        Binding("q", "close", "Close", show=False),
        Binding("enter", "close", "Close", show=False),
    ]

    CSS = """
    HelpScreen {
        align: center middle;
    }

    #help-dialog {
        width: 76;
        height: auto;
        padding: 1 2;
        background: $surface;
        border: thick $primary;
    }
    """

    def compose(self) -> ComposeResult:
        with Vertical(id="help-dialog"):
            yield Static(HELP_TEXT)

    def action_close(self) -> None:
        self.dismiss(None)
