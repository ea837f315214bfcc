# =============================================================================
# Item List Widget
# =============================================================================
# The one table zeroterm shows. Its columns depend on the view:
#
#   Group List:          ⚠ ✗ | Sender (or Domain) | Count
#   Email List / Thread: ● ⚠ ✗ | From | Subject | Date
#
# Markers:
#   ●  unread
#   ⚠  the message/group touches a thread with other participants
#   ✗  the last archive/delete failed for it
#
# The table never takes focus: every key goes to the screen, which feeds
# the navigator and then redraws the table from navigator state.
# =============================================================================

from datetime import datetime

from rich.markup import escape
from textual.widgets import DataTable

from zeroterm.core.navigation import ListItem


class ItemList(DataTable):
    """
    A table of groups or messages.

    Usage:
        >>> table = ItemList(id="items")
        >>> table.show_groups(items, selected_index=0, key_label="Sender")
    """

    can_focus = False

    GROUP_COLUMNS = [
        ("", 4),        # Warning / failure markers
        ("Sender", 0),  # Grouping key (flexible width)
        ("Count", 7),
    ]

    MESSAGE_COLUMNS = [
        ("", 5),        # Unread / warning / failure markers
        ("From", 25),
        ("Subject", 0), # Subject (flexible width)
        ("Date", 12),
    ]

    def __init__(self, date_format: str = "%b %d", time_format: str = "%H:%M", **kwargs) -> None:
        super().__init__(**kwargs)
        self.date_format = date_format
        self.time_format = time_format
        self.cursor_type = "row"
        self.zebra_stripes = True

    def _reset(self, columns: list[tuple[str, int]]) -> None:
        self.clear(columns=True)
        for label, width in columns:
            if width > 0:
                self.add_column(label, width=width)
            else:
                self.add_column(label)

    def show_groups(self, items: list[ListItem], selected_index: int | None, key_label: str) -> None:
        """Render sender groups."""
        columns = list(self.GROUP_COLUMNS)
        columns[1] = (key_label, 0)
        self._reset(columns)

        for item in items:
            self.add_row(self._markers(item), escape(item.key), str(item.count))
        self._select(selected_index)

    def show_messages(self, items: list[ListItem], selected_index: int | None) -> None:
        """Render messages (Email List or Thread View)."""
        self._reset(self.MESSAGE_COLUMNS)

        for item in items:
            message = item.message
            read_indicator = " " if message.is_read else "●"

            sender = message.display_sender
            if len(sender) > 25:
                sender = sender[:22] + "..."
            sender = escape(sender)
            subject = escape(message.subject or "(no subject)")

            if not message.is_read:
                sender = f"[bold]{sender}[/]"
                subject = f"[bold]{subject}[/]"

            self.add_row(
                read_indicator + self._markers(item),
                sender,
                subject,
                self._format_date(message.date),
            )
        self._select(selected_index)

    def _markers(self, item: ListItem) -> str:
        warning = "[yellow]⚠[/]" if item.warning else " "
        failed = "[red]✗[/]" if item.failed else " "
        return f"{warning}{failed}"

    def _select(self, selected_index: int | None) -> None:
        if selected_index is not None and self.row_count:
            self.move_cursor(row=selected_index)

    def _format_date(self, dt: datetime | None) -> str:
        """
        Format a date for display in local time.

        Shows the time for today's mail, the date otherwise.
        """
        if not dt:
            return ""

        # astimezone() with no arg converts to local timezone
        dt_local = dt.astimezone().replace(tzinfo=None) if dt.tzinfo is not None else dt

        if dt_local.date() == datetime.now().date():
            return dt_local.strftime(self.time_format)
        return dt_local.strftime(self.date_format)
