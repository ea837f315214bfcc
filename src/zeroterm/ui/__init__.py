# =============================================================================
# UI Module
# =============================================================================
# Textual-based user interface for zeroterm.
#
# Structure:
#   - screens/: the inbox screen and its modal dialogs
#   - widgets/: the item list
#
# The UI renders Navigator state and runs mail operations in workers; it
# makes no navigation decisions of its own.
# =============================================================================

from zeroterm.ui.screens.main import InboxScreen
from zeroterm.ui.widgets.item_list import ItemList

__all__ = ["InboxScreen", "ItemList"]
