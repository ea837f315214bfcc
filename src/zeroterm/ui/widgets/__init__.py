# =============================================================================
# UI Widgets
# =============================================================================

from zeroterm.ui.widgets.item_list import ItemList

__all__ = ["ItemList"]
