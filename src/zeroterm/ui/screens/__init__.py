# =============================================================================
# UI Screens
# =============================================================================
#   - InboxScreen: Group List / Email List / Thread View
#   - ConfirmScreen: y/n prompt showing the exact scope of an action
#   - HelpScreen: key reference
#   - PasswordScreen: password prompt when the keyring has none
# =============================================================================

from zeroterm.ui.screens.confirm import ConfirmScreen
from zeroterm.ui.screens.help import HelpScreen
from zeroterm.ui.screens.main import InboxScreen
from zeroterm.ui.screens.password import PasswordScreen

__all__ = ["ConfirmScreen", "HelpScreen", "InboxScreen", "PasswordScreen"]
