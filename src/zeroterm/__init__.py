# =============================================================================
# zeroterm: Inbox Zero from the Terminal
# =============================================================================
#
# zeroterm groups your inbox by sender and lets you archive or delete whole
# senders at once, without ever touching a conversation you did not look at.
#
# Features:
#   - Group by sender address or by domain
#   - Group List -> Email List -> Thread View drill-down
#   - Exact "blast radius" confirmation before every bulk action
#   - Thread protection for conversations with other participants
#   - IMAP support (Gmail archive/trash folders by default)
#   - Demo mode with a built-in inbox
#   - XDG Base Directory compliant
#
# =============================================================================

__version__ = "0.1.0"
__app_name__ = "zeroterm"

# Main entry point - this is what gets called by the 'zeroterm' command
from zeroterm.app import main

__all__ = ["main", "__version__", "__app_name__"]
