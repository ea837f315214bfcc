# =============================================================================
# zeroterm Main Application
# =============================================================================
# The Textual application and the command-line entry point.
#
# The app manages:
#   - Configuration loading (and reporting config errors in the UI)
#   - Choosing the mailbox: the configured IMAP account, or the demo inbox
#   - Building the Navigator and pushing the inbox screen
#
# Logging goes to a file in the XDG state directory; the terminal belongs
# to the TUI.
# =============================================================================

import argparse
import logging
import sys
from pathlib import Path

from textual.app import App
from textual.binding import Binding

from zeroterm import __app_name__, __version__
from zeroterm.config import Config, ConfigError, print_paths
from zeroterm.core.account import Account
from zeroterm.core.navigation import Navigator
from zeroterm.core.store import MessageStore
from zeroterm.mail.demo import DemoMailbox
from zeroterm.mail.imap import IMAPMailbox
from zeroterm.mail.port import MailOperations
from zeroterm.ui.screens.main import InboxScreen

logger = logging.getLogger(__name__)


class ZeroTermApp(App):
    """
    The main zeroterm application.

    Attributes:
        config: The loaded application configuration.
        demo: Use the built-in demo inbox instead of a real account.
        account_name: Account requested on the command line.
    """

    # Application metadata
    TITLE = "zeroterm"
    SUB_TITLE = "Inbox zero"

    # Ctrl+c always quits, even in the middle of an operation
    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit", priority=True, show=False),
    ]

    def __init__(
        self,
        config: Config | None = None,
        *,
        demo: bool = False,
        account_name: str | None = None,
    ) -> None:
        """
        Initialize the zeroterm application.

        Args:
            config: Optional pre-loaded configuration. If not provided,
                    configuration will be loaded from the default location.
            demo: Run against the demo inbox.
            account_name: Account to open (default: config's default_account).
        """
        super().__init__()

        # Initialize config error tracking
        self._config_error: str | None = None

        # Load configuration if not provided
        if config is None:
            try:
                self.config = Config.load()
            except ConfigError as e:
                self.config = Config()
                self._config_error = str(e)
        else:
            self.config = config

        self.demo = demo
        self.account_name = account_name

    def on_mount(self) -> None:
        """Called when the application is mounted and ready."""
        if self._config_error:
            self.notify(
                f"Config error: {self._config_error}\nTry `zeroterm --demo`.",
                severity="error",
                timeout=10,
            )

        mailbox, account = self._open_mailbox()

        try:
            settings = self.config.navigator_settings()
        except ValueError as e:
            self.notify(f"Config error: {e}", severity="error", timeout=10)
            settings = None

        navigator = Navigator(MessageStore(), settings)
        self.push_screen(InboxScreen(navigator, mailbox, account, self.config.ui))

    def _open_mailbox(self) -> tuple[MailOperations | None, Account | None]:
        """Pick the mail provider for this session."""
        if self.demo:
            self.sub_title = "Demo inbox"
            logger.info("Starting in demo mode")
            return DemoMailbox(latency=0.3), None

        try:
            account = self.config.active_account(self.account_name)
        except ConfigError as e:
            self.notify(str(e), severity="error", timeout=10)
            return None, None

        self.sub_title = str(account)
        logger.info(f"Using account {account.name}")
        return IMAPMailbox(account), account


# =============================================================================
# CLI Entry Point
# =============================================================================

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog=__app_name__,
        description="zeroterm: archive and delete your inbox by sender",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--paths",
        action="store_true",
        help="Print configuration paths and exit",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (default: XDG config location)",
    )

    parser.add_argument(
        "--account",
        help="Account to open (default: general.default_account)",
    )

    parser.add_argument(
        "--demo",
        action="store_true",
        help="Run against a built-in demo inbox (no server, nothing is changed)",
    )

    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a starter config file and exit",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (verbose logging to the log file)",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool) -> Path:
    """
    Send log records to the log file.

    Returns:
        The log file path.
    """
    log_path = Config.log_file_path()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=log_path,
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    return log_path


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for zeroterm.

    This function:
        1. Parses command-line arguments
        2. Handles special commands (--paths, --init-config)
        3. Loads configuration
        4. Starts the Textual application

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = parse_args(argv)

    # Handle --paths flag
    if args.paths:
        print_paths()
        return 0

    if args.init_config:
        target = args.config or Config.config_file_path()
        if target.exists():
            print(f"Config file already exists: {target}", file=sys.stderr)
            return 1
        path = Config.starter().save(target)
        print(f"Wrote starter config to {path}")
        print("Store your password with: keyring set zeroterm:personal you@gmail.com")
        return 0

    log_path = setup_logging(args.debug)
    logger.info(f"zeroterm {__version__} starting, logging to {log_path}")

    # Load configuration
    config = None
    if args.config:
        try:
            config = Config.load(args.config)
        except ConfigError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    # Create and run the application
    app = ZeroTermApp(config=config, demo=args.demo, account_name=args.account)
    app.run()

    return 0


if __name__ == "__main__":
    sys.exit(main())
