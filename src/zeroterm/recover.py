# =============================================================================
# Trash Recovery
# =============================================================================
# `zeroterm-recover` lists recently deleted mail and moves it back out of the
# account's trash folder. Deletes made in the inbox screen are undone here.
#
# Commands:
#   --check          Top senders in the trash, or the matching emails with --from
#   --restore        Move the matching emails back (to INBOX unless --to)
#   --list-accounts  Accounts in the config file
#
# A restore always asks before moving anything, and a restore without
# --from needs --count.
# =============================================================================

import argparse
import asyncio
import logging
import sys
from collections import Counter
from collections.abc import Callable, Iterable
from pathlib import Path

from zeroterm.app import setup_logging
from zeroterm.config import Config, ConfigError
from zeroterm.core.message import Message
from zeroterm.mail.imap import IMAPMailbox
from zeroterm.mail.port import PartialFailure, TransportError

logger = logging.getLogger(__name__)


# How much --check prints
MAX_LISTED_EMAILS = 50
MAX_LISTED_SENDERS = 30


class RecoverError(Exception):
    """Raised when a restore request is refused before touching the server."""
    pass


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments (exits with usage if no command is given)."""
    parser = argparse.ArgumentParser(
        prog="zeroterm-recover",
        description="Check and restore recently deleted emails from the trash folder",
    )

    parser.add_argument("--check", action="store_true",
                        help="List recent emails in the trash with sender counts")
    parser.add_argument("--restore", action="store_true",
                        help="Move matching emails back to the destination folder")
    parser.add_argument("--list-accounts", action="store_true",
                        help="List the accounts in the config file")

    parser.add_argument("--config", type=Path,
                        help="Path to config file (default: XDG config location)")
    parser.add_argument("--account",
                        help="Account to use (default: general.default_account)")
    parser.add_argument("--from", dest="from_filter", default="", metavar="SENDER",
                        help="Only senders containing SENDER (case-insensitive)")
    parser.add_argument("--to", dest="to_folder", metavar="FOLDER",
                        help="Destination folder for --restore (default: the inbox)")
    parser.add_argument("--limit", type=int, default=2000,
                        help="How many recent trash emails to look at (default: 2000)")
    parser.add_argument("--count", type=int,
                        help="Only restore this many emails, most recently deleted first")
    parser.add_argument("--debug", action="store_true",
                        help="Enable debug mode (verbose logging to the log file)")

    args = parser.parse_args(argv)
    if not (args.check or args.restore or args.list_accounts):
        parser.error("one of --check, --restore or --list-accounts is required")
    if args.limit < 1:
        parser.error("--limit must be at least 1")
    if args.count is not None and args.count < 1:
        parser.error("--count must be at least 1")
    return args


# =============================================================================
# Selection
# =============================================================================

def sender_counts(messages: Iterable[Message]) -> list[tuple[str, int]]:
    """Senders by number of emails, most first (ties alphabetical)."""
    counts = Counter(m.address for m in messages)
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


def restore_ids(messages: list[Message], from_filter: str, count: int | None) -> list[str]:
    """
    Ids to restore, most recently deleted first.

    `messages` is already narrowed to `from_filter`. Without a filter the
    whole trash would match, so a count is required.

    Raises:
        RecoverError: If there is neither a filter nor a count.
    """
    if not from_filter and count is None:
        raise RecoverError("--restore without --from requires --count to prevent accidents")
    ids = [m.id for m in messages]
    if count is not None:
        ids = ids[:count]
    return ids


# =============================================================================
# Output
# =============================================================================

def print_check(messages: list[Message], from_filter: str) -> None:
    if from_filter:
        print(f"Found {len(messages)} deleted emails from senders matching {from_filter!r}:")
        print()
        for message in messages[:MAX_LISTED_EMAILS]:
            date = message.date.strftime("%Y-%m-%d %H:%M") if message.date else "unknown date"
            print(f"  [{date}] {message.address} - {message.subject[:60]}")
        if len(messages) > MAX_LISTED_EMAILS:
            print(f"  ... and {len(messages) - MAX_LISTED_EMAILS} more")
        return

    counts = sender_counts(messages)
    print(f"Top senders in the trash (most recent {len(messages)} emails):")
    print()
    for sender, count in counts[:MAX_LISTED_SENDERS]:
        print(f"  {count:>5}  {sender}")
    if len(counts) > MAX_LISTED_SENDERS:
        print(f"  ... and {len(counts) - MAX_LISTED_SENDERS} more senders")


def print_accounts(config: Config) -> None:
    print("Available accounts:")
    for name in sorted(config.accounts):
        account = config.accounts[name]
        suffix = "" if account.enabled else " [disabled]"
        print(f"  {name} ({account.email}){suffix}")


# =============================================================================
# Running
# =============================================================================

async def recover(
    args: argparse.Namespace,
    mailbox: IMAPMailbox,
    confirm: Callable[[str], str] = input,
) -> int:
    """
    Run --check and/or --restore against `mailbox`, then log out.

    Returns:
        Exit code.
    """
    account = mailbox.account
    print(f"Connecting to {account}...")
    try:
        return await _recover(args, mailbox, confirm)
    except TransportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await mailbox.disconnect()


async def _recover(args: argparse.Namespace, mailbox: IMAPMailbox, confirm: Callable[[str], str]) -> int:
    account = mailbox.account
    messages = await mailbox.trash_messages(args.from_filter, args.limit)
    print(f"Read {len(messages)} matching emails from {account.trash_folder}")
    print()

    if args.check:
        print_check(messages, args.from_filter)

    if not args.restore:
        return 0

    try:
        ids = restore_ids(messages, args.from_filter, args.count)
    except RecoverError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not ids:
        print("No deleted emails found")
        return 0

    matched = f"from {args.from_filter!r}" if args.from_filter else "(all senders)"
    destination = args.to_folder or account.inbox_folder
    print(f"Found {len(ids)} deleted emails to restore {matched}")
    answer = confirm(f"Are you sure you want to move these to {destination}? [y/N] ")
    if answer.strip().lower() != "y":
        print("Cancelled.")
        return 0

    logger.info(f"Restoring {len(ids)} emails to {destination}")
    try:
        await mailbox.restore(ids, destination)
    except PartialFailure as e:
        print(f"Restored {len(e.succeeded)} emails to {destination}, {e}", file=sys.stderr)
        return 1

    print(f"Done! Restored {len(ids)} emails to {destination}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for `zeroterm-recover`."""
    args = parse_args(argv)

    try:
        config = Config.load(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.list_accounts:
        print_accounts(config)
        return 0

    try:
        account = config.active_account(args.account)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(args.debug)
    return asyncio.run(recover(args, IMAPMailbox(account)))


if __name__ == "__main__":
    sys.exit(main())
