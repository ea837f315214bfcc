# =============================================================================
# Trash Recovery Tests
# =============================================================================
# The command runs against a stand-in mailbox; the IMAP side of listing and
# restoring is covered in test_imap.py.
# =============================================================================

from datetime import datetime

import pytest

from zeroterm.core import Account, Message
from zeroterm.mail.port import PartialFailure, TransportError
from zeroterm.recover import RecoverError, main, parse_args, recover, restore_ids, sender_counts


def trash_message(id: str, sender: str, subject: str = "") -> Message:
    return Message(
        id=id,
        sender=sender,
        subject=subject or f"Deleted {id}",
        date=datetime(2024, 11, 15, 9, 0),
    )


# Newest first, the way IMAPMailbox.trash_messages returns them
TRASH = [
    trash_message("9", "notifications@github.com", "[rust-lang/rust] Fix ICE"),
    trash_message("8", "Bob@Company.com", "Re: Q4 Planning"),
    trash_message("7", "notifications@github.com"),
]


class TrashMailbox:
    """Stands in for IMAPMailbox: a trash folder and a record of restores."""

    def __init__(self, messages=TRASH, refuse=(), broken=False):
        self.account = Account(name="test", email="test@example.com")
        self.trash = list(messages)
        self.refuse = set(refuse)
        self.broken = broken
        self.restored = []
        self.destination = None
        self.disconnected = False

    async def trash_messages(self, from_filter="", limit=2000):
        if self.broken:
            raise TransportError("Failed to connect to imap.gmail.com:993")
        wanted = from_filter.lower()
        return [m for m in self.trash if wanted in m.address][:limit]

    async def restore(self, ids, to_folder=None):
        self.destination = to_folder
        refused = set(ids) & self.refuse
        self.restored.extend(mid for mid in ids if mid not in refused)
        if refused:
            raise PartialFailure(set(ids) - refused, refused, "refused")

    async def disconnect(self):
        self.disconnected = True


def answer(text):
    return lambda prompt: text


class TestParseArgs:
    def test_a_command_is_required(self):
        with pytest.raises(SystemExit):
            parse_args([])

    def test_restore_options(self):
        args = parse_args(["--restore", "--from", "GitHub", "--to", "Recovered", "--count", "5"])
        assert args.restore and not args.check
        assert args.from_filter == "GitHub"
        assert args.to_folder == "Recovered"
        assert args.count == 5
        assert args.limit == 2000

    def test_count_must_be_positive(self):
        with pytest.raises(SystemExit):
            parse_args(["--restore", "--count", "0"])


class TestSelection:
    def test_sender_counts_most_first(self):
        assert sender_counts(TRASH) == [("notifications@github.com", 2), ("bob@company.com", 1)]

    def test_restore_without_filter_needs_count(self):
        with pytest.raises(RecoverError):
            restore_ids(TRASH, "", None)

    def test_count_keeps_most_recent(self):
        assert restore_ids(TRASH, "", 2) == ["9", "8"]

    def test_filter_alone_restores_all_matches(self):
        assert restore_ids(TRASH[::2], "github", None) == ["9", "7"]


class TestCheck:
    @pytest.mark.asyncio
    async def test_top_senders(self, capsys):
        mailbox = TrashMailbox()
        assert await recover(parse_args(["--check"]), mailbox) == 0
        out = capsys.readouterr().out
        assert "Top senders" in out
        assert "    2  notifications@github.com" in out
        assert mailbox.disconnected

    @pytest.mark.asyncio
    async def test_matching_emails(self, capsys):
        mailbox = TrashMailbox()
        assert await recover(parse_args(["--check", "--from", "GITHUB"]), mailbox) == 0
        out = capsys.readouterr().out
        assert "Found 2 deleted emails" in out
        assert "[2024-11-15 09:00] notifications@github.com - [rust-lang/rust] Fix ICE" in out
        assert "bob@company.com" not in out

    @pytest.mark.asyncio
    async def test_connection_error(self, capsys):
        mailbox = TrashMailbox(broken=True)
        assert await recover(parse_args(["--check"]), mailbox) == 1
        assert "Error: Failed to connect" in capsys.readouterr().err
        assert mailbox.disconnected


class TestRestore:
    @pytest.mark.asyncio
    async def test_confirmed_restore_goes_to_inbox(self, capsys):
        mailbox = TrashMailbox()
        args = parse_args(["--restore", "--from", "github"])
        assert await recover(args, mailbox, confirm=answer("y")) == 0
        assert mailbox.restored == ["9", "7"]
        assert mailbox.destination == "INBOX"
        assert "Restored 2 emails to INBOX" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_declined_restore_moves_nothing(self, capsys):
        mailbox = TrashMailbox()
        args = parse_args(["--restore", "--count", "3"])
        assert await recover(args, mailbox, confirm=answer("")) == 0
        assert mailbox.restored == []
        assert "Cancelled." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_unfiltered_restore_without_count_is_refused(self, capsys):
        mailbox = TrashMailbox()
        assert await recover(parse_args(["--restore"]), mailbox, confirm=answer("y")) == 1
        assert mailbox.restored == []
        assert "requires --count" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_to_folder(self):
        mailbox = TrashMailbox()
        args = parse_args(["--restore", "--count", "1", "--to", "Recovered"])
        assert await recover(args, mailbox, confirm=answer("Y")) == 0
        assert mailbox.restored == ["9"]
        assert mailbox.destination == "Recovered"

    @pytest.mark.asyncio
    async def test_nothing_matches(self, capsys):
        mailbox = TrashMailbox()
        args = parse_args(["--restore", "--from", "nobody@example.com"])
        assert await recover(args, mailbox, confirm=answer("y")) == 0
        assert "No deleted emails found" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_partial_restore(self, capsys):
        mailbox = TrashMailbox(refuse={"7"})
        args = parse_args(["--restore", "--from", "github"])
        assert await recover(args, mailbox, confirm=answer("y")) == 1
        assert mailbox.restored == ["9"]
        assert "1 of 2 failed" in capsys.readouterr().err


def test_list_accounts(tmp_path, capsys):
    path = tmp_path / "config.toml"
    path.write_text(
        '[accounts.work]\nemail = "me@company.com"\n\n'
        '[accounts.old]\nemail = "me@old.com"\nenabled = false\n'
    )
    assert main(["--list-accounts", "--config", str(path)]) == 0
    out = capsys.readouterr().out
    assert "  work (me@company.com)" in out
    assert "  old (me@old.com) [disabled]" in out
