# =============================================================================
# Demo Mailbox
# =============================================================================
# A built-in inbox for `zeroterm --demo`, screenshots and tests.
#
# The message set is fixed (dates are relative to a constant base time) and
# covers the interesting cases:
#   - senders with several messages (GitHub, Linear, Stripe)
#   - several senders on one domain (bob@ and charlie@company.com)
#   - a conversation with Alice and you (2 participants)
#   - a Q4 planning thread with Bob, Charlie and you (3 participants)
#
# DemoMailbox answers the port calls in memory. It can be told to fail
# specific ids to exercise partial failures.
# =============================================================================

import asyncio
import logging
from collections.abc import Collection, Iterable
from datetime import datetime, timedelta, timezone

from zeroterm.core.message import Message, MessageFlags
from zeroterm.core.threads import assign_thread_ids
from zeroterm.mail.port import PartialFailure, TransportError

logger = logging.getLogger(__name__)


# Every demo date is relative to this, so runs are reproducible
DEMO_NOW = datetime(2024, 11, 15, 9, 0, tzinfo=timezone.utc)
HOUR = timedelta(hours=1)
DAY = timedelta(days=1)


def _message(
    id: str,
    sender: str,
    subject: str,
    snippet: str,
    age: timedelta,
    message_id: str,
    in_reply_to: str = "",
    references: tuple[str, ...] = (),
    read: bool = False,
) -> Message:
    name, _, address = sender.rpartition(" <")
    return Message(
        id=id,
        sender=address.rstrip(">") if name else sender,
        sender_name=name,
        subject=subject,
        date=DEMO_NOW - age,
        flags=MessageFlags.SEEN if read else MessageFlags.NONE,
        snippet=snippet,
        message_id=message_id,
        in_reply_to=in_reply_to,
        references=references,
    )


def demo_messages() -> list[Message]:
    """Return the demo inbox, threaded, in arrival order."""
    messages = [
        # GitHub notifications
        _message(
            "demo_1", "GitHub <notifications@github.com>",
            "[rust-lang/rust] Fix ICE in pattern matching (PR #12345)",
            "@bors merged this pull request. All CI checks passed...",
            2 * HOUR, "<gh-pr-12345@github.com>",
        ),
        _message(
            "demo_2", "GitHub <notifications@github.com>",
            "[tokio-rs/tokio] New issue: Memory leak in async runtime",
            "A new issue has been opened by @contributor. Steps to reproduce...",
            5 * HOUR, "<gh-issue-456@github.com>",
        ),
        _message(
            "demo_3", "GitHub <notifications@github.com>",
            "Your mass migration jobs are now available",
            "We're excited to announce that mass migration jobs are now available...",
            1 * DAY, "<gh-announce-789@github.com>", read=True,
        ),

        # Linear
        _message(
            "demo_4", "Linear <notify@linear.app>",
            "ENG-1234: Implement user authentication",
            "Status changed to In Review. Alice assigned this issue to you...",
            1 * HOUR, "<linear-1234@linear.app>",
        ),
        _message(
            "demo_5", "Linear <notify@linear.app>",
            "Weekly project digest - Sprint 42",
            "12 issues completed, 3 in progress, 5 remaining...",
            2 * DAY, "<linear-digest@linear.app>", read=True,
        ),

        # Coffee with Alice
        _message(
            "demo_6", "Alice Chen <alice@example.com>",
            "Re: Coffee tomorrow?",
            "That works! How about the new place on Market St?",
            3 * HOUR, "<alice-reply-2@example.com>",
            in_reply_to="<demo-sent-1@example.com>",
            references=("<alice-orig@example.com>", "<demo-sent-1@example.com>"),
        ),
        _message(
            "demo_7", "Alice Chen <alice@example.com>",
            "Coffee tomorrow?",
            "Hey! It's been a while. Want to grab coffee tomorrow afternoon?",
            1 * DAY + 2 * HOUR, "<alice-orig@example.com>", read=True,
        ),
        _message(
            "demo_sent_1", "Demo User <demo@example.com>",
            "Re: Coffee tomorrow?",
            "Sure! 3pm works for me. Any preference on location?",
            1 * DAY, "<demo-sent-1@example.com>",
            in_reply_to="<alice-orig@example.com>",
            references=("<alice-orig@example.com>",),
            read=True,
        ),

        # Stripe receipts
        _message(
            "demo_8", "Stripe <receipts@stripe.com>",
            "Your receipt from Acme Corp",
            "Amount: $49.00. Thank you for your payment.",
            2 * DAY, "<stripe-receipt-1@stripe.com>",
        ),
        _message(
            "demo_9", "Stripe <receipts@stripe.com>",
            "Your receipt from Cloud Services Inc",
            "Amount: $12.00. Payment successful.",
            7 * DAY, "<stripe-receipt-2@stripe.com>", read=True,
        ),

        # One-offs
        _message(
            "demo_10", "Figma <no-reply@figma.com>",
            "Bob commented on 'Homepage Redesign'",
            "Bob: 'Love the new hero section!'",
            4 * HOUR, "<figma-comment@figma.com>",
        ),
        _message(
            "demo_11", "This Week in Rust <noreply@this-week-in-rust.org>",
            "This Week in Rust 542",
            "Hello and welcome to another issue of This Week in Rust!",
            2 * DAY - 4 * HOUR, "<twir-542@this-week-in-rust.org>",
        ),
        _message(
            "demo_12", "Amazon Web Services <no-reply@aws.amazon.com>",
            "AWS Billing Alert: Your costs exceeded the threshold",
            "Your AWS account has exceeded the billing threshold of $100.00.",
            1 * DAY - 6 * HOUR, "<aws-billing@aws.amazon.com>",
        ),
        _message(
            "demo_13", "Slack <feedback@slack.com>",
            "Your daily digest from Acme Workspace",
            "You have 23 unread messages in 5 channels.",
            8 * HOUR, "<slack-digest@slack.com>", read=True,
        ),

        # Q4 planning with Bob and Charlie
        _message(
            "demo_14", "Bob Smith <bob@company.com>",
            "Re: Q4 Planning",
            "I agree with Charlie's points. API improvements first.",
            6 * HOUR, "<bob-q4-reply@company.com>",
            in_reply_to="<charlie-q4@company.com>",
            references=("<demo-q4-orig@example.com>", "<charlie-q4@company.com>"),
        ),
        _message(
            "demo_15", "Charlie Davis <charlie@company.com>",
            "Re: Q4 Planning",
            "Great overview! Let's prioritize items 2 and 3.",
            1 * DAY - 3 * HOUR, "<charlie-q4@company.com>",
            in_reply_to="<demo-q4-orig@example.com>",
            references=("<demo-q4-orig@example.com>",),
        ),
        _message(
            "demo_sent_2", "Demo User <demo@example.com>",
            "Q4 Planning",
            "Hi team, I wanted to share my thoughts on Q4 priorities...",
            1 * DAY, "<demo-q4-orig@example.com>", read=True,
        ),
    ]

    return assign_thread_ids(messages)


class DemoMailbox:
    """
    In-memory MailOperations implementation.

    Usage:
        >>> mailbox = DemoMailbox(fail_ids={"demo_3"})
        >>> await mailbox.archive(["demo_1", "demo_3"])
        PartialFailure: 1 of 2 failed

    Attributes:
        inbox: Messages still "on the server".
        archived: Ids archived so far.
        deleted: Ids deleted so far.
        fail_ids: Ids every archive/delete refuses.
        latency: Seconds each call sleeps, to make the busy state visible.
    """

    def __init__(
        self,
        messages: Iterable[Message] | None = None,
        fail_ids: Collection[str] = (),
        latency: float = 0.0,
    ) -> None:
        source = demo_messages() if messages is None else list(messages)
        self.inbox: dict[str, Message] = {m.id: m for m in source}
        self.archived: list[str] = []
        self.deleted: list[str] = []
        self.fail_ids = set(fail_ids)
        self.latency = latency

    async def fetch(self) -> list[Message]:
        await self._wait()
        logger.debug(f"Demo fetch: {len(self.inbox)} messages")
        return list(self.inbox.values())

    async def archive(self, ids: Collection[str]) -> None:
        await self._wait()
        self._remove(ids, self.archived)

    async def delete(self, ids: Collection[str]) -> None:
        await self._wait()
        self._remove(ids, self.deleted)

    def _remove(self, ids: Collection[str], into: list[str]) -> None:
        """
        Move ids out of the inbox into `into`.

        Refused ids raise PartialFailure, or TransportError when nothing
        moved, as a live server would.
        """
        failed = [mid for mid in ids if mid in self.fail_ids or mid not in self.inbox]
        succeeded = [mid for mid in ids if mid not in failed]
        if failed and not succeeded:
            logger.debug(f"Demo refused all {len(failed)} ids")
            raise TransportError("refused by demo mailbox")

        for mid in succeeded:
            del self.inbox[mid]
        into.extend(succeeded)

        if failed:
            logger.debug(f"Demo refused {len(failed)} of {len(ids)} ids")
            raise PartialFailure(succeeded, failed, "refused by demo mailbox")

    async def _wait(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
