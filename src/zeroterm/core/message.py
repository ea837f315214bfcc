# =============================================================================
# Message Model
# =============================================================================
# Represents one fetched inbox message. zeroterm only needs the envelope:
#   - Who sent it (address + display name)
#   - What it is about (subject, snippet)
#   - When it arrived
#   - Which conversation (thread) it belongs to
#   - Read/flag state for display
#
# Messages are immutable once fetched. The only thing that ever happens to
# a message afterwards is removal from the store when an archive/delete on
# the server succeeds.
# =============================================================================

import email.utils
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntFlag


# Key used for messages whose From header could not be parsed at all
UNKNOWN_SENDER = "(unknown sender)"


class MessageFlags(IntFlag):
    """
    Message flags, stored as a bitmask.

    Only the standard IMAP flags zeroterm displays are tracked:
        - SEEN: Message has been read
        - ANSWERED: Message has been replied to
        - FLAGGED: User-flagged as important (usually shown as a star)
    """
    NONE = 0            # No flags set
    SEEN = 1 << 0       # Message has been read (\\Seen)
    ANSWERED = 1 << 1   # Message has been replied to (\\Answered)
    FLAGGED = 1 << 2    # User-flagged / starred (\\Flagged)


def extract_address(sender: str) -> str:
    """
    Extract the bare, lowercased email address from a From value.

    Handles "Name <addr>", "<addr>" and plain "addr" forms.

    Examples:
        >>> extract_address('"Doe, John" <John.Doe@Example.com>')
        'john.doe@example.com'
        >>> extract_address("  plain@email.com  ")
        'plain@email.com'
    """
    if not sender:
        return ""
    _, address = email.utils.parseaddr(sender)
    if not address:
        # parseaddr gives up on some malformed values; keep what we have
        address = sender.strip().strip("<>")
    return address.strip().lower()


def extract_domain(address: str) -> str:
    """
    Return the domain part of an address.

    A malformed address without "@" returns the whole address, so unrelated
    malformed senders never collapse into one shared "domain".
    """
    if "@" not in address:
        return address
    return address.rsplit("@", 1)[1]


@dataclass(frozen=True)
class Message:
    """
    An inbox message as seen by the navigation core.

    Attributes:
        id: Provider identifier (IMAP UID as string, Gmail message id, ...).
            Opaque and stable for the lifetime of the message.
        sender: The raw "From" address as received.
        sender_name: Display name of the sender, may be empty.
        subject: Subject line.
        date: When the message was sent, if known.
        thread_id: Conversation identifier. Every message has exactly one.
        flags: Read/answered/flagged state.
        snippet: Short preview text.

        message_id: RFC 5322 Message-ID header.
        in_reply_to: Message-ID this message replies to.
        references: Message-IDs from the References header.
                    These three are only used to derive thread_id for
                    providers that do not supply one.
    """

    id: str
    sender: str
    sender_name: str = ""
    subject: str = ""
    date: datetime | None = None
    thread_id: str = ""
    flags: MessageFlags = MessageFlags.NONE
    snippet: str = ""

    # Threading headers
    message_id: str = ""
    in_reply_to: str = ""
    references: tuple[str, ...] = field(default_factory=tuple)

    # -------------------------------------------------------------------------
    # Derived sender information
    # -------------------------------------------------------------------------

    @property
    def address(self) -> str:
        """Case-normalized sender address, or UNKNOWN_SENDER if empty."""
        return extract_address(self.sender) or UNKNOWN_SENDER

    @property
    def domain(self) -> str:
        """Case-normalized sender domain (whole address if malformed)."""
        return extract_domain(self.address)

    @property
    def has_valid_address(self) -> bool:
        """True if the sender address contains an "@"."""
        return "@" in self.address

    @property
    def display_sender(self) -> str:
        """
        Returns the best display string for the sender.
        Prefers sender_name if available, falls back to email address.
        """
        if self.sender_name:
            return self.sender_name
        return self.address

    # -------------------------------------------------------------------------
    # Flags
    # -------------------------------------------------------------------------

    @property
    def is_read(self) -> bool:
        """Returns True if the message has been read (SEEN flag)."""
        return bool(self.flags & MessageFlags.SEEN)

    @property
    def is_flagged(self) -> bool:
        """Returns True if the message is starred/flagged."""
        return bool(self.flags & MessageFlags.FLAGGED)

    @property
    def display_text(self) -> str:
        """Text used for list display and incremental search."""
        return f"{self.display_sender} {self.subject}".strip()

    def __str__(self) -> str:
        """Human-readable representation."""
        read_marker = " " if self.is_read else "*"
        return f"{read_marker} {self.display_sender}: {self.subject}"
