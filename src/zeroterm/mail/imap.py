# =============================================================================
# IMAP Mailbox
# =============================================================================
# MailOperations implementation for a real IMAP server, built on aioimaplib.
#
# Key responsibilities:
#   - Connection management (SSL or STARTTLS, password from the keyring)
#   - Fetching INBOX envelopes (sender, subject, date, threading headers)
#   - Archive = UID MOVE to the archive folder, delete = UID MOVE to trash
#   - Recovery: listing the trash folder and moving messages back out
#
# Design notes:
#   - One confirmed action is ONE UID MOVE command with the full UID set
#   - If a move fails, the source folder is searched for the UIDs to find out which
#     ones actually moved (PartialFailure) or whether nothing did
#     (TransportError)
#   - Servers without MOVE get COPY + \Deleted + EXPUNGE
#   - Gmail thread ids (X-GM-THRID) are used when the server offers them,
#     otherwise threads are derived from Message-ID/References headers
# =============================================================================

import asyncio
import email.errors
import email.header
import email.parser
import email.utils
import logging
import re
from collections.abc import Collection, Iterable
from datetime import datetime

import keyring
import keyring.errors
from aioimaplib import aioimaplib

from zeroterm.core.account import Account
from zeroterm.core.message import Message, MessageFlags
from zeroterm.core.threads import assign_thread_ids
from zeroterm.mail.port import AuthenticationError, MailError, PartialFailure, TransportError

# Set up logging for this module
logger = logging.getLogger(__name__)


# Headers needed for grouping and threading; bodies are never downloaded
HEADER_FIELDS = "FROM SUBJECT DATE MESSAGE-ID IN-REPLY-TO REFERENCES"

# Errors aioimaplib raises for a broken connection
CONNECTION_ERRORS = (asyncio.TimeoutError, OSError, aioimaplib.Abort, aioimaplib.CommandTimeout)


def _quote_folder_name(name: str) -> str:
    """
    Quote an IMAP folder name if it contains special characters.

    Examples:
        >>> _quote_folder_name("[Gmail]/All Mail")
        '"[Gmail]/All Mail"'
        >>> _quote_folder_name("Archive")
        'Archive'
    """
    if ' ' in name or '"' in name or '\\' in name or any(c in name for c in '(){}[]'):
        escaped = name.replace('\\', '\\\\').replace('"', '\\"')
        return f'"{escaped}"'
    return name


def _uid_set(ids: Iterable[str]) -> str:
    """Comma-separated UID set, numerically sorted."""
    return ",".join(sorted(ids, key=int))


def _close_transport(client: aioimaplib.IMAP4 | None) -> None:
    """Close the socket under a client that will never be logged out."""
    if client is None:
        return
    transport = getattr(client.protocol, "transport", None)
    if transport is None:
        return
    try:
        transport.close()
    except OSError as e:
        logger.debug(f"Error closing transport: {e}")


def _to_text(line: str | bytes | bytearray) -> str:
    if isinstance(line, (bytes, bytearray)):
        return bytes(line).decode("utf-8", errors="replace")
    return line


# =============================================================================
# Response parsing
# =============================================================================
# aioimaplib returns a FETCH response as a flat list: the "N FETCH (...{size}"
# line, the literal header block as a bytearray, then a closing line such as
# b")" or b" FLAGS (\\Seen))", repeated per message, and finally the tagged
# status line ("Fetch completed").

_FETCH_START = re.compile(r"^\d+\s+FETCH\s*\(", re.IGNORECASE)
_LITERAL_END = re.compile(r"\{(\d+)\}\s*$")


def decode_header(value: str) -> str:
    """Decode an RFC 2047 encoded header value."""
    if not value:
        return ""
    try:
        decoded_parts = email.header.decode_header(value)
    except email.errors.HeaderParseError:
        return value

    result = ""
    for part, charset in decoded_parts:
        if isinstance(part, bytes):
            try:
                result += part.decode(charset or "utf-8", errors="replace")
            except LookupError:
                result += part.decode("utf-8", errors="replace")
        else:
            result += part
    return " ".join(result.split())


def parse_flags(flags_str: str) -> MessageFlags:
    """Convert an IMAP flags string to MessageFlags."""
    result = MessageFlags.NONE

    flags_upper = flags_str.upper()
    if "\\SEEN" in flags_upper:
        result |= MessageFlags.SEEN
    if "\\ANSWERED" in flags_upper:
        result |= MessageFlags.ANSWERED
    if "\\FLAGGED" in flags_upper:
        result |= MessageFlags.FLAGGED
    return result


def parse_date(value: str) -> datetime | None:
    """Parse an RFC 2822 date, or None if it is missing or garbage."""
    if not value:
        return None
    try:
        return email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.debug(f"Unparseable date: {value!r}")
        return None


def build_message(uid: str, attributes: str, header_block: bytes) -> Message:
    """
    Build a Message from one FETCH item.

    Args:
        uid: The message UID.
        attributes: The non-literal text of the item (FLAGS, X-GM-THRID, ...).
        header_block: The raw header literal.
    """
    headers = email.parser.BytesHeaderParser().parsebytes(header_block)

    raw_from = decode_header(str(headers.get("From", "")))
    name, address = email.utils.parseaddr(raw_from)

    flags_match = re.search(r"FLAGS\s*\(([^)]*)\)", attributes, re.IGNORECASE)
    thread_match = re.search(r"X-GM-THRID\s+(\d+)", attributes, re.IGNORECASE)

    references = tuple(str(headers.get("References", "")).split())

    return Message(
        id=uid,
        sender=address or raw_from,
        sender_name=name,
        subject=decode_header(str(headers.get("Subject", ""))),
        date=parse_date(str(headers.get("Date", ""))),
        thread_id=f"gm:{thread_match.group(1)}" if thread_match else "",
        flags=parse_flags(flags_match.group(1)) if flags_match else MessageFlags.NONE,
        message_id=str(headers.get("Message-ID", "")).strip(),
        in_reply_to=str(headers.get("In-Reply-To", "")).strip(),
        references=references,
    )


def parse_fetch_response(lines: Iterable[str | bytes | bytearray]) -> list[Message]:
    """
    Parse a UID FETCH response into messages, in server order.

    Items without a UID are skipped with a warning.
    """
    items: list[tuple[str, bytes]] = []
    current_text: str | None = None
    current_headers = b""
    expect_literal = False

    for line in lines:
        if expect_literal:
            current_headers = bytes(line) if isinstance(line, (bytes, bytearray)) else line.encode()
            expect_literal = False
            continue

        text = _to_text(line)
        if _FETCH_START.match(text):
            if current_text is not None:
                items.append((current_text, current_headers))
            current_text = text
            current_headers = b""
        elif current_text is not None:
            current_text += " " + text.strip()
        else:
            continue

        if _LITERAL_END.search(text):
            expect_literal = True

    if current_text is not None:
        items.append((current_text, current_headers))

    messages = []
    for attributes, header_block in items:
        uid_match = re.search(r"UID\s+(\d+)", attributes, re.IGNORECASE)
        if not uid_match:
            logger.warning(f"FETCH item without UID skipped: {attributes[:80]!r}")
            continue
        messages.append(build_message(uid_match.group(1), attributes, header_block))
    return messages


def parse_search_response(lines: Iterable[str | bytes | bytearray]) -> set[str]:
    """
    Extract UIDs from a (UID) SEARCH response.

    aioimaplib may or may not keep the "SEARCH" keyword on the untagged
    line, so a line counts if it is only numbers after that keyword.
    """
    uids: set[str] = set()
    for line in lines:
        tokens = _to_text(line).split()
        if tokens and tokens[0].upper() == "SEARCH":
            tokens = tokens[1:]
        if tokens and all(token.isdigit() for token in tokens):
            uids.update(tokens)
    return uids


def parse_exists(lines: Iterable[str | bytes | bytearray]) -> int:
    """Message count from a SELECT response."""
    for line in lines:
        match = re.search(r"(\d+)\s+EXISTS", _to_text(line), re.IGNORECASE)
        if match:
            return int(match.group(1))
    return 0


# =============================================================================
# Mailbox
# =============================================================================

class IMAPMailbox:
    """
    MailOperations backed by an IMAP server.

    Usage:
        >>> mailbox = IMAPMailbox(account)
        >>> messages = await mailbox.fetch()
        >>> await mailbox.archive(["1042", "1043"])
        >>> await mailbox.disconnect()

    Attributes:
        account: Server, folders and login of the mailbox.
        password: Explicit password; if None, it is read from the keyring.
    """

    # Timeout for IMAP operations (seconds)
    TIMEOUT = 30

    def __init__(self, account: Account, password: str | None = None) -> None:
        self.account = account
        self.password = password
        self._client: aioimaplib.IMAP4_SSL | aioimaplib.IMAP4 | None = None

    # =========================================================================
    # Connection Management
    # =========================================================================

    async def connect(self) -> None:
        """
        Connect and log in.

        Raises:
            TransportError: If the server cannot be reached.
            AuthenticationError: If there is no password or login fails.
        """
        account = self.account
        logger.info(f"Connecting to {account.imap_host}:{account.imap_port}")

        client = None
        try:
            if account.imap_security == "ssl":
                client = aioimaplib.IMAP4_SSL(
                    host=account.imap_host,
                    port=account.imap_port,
                    timeout=self.TIMEOUT,
                )
            else:
                client = aioimaplib.IMAP4(
                    host=account.imap_host,
                    port=account.imap_port,
                    timeout=self.TIMEOUT,
                )

            await client.wait_hello_from_server()
            logger.debug(f"Server capabilities: {sorted(client.protocol.capabilities)}")

            if account.imap_security == "starttls":
                if not client.has_capability("STARTTLS"):
                    raise TransportError("Server does not support STARTTLS")
                await client.starttls()

            await self._authenticate(client)
        except CONNECTION_ERRORS as e:
            _close_transport(client)
            raise TransportError(
                f"Failed to connect to {account.imap_host}:{account.imap_port}: {e}"
            ) from e
        except MailError:
            _close_transport(client)
            raise

        self._client = client
        logger.info(f"Connected to {account.imap_host}")

    async def _authenticate(self, client: aioimaplib.IMAP4) -> None:
        password = self.password
        if not password:
            try:
                password = keyring.get_password(self.account.keyring_service, self.account.email)
            except keyring.errors.KeyringError as e:
                logger.warning(f"Keyring lookup failed: {e}")
                raise AuthenticationError(
                    f"System keyring unavailable ({e}). Enter the password for {self.account.email}."
                ) from e
        if not password:
            raise AuthenticationError(
                f"No password found in keyring for {self.account.email}. "
                f"Set it with: keyring set {self.account.keyring_service} {self.account.email}"
            )

        logger.debug(f"Authenticating as {self.account.email}")
        response = await client.login(self.account.email, password)
        if response.result != "OK":
            raise AuthenticationError(f"Authentication failed for {self.account.email}")

    async def disconnect(self) -> None:
        """Log out, ignoring errors from an already broken connection."""
        if self._client is None:
            return
        try:
            await self._client.logout()
        except CONNECTION_ERRORS as e:
            logger.warning(f"Error during logout: {e}")
        finally:
            self._client = None

    async def _ensure_connected(self) -> aioimaplib.IMAP4:
        if self._client is None:
            await self.connect()
        return self._client

    async def _select(self, folder: str) -> int:
        """Select `folder` and return its message count."""
        client = await self._ensure_connected()
        response = await client.select(_quote_folder_name(folder))
        if response.result != "OK":
            raise TransportError(f"Failed to select '{folder}': {response.lines}")
        return parse_exists(response.lines)

    # =========================================================================
    # MailOperations
    # =========================================================================

    async def fetch(self) -> list[Message]:
        """Fetch envelopes of every INBOX message, threaded."""
        try:
            exists = await self._select(self.account.inbox_folder)
            if exists == 0:
                return []

            client = self._client
            items = f"(UID FLAGS BODY.PEEK[HEADER.FIELDS ({HEADER_FIELDS})])"
            if client.has_capability("X-GM-EXT-1"):
                items = f"(UID FLAGS X-GM-THRID BODY.PEEK[HEADER.FIELDS ({HEADER_FIELDS})])"

            logger.debug(f"Fetching {exists} envelopes from {self.account.inbox_folder}")
            response = await client.uid("FETCH", "1:*", items)
        except CONNECTION_ERRORS as e:
            await self._drop_connection()
            raise TransportError(f"Fetch failed: {e}") from e

        if response.result != "OK":
            raise TransportError(f"Fetch failed: {response.lines}")

        messages = assign_thread_ids(parse_fetch_response(response.lines))
        logger.info(f"Fetched {len(messages)} messages")
        return messages

    async def archive(self, ids: Collection[str]) -> None:
        await self._move(ids, self.account.archive_folder)

    async def delete(self, ids: Collection[str]) -> None:
        await self._move(ids, self.account.trash_folder)

    # =========================================================================
    # Recovery
    # =========================================================================

    async def trash_messages(self, from_filter: str = "", limit: int = 2000) -> list[Message]:
        """
        Recently deleted messages, newest first.

        The highest UIDs in the trash folder are the ones moved there last.

        Args:
            from_filter: Keep senders whose address contains this text
                         (case-insensitive). Empty keeps everything.
            limit: How many of the most recent trash messages to look at.

        Raises:
            TransportError: If the trash folder cannot be read.
        """
        folder = self.account.trash_folder
        try:
            if await self._select(folder) == 0:
                return []

            client = self._client
            response = await client.uid_search("ALL")
            if response.result != "OK":
                raise TransportError(f"Search in '{folder}' failed: {response.lines}")
            uids = sorted(parse_search_response(response.lines), key=int, reverse=True)[:limit]
            if not uids:
                return []

            logger.debug(f"Fetching {len(uids)} envelopes from {folder}")
            items = f"(UID FLAGS BODY.PEEK[HEADER.FIELDS ({HEADER_FIELDS})])"
            response = await client.uid("FETCH", _uid_set(uids), items)
        except CONNECTION_ERRORS as e:
            await self._drop_connection()
            raise TransportError(f"Reading '{folder}' failed: {e}") from e

        if response.result != "OK":
            raise TransportError(f"Reading '{folder}' failed: {response.lines}")

        wanted = from_filter.strip().lower()
        messages = [m for m in parse_fetch_response(response.lines) if wanted in m.address]
        messages.sort(key=lambda m: int(m.id), reverse=True)
        return messages

    async def restore(self, ids: Collection[str], to_folder: str | None = None) -> None:
        """
        Move `ids` out of the trash folder, back to the inbox by default.

        Raises:
            PartialFailure: If some, but not all, ids left the trash.
            TransportError: If none did.
        """
        destination = to_folder or self.account.inbox_folder
        await self._move(ids, destination, source=self.account.trash_folder)

    # =========================================================================
    # Moving
    # =========================================================================

    async def _move(self, ids: Collection[str], destination: str, source: str | None = None) -> None:
        """
        Move `ids` from `source` (default: the inbox) in one command.

        Raises:
            PartialFailure: If some, but not all, ids left `source`.
            TransportError: If none did.
        """
        ids = set(ids)
        if not ids:
            return

        source = source or self.account.inbox_folder
        uid_set = _uid_set(ids)
        quoted_dest = _quote_folder_name(destination)

        try:
            await self._select(source)
            client = self._client
            if client.has_capability("MOVE"):
                logger.debug(f"Moving {len(ids)} messages to {destination} using MOVE")
                response = await client.uid("MOVE", uid_set, quoted_dest)
                error = "" if response.result == "OK" else f"Move failed: {response.lines}"
            else:
                logger.debug(f"Moving {len(ids)} messages to {destination} using COPY+DELETE")
                error = await self._copy_and_expunge(client, uid_set, quoted_dest)
        except CONNECTION_ERRORS as e:
            await self._drop_connection()
            error = f"Move failed: {e}"

        if not error:
            logger.info(f"Moved {len(ids)} messages from {source} to {destination}")
            return

        logger.warning(f"{error}; checking which messages moved")
        remaining = await self._still_in(source, ids)
        succeeded = ids - remaining
        if not succeeded:
            raise TransportError(error)
        raise PartialFailure(succeeded, remaining, error)

    async def _copy_and_expunge(self, client: aioimaplib.IMAP4, uid_set: str, quoted_dest: str) -> str:
        """MOVE fallback. Returns an error string, "" on success."""
        response = await client.uid("COPY", uid_set, quoted_dest)
        if response.result != "OK":
            return f"Copy failed: {response.lines}"

        response = await client.uid("STORE", uid_set, "+FLAGS.SILENT (\\Deleted)")
        if response.result != "OK":
            return f"Failed to flag messages as deleted: {response.lines}"

        response = await client.expunge()
        if response.result != "OK":
            return f"Expunge failed: {response.lines}"
        return ""

    async def _still_in(self, folder: str, ids: set[str]) -> set[str]:
        """
        UIDs of `ids` still in `folder`.

        If the check itself fails nothing is known, so every id is reported
        as remaining.
        """
        try:
            await self._select(folder)
            response = await self._client.uid_search(f"UID {_uid_set(ids)}")
        except (TransportError, *CONNECTION_ERRORS) as e:
            logger.error(f"Could not verify move: {e}")
            await self._drop_connection()
            return set(ids)

        if response.result != "OK":
            logger.error(f"Could not verify move: {response.lines}")
            return set(ids)
        return parse_search_response(response.lines) & ids

    async def _drop_connection(self) -> None:
        """Close and forget a connection that failed, so the next call reconnects."""
        client, self._client = self._client, None
        _close_transport(client)
