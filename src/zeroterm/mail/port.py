# =============================================================================
# Mail Operations Port
# =============================================================================
# The boundary between the navigation core and a mail provider. The core
# never calls a provider directly: the UI runs one port call per confirmed
# operation and hands the result back to the navigator.
#
# Implementations:
#   - IMAPMailbox (zeroterm.mail.imap): a real IMAP server
#   - DemoMailbox (zeroterm.mail.demo): built-in inbox for --demo and tests
#
# Error contract:
#   - TransportError: nothing changed on the server
#   - AuthenticationError: a TransportError the user can fix with a password
#   - PartialFailure: some ids changed, some did not, and we know which
# =============================================================================

import logging
from collections.abc import Collection
from typing import Protocol

from zeroterm.core.message import Message
from zeroterm.core.operations import Operation, OperationKind, OperationOutcome

logger = logging.getLogger(__name__)


class MailOperations(Protocol):
    """
    What a mail provider must be able to do.

    Every call operates on the full id set of one confirmed action, so a
    provider can report exactly which ids succeeded.
    """

    async def fetch(self) -> list[Message]:
        """Return every inbox message, in arrival order."""
        ...

    async def archive(self, ids: Collection[str]) -> None:
        """Remove `ids` from the inbox, keeping them in the archive."""
        ...

    async def delete(self, ids: Collection[str]) -> None:
        """Move `ids` to the trash."""
        ...


async def run_operation(port: MailOperations, operation: Operation) -> OperationOutcome:
    """
    Run an archive/delete against `port` and describe what happened.

    Transport faults are folded into the outcome instead of raised, so the
    navigator always gets an answer for the operation it started.
    Cancellation (asyncio.CancelledError) is not caught.

    Raises:
        ValueError: For fetch operations, which return messages instead.
    """
    ids = sorted(operation.message_ids)

    if operation.kind is OperationKind.ARCHIVE:
        call = port.archive
    elif operation.kind is OperationKind.DELETE:
        call = port.delete
    else:
        raise ValueError(f"run_operation() cannot run {operation.kind.value} operations")

    logger.debug(f"Op {operation.op_id}: {operation.kind.value} {len(ids)} ids")
    try:
        await call(ids)
    except PartialFailure as e:
        logger.warning(f"Op {operation.op_id} partially failed: {len(e.failed)} ids")
        return OperationOutcome.partial_failure(
            frozenset(e.succeeded) & operation.message_ids,
            frozenset(e.failed) & operation.message_ids,
            str(e),
        )
    except TransportError as e:
        logger.error(f"Op {operation.op_id} failed: {e}")
        return OperationOutcome.transport_failure(operation.message_ids, str(e))

    return OperationOutcome.success(operation.message_ids)


# =============================================================================
# Exceptions
# =============================================================================

class MailError(Exception):
    """Base exception for mail provider failures."""
    pass


class TransportError(MailError):
    """The provider could not be reached or refused the request."""
    pass


class AuthenticationError(TransportError):
    """Login failed or no password is stored for the account."""
    pass


class PartialFailure(MailError):
    """
    Raised when only part of an id set was changed.

    Attributes:
        succeeded: Ids the provider changed.
        failed: Ids the provider left alone.
    """

    def __init__(self, succeeded: Collection[str], failed: Collection[str], reason: str = "") -> None:
        self.succeeded = frozenset(succeeded)
        self.failed = frozenset(failed)
        message = f"{len(self.failed)} of {len(self.succeeded) + len(self.failed)} failed"
        if reason:
            message += f": {reason}"
        super().__init__(message)
