# =============================================================================
# zeroterm Mail Module
# =============================================================================
# Mail providers behind the MailOperations port.
# =============================================================================

from zeroterm.mail.port import (
    AuthenticationError,
    MailError,
    MailOperations,
    PartialFailure,
    TransportError,
    run_operation,
)

__all__ = [
    "AuthenticationError",
    "MailError",
    "MailOperations",
    "PartialFailure",
    "TransportError",
    "run_operation",
]
