# =============================================================================
# Mail Operations
# =============================================================================
# Describes a request to the mail server (fetch, archive, delete) and its
# result. The navigator creates an Operation, the UI runs it against the
# mail port in the background, and the OperationOutcome is folded back into
# the store on the event loop.
#
# One confirmed action is always ONE operation carrying the full id set, so
# the outcome can say exactly which ids succeeded and which failed.
# =============================================================================

from dataclasses import dataclass, field
from enum import Enum

from zeroterm.core.scope import ActionKind, ActionScope


class OperationKind(Enum):
    """What the mail port is asked to do."""
    FETCH = "fetch"
    ARCHIVE = "archive"
    DELETE = "delete"

    @classmethod
    def for_action(cls, action: ActionKind) -> "OperationKind":
        return cls.ARCHIVE if action is ActionKind.ARCHIVE else cls.DELETE

    @property
    def progress_text(self) -> str:
        """Text for the busy indicator."""
        return {
            OperationKind.FETCH: "Loading emails",
            OperationKind.ARCHIVE: "Archiving",
            OperationKind.DELETE: "Deleting",
        }[self]

    @property
    def past_tense(self) -> str:
        return {
            OperationKind.FETCH: "Loaded",
            OperationKind.ARCHIVE: "Archived",
            OperationKind.DELETE: "Deleted",
        }[self]


@dataclass(frozen=True)
class Operation:
    """
    One in-flight request.

    Attributes:
        op_id: Unique id; late results for cancelled operations are dropped
               by comparing ids.
        kind: Fetch, archive or delete.
        message_ids: Ids sent to the server (empty for fetch).
        scope: The confirmed scope this operation executes, if any.
    """
    op_id: int
    kind: OperationKind
    message_ids: frozenset[str] = field(default_factory=frozenset)
    scope: ActionScope | None = None

    @property
    def description(self) -> str:
        if self.kind is OperationKind.FETCH:
            return f"{self.kind.progress_text}..."
        noun = "email" if len(self.message_ids) == 1 else "emails"
        return f"{self.kind.progress_text} {len(self.message_ids)} {noun}..."


@dataclass(frozen=True)
class OperationOutcome:
    """
    Result of an archive/delete.

    Attributes:
        succeeded: Ids the server confirmed.
        failed: Ids that were not changed on the server.
        error: Error text ("" on full success).
        partial: True when the server reported a partial failure, so the
                 failed ids are known precisely and get a failure marker.
    """
    succeeded: frozenset[str] = field(default_factory=frozenset)
    failed: frozenset[str] = field(default_factory=frozenset)
    error: str = ""
    partial: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed and not self.error

    @classmethod
    def success(cls, ids: frozenset[str]) -> "OperationOutcome":
        return cls(succeeded=frozenset(ids))

    @classmethod
    def transport_failure(cls, ids: frozenset[str], error: str) -> "OperationOutcome":
        """Nothing happened on the server (network/auth failure)."""
        return cls(failed=frozenset(ids), error=error)

    @classmethod
    def partial_failure(
        cls,
        succeeded: frozenset[str],
        failed: frozenset[str],
        error: str = "",
    ) -> "OperationOutcome":
        return cls(
            succeeded=frozenset(succeeded),
            failed=frozenset(failed),
            error=error or f"{len(failed)} of {len(succeeded) + len(failed)} failed",
            partial=True,
        )
