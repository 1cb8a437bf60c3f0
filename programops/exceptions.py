"""Exception taxonomy for the program operations service."""

from __future__ import annotations


class ProgramOpsError(Exception):
    """Base class for errors raised by programops."""


class InvalidStatusError(ProgramOpsError, ValueError):
    """Raised when a status value does not belong to the workflow kind."""


class IllegalTransitionError(ProgramOpsError):
    """Raised when applying a status change the workflow does not allow."""

    def __init__(self, kind: str, current: str, target: str) -> None:
        self.kind = kind
        self.current = current
        self.target = target
        super().__init__(f"Cannot move {kind} from {current!r} to {target!r}")


class MissingReasonError(ProgramOpsError):
    """Raised when a rejection or cancellation is applied without a reason."""


class RuleConfigurationError(ProgramOpsError):
    """Raised when a settlement calculation rule cannot be loaded."""


class LockedLineItemError(ProgramOpsError):
    """Raised when changing the amount of a fixed accommodation line."""


class NotFoundError(ProgramOpsError):
    """Raised when a record is missing from a repository."""


class ConcurrentModificationError(ProgramOpsError):
    """Raised when a write is based on a stale version of a record."""


# Mapping of custom exceptions to HTTP status codes
ERROR_STATUS_CODES: dict[type[ProgramOpsError], int] = {
    InvalidStatusError: 422,
    IllegalTransitionError: 409,
    MissingReasonError: 422,
    RuleConfigurationError: 422,
    LockedLineItemError: 422,
    NotFoundError: 404,
    ConcurrentModificationError: 409,
}


def status_code_for(error: ProgramOpsError) -> int:
    for error_type in type(error).__mro__:
        if error_type in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_type]
    return 400
