class LedgerError(Exception):
    """Base class for every failure raised by ledger and household services."""


class ValidationError(LedgerError):
    """Malformed or missing input. Raised before the store is touched."""


class NotFoundError(LedgerError):
    """A referenced profile, task, goal or transaction does not exist."""


class ConflictError(LedgerError):
    """A state precondition does not hold, e.g. a task that is already paid."""


class StoreConflictError(LedgerError):
    """Concurrent writers kept invalidating the read set until retries ran out."""


_HTTP_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (StoreConflictError, 503),
)


def HttpStatusForError(exc: LedgerError) -> int:
    for error_type, status_code in _HTTP_STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400
