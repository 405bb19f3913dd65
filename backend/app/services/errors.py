from __future__ import annotations


class LedgerError(Exception):
    """Base class for failures surfaced by the ledger engine."""

    status_code = 500


class LedgerValidationError(LedgerError):
    status_code = 400


class NotFound(LedgerError):
    status_code = 404


class PersistenceFailure(LedgerError):
    """The store failed mid-operation. The whole operation was rolled back."""

    status_code = 500


class LedgerBusy(PersistenceFailure):
    status_code = 503
