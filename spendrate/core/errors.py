"""
Error taxonomy for the sync/merge/analytics pipeline.

Malformed records are not errors: they are kept in the ledger and left out
of the totals (see ``spendrate.models.expense.record_amount``).
"""


class SpendRateError(Exception):
    """Base class for all service errors."""


class TransportFailure(SpendRateError):
    """The expense feed was unreachable or answered with a non-success status."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class AuthorizationFailure(TransportFailure):
    """The feed rejected the credential, or no credential could be obtained."""


class PersistenceFailure(SpendRateError):
    """The state store could not be read or written."""


class NotificationFailure(SpendRateError):
    """A notification could not be delivered."""
