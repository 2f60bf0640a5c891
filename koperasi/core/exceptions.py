"""Domain errors raised by the ledger and loan services.

Each error carries a stable ``code`` and the HTTP status the API layer
renders it with. Only ``StorageFailure`` is worth retrying.
"""


class LedgerError(Exception):
    """Base class for ledger and loan errors."""
    code = "ledger_error"
    status_code = 400

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class NotFound(LedgerError):
    """Referenced member, loan or installment does not exist."""
    code = "not_found"
    status_code = 404


class InvalidInput(LedgerError):
    """Request values are outside the accepted domain."""
    code = "invalid_input"
    status_code = 400


class InsufficientBalance(LedgerError):
    """Withdrawal exceeds the current savings balance."""
    code = "insufficient_balance"
    status_code = 409


class InsufficientPayment(LedgerError):
    """Payment is below the installment amount due."""
    code = "insufficient_payment"
    status_code = 422


class AlreadyPaid(LedgerError):
    """Installment has already been paid."""
    code = "already_paid"
    status_code = 409


class InvalidTransition(LedgerError):
    """Loan is not in the status required for this operation."""
    code = "invalid_transition"
    status_code = 409


class StorageFailure(LedgerError):
    """Underlying transaction or commit failed."""
    code = "storage_failure"
    status_code = 503
