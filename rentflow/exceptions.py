"""
Custom exception classes for the rental order engine.

Inner engines raise these; the service boundary turns them into typed
results so request handlers never see them escape.
"""


class OrderEngineError(Exception):
    """Base class for every error the order engine reports."""

    kind = "error"
    default_message = "Error: order engine failure"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def __str__(self) -> str:  # pragma: no cover
        return self.message


class InvalidTransitionError(OrderEngineError):
    """Raised when the requested status is not reachable from the current one."""

    kind = "invalid_transition"
    default_message = "Error: invalid status transition"


class InvalidStateError(OrderEngineError):
    """Raised when a deposit operation is attempted outside its precondition."""

    kind = "invalid_state"
    default_message = "Error: operation not allowed in the current state"


class InvalidDateError(OrderEngineError):
    """Raised when a date is missing, unparseable or out of order."""

    kind = "invalid_date"
    default_message = "Error: invalid date"


class InvalidAmountError(OrderEngineError):
    """Raised when a price, quantity, day count or deduction is negative or malformed."""

    kind = "invalid_amount"
    default_message = "Error: invalid amount"


class ConflictError(OrderEngineError):
    """Raised when an order changed between read and commit."""

    kind = "conflict"
    default_message = "Error: order was modified concurrently, reload and retry"


class OrderNotFoundError(OrderEngineError):
    """Raised when an order ID cannot be found in the store."""

    kind = "not_found"
    default_message = "Error: order not found"
