"""Custom exceptions for splitledger."""


class LedgerError(Exception):
    """Base exception for all splitledger errors."""

    pass


class InvalidInput(LedgerError, ValueError):
    """Raised when caller input is rejected before any state change."""

    def __init__(self, message: str, strategy: str | None = None, field: str | None = None):
        self.strategy = strategy
        self.field = field
        super().__init__(message)


class InvariantViolation(LedgerError, AssertionError):
    """Raised when a ledger invariant fails. Always indicates a bug."""

    pass


class TripNotFoundError(LedgerError, KeyError):
    """Raised when a trip id is not known to the store."""

    def __init__(self, trip_id: str):
        self.trip_id = trip_id
        super().__init__(f"Trip '{trip_id}' not found")

    def __str__(self) -> str:
        return str(self.args[0])


class RecordNotFoundError(LedgerError, KeyError):
    """Raised when an expense, settlement or participant id is not in the trip."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind.capitalize()} '{record_id}' not found")

    def __str__(self) -> str:
        return str(self.args[0])


class StateError(LedgerError):
    """Raised when the trip store cannot be read."""

    pass
