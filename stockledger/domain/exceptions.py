"""
Domain errors raised by the posting engine.

User-correctable errors subclass ValueError so the API maps them to 4xx;
TransactionFailure is the opaque wrapper for anything that broke inside
an atomic unit of work.
"""

from decimal import Decimal


class LedgerError(Exception):
    """Base class for posting engine errors."""


class ImbalancedEntry(LedgerError, ValueError):
    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(f"Journal entry imbalanced: Dr {total_debit} != Cr {total_credit}")


class UnknownAccount(LedgerError, ValueError):
    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Account code {code} not found")


class InsufficientData(LedgerError, ValueError):
    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"Missing required field: {field}")


class InvalidState(LedgerError, ValueError):
    def __init__(self, entity: str, state: str):
        self.entity = entity
        self.state = state
        super().__init__(f"{entity} is in state {state}")


class EntityNotFound(LedgerError, ValueError):
    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class TransactionFailure(LedgerError, RuntimeError):
    """A lower-level failure aborted the unit of work; nothing was committed."""


class SaleProcessingFailed(TransactionFailure):
    def __init__(self, message: str = "Failed to process sale"):
        super().__init__(message)
