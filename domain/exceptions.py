"""Domain error taxonomy: pure Python, zero external dependencies."""

from __future__ import annotations


class EngineError(Exception):
    """Base class for every error raised by the reconquest engine."""


class ValidationError(EngineError):
    """An invoice or line item violates a data-model invariant."""

    def __init__(self, message: str, field: str | None = None,
                 invoice_id: str | None = None):
        self.field = field
        self.invoice_id = invoice_id
        prefix = f"[{invoice_id}] " if invoice_id else ""
        suffix = f" ({field})" if field else ""
        super().__init__(f"{prefix}{message}{suffix}")


class DuplicateIdError(EngineError):
    """An invoice with the same id is already in the repository."""

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice id already present: {invoice_id!r}")


class StorageQuotaError(EngineError):
    """A snapshot write would exceed the storage budget.

    Raised inside the persistence layer only; it is always recovered there.
    """

    def __init__(self, size: int, budget: int):
        self.size = size
        self.budget = budget
        super().__init__(f"Snapshot of {size} bytes exceeds budget of {budget} bytes")


class NotFoundError(EngineError):
    """Lookup of an unknown invoice id.

    ``remove_invoice`` never raises it: removing an absent id is a no-op.
    """

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id!r}")
