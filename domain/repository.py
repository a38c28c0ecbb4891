"""Invoice repository: the canonical, in-memory invoice collection.

Only stdlib and domain imports allowed. Every mutation publishes a new
immutable tuple in a single assignment, so a reader holding a snapshot never
observes a half-applied change. Observers (the persistence manager) are
notified after the mutation is applied.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Iterator

from domain.exceptions import DuplicateIdError, NotFoundError
from domain.models import Invoice
from domain.normalization import is_extraction_failure_marker
from domain.validation import strip_failed_lines, validate_invoice

logger = logging.getLogger(__name__)


class MutationKind(Enum):
    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"
    CLEAR = "clear"


@dataclass(frozen=True)
class RepositoryEvent:
    kind: MutationKind
    invoices: tuple[Invoice, ...]
    invoice_id: str | None = None


Listener = Callable[[RepositoryEvent], None]


class InvoiceRepository:
    """Owns the invoice collection, newest invoice first."""

    def __init__(self, invoices: Iterable[Invoice] = (), tolerance: float = 0.01):
        self._tolerance = tolerance
        self._lock = threading.RLock()
        self._listeners: list[Listener] = []
        self._invoices: tuple[Invoice, ...] = self._prepare_batch(invoices)

    # ── Queries ────────────────────────────────────────────────────────

    def snapshot(self) -> tuple[Invoice, ...]:
        return self._invoices

    def get(self, invoice_id: str) -> Invoice | None:
        for invoice in self._invoices:
            if invoice.id == invoice_id:
                return invoice
        return None

    def require(self, invoice_id: str) -> Invoice:
        invoice = self.get(invoice_id)
        if invoice is None:
            raise NotFoundError(invoice_id)
        return invoice

    def get_total_invoices(self) -> int:
        return len(self._invoices)

    def get_total_potential(self) -> float:
        return sum(invoice.potential for invoice in self._invoices)

    def __len__(self) -> int:
        return len(self._invoices)

    def __iter__(self) -> Iterator[Invoice]:
        return iter(self._invoices)

    def __contains__(self, invoice_id: object) -> bool:
        return any(invoice.id == invoice_id for invoice in self._invoices)

    # ── Commands ───────────────────────────────────────────────────────

    def add_invoice(self, invoice: Invoice) -> Invoice:
        """Validate and insert *invoice* at the head of the collection.

        Raises DuplicateIdError if the id is taken and ValidationError if the
        invoice is malformed. Returns the stored (cleaned) invoice.
        """
        cleaned = self._prepare(invoice)
        with self._lock:
            if cleaned.id in self:
                raise DuplicateIdError(cleaned.id)
            self._invoices = (cleaned,) + self._invoices
            self._notify(MutationKind.ADD, cleaned.id)
        return cleaned

    def remove_invoice(self, invoice_id: str) -> bool:
        """Remove the invoice with *invoice_id*. Absent ids are a no-op."""
        with self._lock:
            remaining = tuple(inv for inv in self._invoices if inv.id != invoice_id)
            if len(remaining) == len(self._invoices):
                return False
            self._invoices = remaining
            self._notify(MutationKind.REMOVE, invoice_id)
        return True

    def set_invoices(self, invoices: Iterable[Invoice]) -> None:
        """Replace the whole collection. The batch is all-or-nothing."""
        prepared = self._prepare_batch(invoices)
        with self._lock:
            self._invoices = prepared
            self._notify(MutationKind.REPLACE)

    def clear_all_invoices(self) -> None:
        with self._lock:
            self._invoices = ()
            self._notify(MutationKind.CLEAR)

    def purge_extraction_failures(self) -> int:
        """Remove invoices whose client name or number is an extraction diagnostic."""
        with self._lock:
            kept = tuple(
                inv for inv in self._invoices
                if not (is_extraction_failure_marker(inv.client.name)
                        or is_extraction_failure_marker(inv.number))
            )
            removed = len(self._invoices) - len(kept)
            if removed:
                logger.warning("Purged %d invoice(s) carrying extraction failures", removed)
                self._invoices = kept
                self._notify(MutationKind.REPLACE)
        return removed

    # ── Observers ──────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ── Internal helpers ───────────────────────────────────────────────

    def _notify(self, kind: MutationKind, invoice_id: str | None = None) -> None:
        event = RepositoryEvent(kind=kind, invoices=self._invoices, invoice_id=invoice_id)
        for listener in list(self._listeners):
            listener(event)

    def _prepare(self, invoice: Invoice) -> Invoice:
        cleaned, dropped = strip_failed_lines(invoice)
        if dropped:
            logger.warning(
                "Invoice %s: dropped %d line(s) carrying extraction failures",
                invoice.number, dropped,
            )
        validate_invoice(cleaned, self._tolerance)
        return cleaned

    def _prepare_batch(self, invoices: Iterable[Invoice]) -> tuple[Invoice, ...]:
        prepared = []
        seen: set[str] = set()
        for invoice in invoices:
            cleaned = self._prepare(invoice)
            if cleaned.id in seen:
                raise DuplicateIdError(cleaned.id)
            seen.add(cleaned.id)
            prepared.append(cleaned)
        return tuple(prepared)
