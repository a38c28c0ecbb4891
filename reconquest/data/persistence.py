"""Persistence manager: write-through snapshot of the invoice repository.

The repository is the source of truth while the process runs. Every mutation
is mirrored into a SnapshotStore under a single key so that a later session
can restore the collection. The snapshot has a byte budget; when the full
collection does not fit, the oldest invoices are left out of the snapshot
(never out of the repository) until it does.

Store failures are logged here and never propagate to the caller of the
mutation that triggered the write.
"""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timezone
from typing import Callable, Iterable

from domain.exceptions import DuplicateIdError, StorageQuotaError, ValidationError
from domain.models import Invoice, StorageInfo
from domain.ports import SnapshotStore
from domain.repository import InvoiceRepository, RepositoryEvent
from domain.validation import strip_failed_lines, validate_invoice
from reconquest.data.demo_data import generate_demo_invoices
from reconquest.data.serialization import (
    encode_invoice,
    encode_snapshot,
    invoice_from_dict,
    loads_snapshot,
)

logger = logging.getLogger(__name__)

STORAGE_KEY = "reconquest-dashboard-v2-storage"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_WARN_RATIO = 0.8


def format_size(size: int) -> str:
    """Human-readable snapshot size: bytes, then KB, then MB."""
    if size > 1024 * 1024:
        return f"{size / 1024 / 1024:.2f} MB"
    if size > 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size} bytes"


def _byte_size(payload: str) -> int:
    return len(payload.encode("utf-8"))


def eviction_order(invoices: tuple[Invoice, ...]) -> list[int]:
    """Indices of *invoices* (newest first) in the order they are evicted.

    Undated invoices go first, then by ascending invoice date; ties are
    broken by insertion order, oldest insertion (highest index) first.
    """
    def key(index: int):
        parsed = invoices[index].parsed_date
        return (parsed is not None, parsed or date.min, -index)

    return sorted(range(len(invoices)), key=key)


class PersistenceManager:
    """Mirrors an InvoiceRepository into a SnapshotStore."""

    def __init__(
        self,
        store: SnapshotStore,
        key: str = STORAGE_KEY,
        max_bytes: int = DEFAULT_MAX_BYTES,
        warn_ratio: float = DEFAULT_WARN_RATIO,
        is_local: bool = True,
        demo_factory: Callable[[], Iterable[Invoice]] | None = None,
        tolerance: float = 0.01,
    ):
        self._store = store
        self._key = key
        self._max_bytes = max_bytes
        self._warn_ratio = warn_ratio
        self._is_local = is_local
        self._demo_factory = demo_factory or generate_demo_invoices
        self._tolerance = tolerance

        self._lock = threading.Lock()
        self._repository: InvoiceRepository | None = None
        self._unsubscribe: Callable[[], None] | None = None
        # invoice id -> (invoice object, encoded JSON); invoices are immutable
        # once stored, so identity tells whether the encoding is stale.
        self._encoded: dict[str, tuple[Invoice, str]] = {}

        self._bytes_used = 0
        self._item_count = 0
        self._evicted_count = 0
        self._last_saved: datetime | None = None
        self._is_loaded = False
        # True only when the store held no snapshot or an empty one.
        self._can_seed = False

    @classmethod
    def from_settings(cls, store: SnapshotStore, settings) -> "PersistenceManager":
        return cls(
            store,
            key=settings.storage_key,
            max_bytes=settings.max_bytes,
            warn_ratio=settings.warn_ratio,
            is_local=settings.is_local,
            demo_factory=lambda: generate_demo_invoices(
                settings.demo_invoice_count, seed=settings.demo_seed
            ),
            tolerance=settings.total_tolerance,
        )

    @property
    def backup_key(self) -> str:
        return f"{self._key}-backup"

    # ── Wiring ─────────────────────────────────────────────────────────

    def attach(self, repository: InvoiceRepository) -> None:
        """Start mirroring every mutation of *repository* into the store."""
        self.detach()
        self._repository = repository
        self._unsubscribe = repository.subscribe(self._on_mutation)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._unsubscribe = None
        self._repository = None

    # ── Loading ────────────────────────────────────────────────────────

    def load_records(self) -> list[Invoice]:
        """Decode the stored snapshot into valid invoices.

        Records that fail validation, or repeat an id already seen, are
        skipped with a warning. A missing or undecodable snapshot yields [].
        A payload that cannot be restored in full is copied under the backup
        key first, since the next write-through replaces it.
        """
        self._can_seed = False
        try:
            payload = self._store.get(self._key)
        except Exception:
            logger.exception("Could not read snapshot %r", self._key)
            return []
        if payload is None:
            self._can_seed = True
            return []
        try:
            records, saved_at = loads_snapshot(payload)
        except ValueError as exc:
            logger.error("Snapshot %r is unreadable, ignoring it: %s", self._key, exc)
            self._backup(payload)
            return []

        invoices: list[Invoice] = []
        seen: set[str] = set()
        for position, record in enumerate(records):
            try:
                invoice, _ = strip_failed_lines(invoice_from_dict(record))
                validate_invoice(invoice, self._tolerance)
                if invoice.id in seen:
                    raise DuplicateIdError(invoice.id)
            except (ValidationError, DuplicateIdError, TypeError) as exc:
                logger.warning("Skipping stored invoice #%d: %s", position, exc)
                continue
            seen.add(invoice.id)
            invoices.append(invoice)

        if len(invoices) < len(records):
            self._backup(payload)
        self._can_seed = not records
        self._last_saved = saved_at
        return invoices

    def _backup(self, payload: str) -> None:
        try:
            self._store.set(self.backup_key, payload)
        except Exception:
            logger.exception("Could not back up snapshot %r", self._key)
        else:
            logger.warning("Previous snapshot kept under %r", self.backup_key)

    def restore(self, repository: InvoiceRepository) -> int:
        """Replace the contents of *repository* with the stored snapshot.

        Returns the number of invoices restored.
        """
        invoices = self.load_records()
        if invoices:
            repository.set_invoices(invoices)
        self._is_loaded = True
        logger.info("Restored %d invoice(s) from %r", len(invoices), self._key)
        return len(invoices)

    def bootstrap(self, repository: InvoiceRepository) -> bool:
        """Load the demonstration dataset into an empty, hosted repository.

        Local deployments always start from whatever was restored, even
        nothing. A snapshot that was unreadable or could not be read is never
        replaced by demo data. Returns True when demo data was loaded.
        """
        if self._is_local or len(repository):
            return False
        if not self._can_seed:
            logger.warning("Stored snapshot %r was not restored, demo data not loaded", self._key)
            return False
        demo = list(self._demo_factory())
        repository.set_invoices(demo)
        logger.info("Loaded %d demonstration invoice(s)", len(demo))
        return True

    # ── Saving ─────────────────────────────────────────────────────────

    def force_save(self) -> None:
        """Write the attached repository to the store immediately."""
        if self._repository is None:
            logger.warning("force_save called with no repository attached")
            return
        self._save(self._repository.snapshot())

    def _on_mutation(self, event: RepositoryEvent) -> None:
        self._save(event.invoices)

    def _save(self, invoices: tuple[Invoice, ...]) -> None:
        with self._lock:
            try:
                self._write(invoices)
            except Exception:
                logger.exception("Snapshot write to %r failed", self._key)

    def _encode(self, invoice: Invoice) -> str:
        cached = self._encoded.get(invoice.id)
        if cached is not None and cached[0] is invoice:
            return cached[1]
        encoded = encode_invoice(invoice)
        self._encoded[invoice.id] = (invoice, encoded)
        return encoded

    def _put(self, payload: str) -> int:
        size = _byte_size(payload)
        if size > self._max_bytes:
            raise StorageQuotaError(size, self._max_bytes)
        self._store.set(self._key, payload)
        return size

    def _write(self, invoices: tuple[Invoice, ...]) -> None:
        live_ids = {inv.id for inv in invoices}
        for stale in set(self._encoded) - live_ids:
            del self._encoded[stale]

        saved_at = datetime.now(timezone.utc)
        encoded = [self._encode(inv) for inv in invoices]
        kept = len(invoices)
        try:
            size = self._put(encode_snapshot(encoded, saved_at))
        except StorageQuotaError as exc:
            logger.warning("%s; leaving the oldest invoices out of the snapshot", exc)
            encoded = self._fit(invoices, encoded, saved_at)
            if encoded is None:
                logger.error("Even an empty snapshot exceeds %d bytes, write skipped",
                             self._max_bytes)
                # The store still holds the previous snapshot, none of the current invoices.
                self._bytes_used = 0
                self._item_count = 0
                self._evicted_count = len(invoices)
                return
            kept = len(encoded)
            size = self._put(encode_snapshot(encoded, saved_at))

        self._bytes_used = size
        self._item_count = kept
        self._evicted_count = len(invoices) - kept
        self._last_saved = saved_at
        if size >= self._warn_ratio * self._max_bytes:
            logger.warning("Snapshot uses %s of %s", format_size(size), format_size(self._max_bytes))

    def _fit(self, invoices, encoded, saved_at) -> list[str] | None:
        """Encoded invoices that fit the budget after oldest-first eviction."""
        envelope = _byte_size(encode_snapshot([], saved_at))
        if envelope > self._max_bytes:
            return None
        sizes = [_byte_size(e) for e in encoded]
        kept = set(range(len(encoded)))

        def snapshot_size() -> int:
            # Records are separated by one comma each.
            return envelope + sum(sizes[i] for i in kept) + max(len(kept) - 1, 0)

        total = snapshot_size()
        for index in eviction_order(tuple(invoices)):
            if total <= self._max_bytes:
                break
            kept.discard(index)
            total = snapshot_size()
        return [e for i, e in enumerate(encoded) if i in kept]

    # ── Reporting ──────────────────────────────────────────────────────

    def get_storage_info(self) -> StorageInfo:
        total = len(self._repository) if self._repository is not None else self._item_count
        ratio = self._bytes_used / self._max_bytes if self._max_bytes else 0.0
        return StorageInfo(
            bytes_used=self._bytes_used,
            item_count=self._item_count,
            total_invoices=total,
            max_bytes=self._max_bytes,
            usage_ratio=ratio,
            near_limit=ratio >= self._warn_ratio,
            exceeded=self._evicted_count > 0,
            evicted_count=self._evicted_count,
            formatted_size=format_size(self._bytes_used),
            last_saved=self._last_saved,
            is_loaded=self._is_loaded,
        )
