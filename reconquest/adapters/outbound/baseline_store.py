"""BaselineProvider adapter keeping the last recorded dashboard figures in a SnapshotStore."""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timezone

from domain.models import DashboardStats, StatsBaseline
from domain.ports import BaselineProvider, SnapshotStore

logger = logging.getLogger(__name__)

BASELINE_KEY = "dashboard-baseline"


def _number(value):
    """*value* if it is a plain number, else None (no trend for that metric)."""
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        return value
    return None


class StoredBaselineProvider(BaselineProvider):
    """Trend baseline persisted as a small JSON document.

    ``record`` overwrites the previous baseline: trends always compare with
    the most recent observation that was explicitly recorded.
    """

    def __init__(self, store: SnapshotStore, key: str = BASELINE_KEY):
        self._store = store
        self._key = key

    def previous(self) -> StatsBaseline | None:
        try:
            raw = self._store.get(self._key)
        except Exception:
            logger.exception("Could not read baseline %r", self._key)
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            recorded_at = data.get("recordedAt")
            return StatsBaseline(
                invoices_analyzed=_number(data.get("invoicesAnalyzed")),
                clients_identified=_number(data.get("clientsIdentified")),
                business_potential=_number(data.get("businessPotential")),
                recorded_at=datetime.fromisoformat(recorded_at) if recorded_at else None,
            )
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Ignoring unreadable baseline %r: %s", self._key, exc)
            return None

    def record(self, stats: DashboardStats) -> StatsBaseline:
        baseline = StatsBaseline(
            invoices_analyzed=stats.invoices_analyzed.value,
            clients_identified=stats.clients_identified.value,
            business_potential=stats.business_potential.value,
            recorded_at=datetime.now(timezone.utc),
        )
        self._store.set(self._key, json.dumps({
            "invoicesAnalyzed": baseline.invoices_analyzed,
            "clientsIdentified": baseline.clients_identified,
            "businessPotential": baseline.business_potential,
            "recordedAt": baseline.recorded_at.isoformat(),
        }))
        return baseline
