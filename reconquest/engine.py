"""ReconquestEngine: composition root of the invoice BI core.

Owns the invoice repository, mirrors it into the configured snapshot store and
exposes every read as a pure derivation over the current snapshot. Typical use:

    settings = load_settings()
    with build_engine(settings) as engine:
        engine.add_invoice(invoice)
        engine.get_customer_reconquest_locations()
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from domain.analytics.brands import (
    competitor_share,
    count_competitor_brands,
    get_all_competitor_brands,
    get_product_traceability,
)
from domain.analytics.reconquest import (
    build_customer_profiles,
    get_customer_reconquest_locations,
    regional_opportunities,
)
from domain.analytics.search import search_invoices, sort_invoices
from domain.analytics.stats import compute_dashboard_stats
from domain.models import PlanRequest, StatsBaseline
from domain.normalization import customer_key
from domain.ports import BaselineProvider, GeocodingPort, PlanChannelPort, SnapshotStore
from domain.repository import InvoiceRepository
from reconquest.adapters.outbound.baseline_store import StoredBaselineProvider
from reconquest.adapters.outbound.geocoding import (
    FallbackGeocoder,
    NominatimGeocoder,
    RegionTableGeocoder,
)
from reconquest.adapters.outbound.plan_channel import InMemoryPlanChannel
from reconquest.adapters.outbound.redis_store import (
    InMemorySnapshotStore,
    RedisSnapshotStore,
    connect_redis,
)
from reconquest.adapters.outbound.sqlalchemy_store import SqlAlchemySnapshotStore
from reconquest.analytics import frames
from reconquest.config import Settings
from reconquest.data.brand_matching import FuzzyBrandMatcher
from reconquest.data.db import get_engine
from reconquest.data.persistence import PersistenceManager
from reconquest.data.plans import validate_plan

logger = logging.getLogger(__name__)


class ReconquestEngine:
    """Invoice repository plus its derived views and persistence."""

    def __init__(
        self,
        settings: Settings,
        store: SnapshotStore,
        geocoder: GeocodingPort,
        channel: PlanChannelPort | None = None,
        baseline_provider: BaselineProvider | None = None,
        brand_extractor: Callable[[str], str | None] | None = None,
    ):
        self.settings = settings
        self.store = store
        self.geocoder = geocoder
        self.channel = channel or InMemoryPlanChannel()
        self.baseline_provider = baseline_provider or StoredBaselineProvider(store)
        self.brand_extractor = brand_extractor or FuzzyBrandMatcher(
            settings.known_brands, score_cutoff=settings.fuzzy_cutoff
        )
        self.repository = InvoiceRepository(tolerance=settings.total_tolerance)
        self.persistence = PersistenceManager.from_settings(store, settings)
        self._started = False

    # ── Lifecycle ──────────────────────────────────────────────────────

    def init(self) -> "ReconquestEngine":
        """Attach persistence, restore the stored snapshot, seed a hosted demo."""
        if self._started:
            return self
        self.persistence.attach(self.repository)
        self.persistence.restore(self.repository)
        self.persistence.bootstrap(self.repository)
        self._started = True
        logger.info("Engine ready with %d invoice(s)", len(self.repository))
        return self

    def teardown(self) -> None:
        if not self._started:
            return
        self.persistence.force_save()
        self.persistence.detach()
        self.store.close()
        self._started = False

    def __enter__(self) -> "ReconquestEngine":
        return self.init()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.teardown()

    # ── Ingestion ──────────────────────────────────────────────────────

    def add_invoice(self, invoice):
        validate_plan(invoice.reconquest_plan, invoice.id)
        return self.repository.add_invoice(invoice)

    def remove_invoice(self, invoice_id: str) -> bool:
        return self.repository.remove_invoice(invoice_id)

    def set_invoices(self, invoices: Iterable) -> None:
        invoices = list(invoices)
        for invoice in invoices:
            validate_plan(invoice.reconquest_plan, invoice.id)
        self.repository.set_invoices(invoices)

    def clear_all_invoices(self) -> None:
        self.repository.clear_all_invoices()

    def purge_extraction_failures(self) -> int:
        return self.repository.purge_extraction_failures()

    # ── Queries ────────────────────────────────────────────────────────

    @property
    def invoices(self):
        return self.repository.snapshot()

    def get_invoice(self, invoice_id: str):
        return self.repository.require(invoice_id)

    def get_total_invoices(self) -> int:
        return self.repository.get_total_invoices()

    def get_total_potential(self) -> float:
        return self.repository.get_total_potential()

    def get_all_competitor_brands(self):
        return get_all_competitor_brands(self.invoices, self.brand_extractor)

    def get_competitor_brands_count(self) -> int:
        return count_competitor_brands(self.invoices, self.brand_extractor)

    def get_competitor_share(self, limit: int = 5):
        return competitor_share(self.invoices, self.brand_extractor, limit)

    def get_product_traceability(self, brand: str):
        return get_product_traceability(self.invoices, brand)

    def get_customer_profiles(self):
        return build_customer_profiles(self.invoices, self.settings.thresholds)

    def get_customer_reconquest_locations(self):
        return get_customer_reconquest_locations(
            self.invoices, self.geocoder, self.settings.thresholds
        )

    def get_regional_opportunities(self):
        return regional_opportunities(self.invoices, self.geocoder, self.settings.thresholds)

    def get_dashboard_stats(self, baseline: StatsBaseline | None = None):
        """Headline metrics; trends compare with *baseline* or the stored one."""
        if baseline is None:
            baseline = self.baseline_provider.previous()
        return compute_dashboard_stats(self.invoices, baseline)

    def record_baseline(self) -> StatsBaseline:
        """Store the current figures as the reference for future trends."""
        return self.baseline_provider.record(compute_dashboard_stats(self.invoices))

    def search_invoices(self, term: str):
        return search_invoices(self.invoices, term)

    def sort_invoices(self, field: str = "date", descending: bool = True):
        return sort_invoices(self.invoices, field, descending)

    # ── Frames ─────────────────────────────────────────────────────────

    def brand_rollups_frame(self):
        return frames.brand_rollups_frame(self.invoices, self.brand_extractor)

    def customer_profiles_frame(self):
        return frames.customer_profiles_frame(self.invoices, self.settings.thresholds)

    def monthly_competitor_amounts(self):
        return frames.monthly_competitor_amounts(self.invoices)

    # ── Storage ────────────────────────────────────────────────────────

    def get_storage_info(self):
        return self.persistence.get_storage_info()

    def force_save(self) -> None:
        self.persistence.force_save()

    # ── Plans ──────────────────────────────────────────────────────────

    def subscribe_plans(self, handler) -> Callable[[], None]:
        return self.channel.subscribe(handler)

    def request_customer_plan(self, client_name: str) -> bool:
        """Publish the most recent plan of *client_name*. False if it has none."""
        key = customer_key(client_name)
        for invoice in self.invoices:
            if invoice.reconquest_plan is not None and customer_key(invoice.client.name) == key:
                self.channel.publish(PlanRequest(
                    plan_payload=invoice.reconquest_plan,
                    subject_id=invoice.id,
                    subject_label=invoice.client.name,
                ))
                return True
        logger.info("No reconquest plan for customer %r", client_name)
        return False

    def request_invoice_plan(self, invoice_id: str) -> bool:
        """Publish the plan attached to *invoice_id*. Raises NotFoundError."""
        invoice = self.repository.require(invoice_id)
        if invoice.reconquest_plan is None:
            return False
        self.channel.publish(PlanRequest(
            plan_payload=invoice.reconquest_plan,
            subject_id=invoice.id,
            subject_label=invoice.client.name,
        ))
        return True


def build_store(settings: Settings) -> SnapshotStore:
    """Snapshot store for the configured backend.

    ``redis`` falls back to SQL storage when the server does not answer.
    """
    if settings.storage_backend == "memory":
        return InMemorySnapshotStore()
    if settings.storage_backend == "redis":
        client = connect_redis(settings.redis_url)
        if client is not None:
            return RedisSnapshotStore(client)
    elif settings.storage_backend != "sqlalchemy":
        raise ValueError(f"Unknown storage backend: {settings.storage_backend!r}")
    return SqlAlchemySnapshotStore(get_engine(settings.database_url))


def build_geocoder(settings: Settings) -> GeocodingPort:
    if not settings.geocoding_enabled:
        return RegionTableGeocoder()
    return FallbackGeocoder(
        NominatimGeocoder(
            settings.geocode_cache_path,
            user_agent=settings.geocoding_user_agent,
            timeout=settings.geocoding_timeout,
        ),
        RegionTableGeocoder(),
    )


def build_engine(settings: Settings | None = None) -> ReconquestEngine:
    """Wire an engine from configuration. Call ``init()`` (or use ``with``) before use."""
    if settings is None:
        from reconquest.config import load_settings

        settings = load_settings()
    return ReconquestEngine(
        settings,
        store=build_store(settings),
        geocoder=build_geocoder(settings),
    )
