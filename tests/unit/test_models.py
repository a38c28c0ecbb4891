"""Tests for domain.models — pure dataclass domain models."""

from dataclasses import FrozenInstanceError
from datetime import date

import pytest

from domain.models import (
    Client,
    CompetitorInfo,
    CustomerLocation,
    CustomerProfile,
    Distributor,
    Invoice,
    InvoiceStatus,
    Metric,
    PlanKind,
    PlanPayload,
    Priority,
    Product,
    ProductType,
    StatsBaseline,
    TrendDirection,
)


def _invoice(**overrides):
    fields = dict(
        id="inv-1",
        number="FA-2025-0001",
        date="2025-03-14",
        client=Client(name="Dupont Toitures"),
        distributor=Distributor(name="Point.P"),
        amount=100.0,
        potential=115.0,
    )
    fields.update(overrides)
    return Invoice(**fields)


class TestProduct:
    def test_competitor_flag(self):
        line = Product("R1", "IKO BASE", 1, 10.0, 10.0, ProductType.COMPETITOR)
        assert line.is_competitor

    def test_vendor_line_is_not_competitor(self):
        line = Product("R1", "SOPRALENE", 1, 10.0, 10.0, ProductType.SOPREMA)
        assert not line.is_competitor

    def test_optional_fields_default_to_none(self):
        line = Product("R1", "SOPRALENE", 1, 10.0, 10.0, ProductType.SOPREMA)
        assert line.brand is None
        assert line.competitor is None
        assert line.verification_details is None


class TestInvoice:
    def test_defaults(self):
        inv = _invoice()
        assert inv.products == []
        assert inv.status is InvoiceStatus.ANALYZED
        assert inv.region is None
        assert inv.reconquest_plan is None

    def test_parsed_date(self):
        assert _invoice().parsed_date == date(2025, 3, 14)

    @pytest.mark.parametrize("raw", ["14/03/2025", "", None, "2025-13-01"])
    def test_parsed_date_invalid(self, raw):
        assert _invoice(date=raw).parsed_date is None

    def test_products_list_not_shared(self):
        a, b = _invoice(), _invoice()
        a.products.append(Product("R1", "X", 1, 1.0, 1.0, ProductType.SOPREMA))
        assert b.products == []


class TestValueObjects:
    def test_client_is_frozen(self):
        client = Client(name="Dupont")
        with pytest.raises(FrozenInstanceError):
            client.name = "Other"

    def test_competitor_info_defaults(self):
        assert CompetitorInfo(brand="IKO").category == ""

    def test_plan_payload_keeps_raw_opaque(self):
        plan = PlanPayload(kind=PlanKind.REGION_PLAN, raw="free text")
        assert plan.raw == "free text"
        assert PlanKind("customerPlan") is PlanKind.CUSTOMER_PLAN


class TestResults:
    def test_customer_location_proxies_profile(self):
        profile = CustomerProfile(
            client_name="Dupont", address="Lyon", region=None,
            competitor_amount=60_000.0, reconquest_potential=42_000.0,
            priority=Priority.HIGH, last_purchase_date="2025-03-14",
            has_reconquest_plan=False, invoice_count=1, total_amount=60_000.0,
        )
        location = CustomerLocation(id="client-dupont", lat=45.76, lng=4.83, profile=profile)
        assert location.client_name == "Dupont"
        assert location.competitor_amount == 60_000.0
        assert location.priority is Priority.HIGH

    def test_metric_defaults_to_flat_trend(self):
        metric = Metric(value=3)
        assert metric.trend == 0.0
        assert metric.trend_direction is TrendDirection.UP

    def test_empty_baseline(self):
        baseline = StatsBaseline()
        assert baseline.invoices_analyzed is None
        assert baseline.recorded_at is None
