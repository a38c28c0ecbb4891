"""Customer reconquest profiling: pure functions, zero external dependencies.

Only stdlib and domain imports allowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from domain.models import (
    CustomerLocation,
    CustomerProfile,
    Priority,
    RegionalOpportunity,
)
from domain.normalization import (
    customer_key,
    is_extraction_failure_marker,
    is_failed_line,
    slugify,
)

logger = logging.getLogger(__name__)

# Share of competitor spend assumed convertible to the vendor's own lines.
CONVERSION_RATE = 0.70
HIGH_PRIORITY_THRESHOLD = 50_000
MEDIUM_PRIORITY_THRESHOLD = 20_000
LARGE_REGION_THRESHOLD = 150_000
MEDIUM_REGION_THRESHOLD = 80_000
DEFAULT_REGION = "France"


@dataclass(frozen=True)
class ReconquestThresholds:
    """Classification constants, overridable from configuration."""

    high: float = HIGH_PRIORITY_THRESHOLD
    medium: float = MEDIUM_PRIORITY_THRESHOLD
    conversion_rate: float = CONVERSION_RATE
    min_competitor_amount: float = 0.0
    large_region: float = LARGE_REGION_THRESHOLD
    medium_region: float = MEDIUM_REGION_THRESHOLD


DEFAULT_THRESHOLDS = ReconquestThresholds()


def classify_priority(competitor_amount: float,
                      thresholds: ReconquestThresholds = DEFAULT_THRESHOLDS) -> Priority:
    if competitor_amount >= thresholds.high:
        return Priority.HIGH
    if competitor_amount >= thresholds.medium:
        return Priority.MEDIUM
    return Priority.LOW


def _group_by_customer(invoices):
    """Group invoices by customer key, keeping the first spelling seen."""
    groups: dict[str, tuple[str, list]] = {}
    for invoice in invoices:
        name = invoice.client.name
        if not isinstance(name, str) or not name.strip():
            continue
        if is_extraction_failure_marker(name):
            logger.debug("Skipping invoice %s: client name is an extraction diagnostic", invoice.id)
            continue
        key = customer_key(name)
        if key not in groups:
            groups[key] = (name.strip(), [])
        groups[key][1].append(invoice)
    return groups


def count_identified_customers(invoices) -> int:
    """Number of distinct customers, extraction diagnostics excluded."""
    return len(_group_by_customer(invoices))


def _profile(name, invoices, thresholds):
    competitor_amount = sum(
        product.total_price
        for invoice in invoices
        for product in invoice.products
        if product.is_competitor and not is_failed_line(product)
    )
    dated = [inv for inv in invoices if inv.parsed_date is not None]
    dated.sort(key=lambda inv: inv.parsed_date, reverse=True)
    last_purchase = dated[0].date if dated else None

    address = ""
    for invoice in dated + [inv for inv in invoices if inv.parsed_date is None]:
        if invoice.client.address and invoice.client.address.strip():
            address = invoice.client.address.strip()
            break
    region = next((inv.region for inv in invoices if inv.region), None)

    return CustomerProfile(
        client_name=name,
        address=address,
        region=region,
        competitor_amount=competitor_amount,
        reconquest_potential=competitor_amount * thresholds.conversion_rate,
        priority=classify_priority(competitor_amount, thresholds),
        last_purchase_date=last_purchase,
        has_reconquest_plan=any(inv.reconquest_plan is not None for inv in invoices),
        invoice_count=len(invoices),
        total_amount=sum(inv.amount for inv in invoices),
    )


def build_customer_profiles(invoices, thresholds=DEFAULT_THRESHOLDS):
    """One profile per distinct customer, biggest competitor spend first."""
    profiles = [
        _profile(name, group, thresholds)
        for name, group in _group_by_customer(invoices).values()
    ]
    profiles.sort(key=lambda p: (-p.competitor_amount, p.client_name))
    return profiles


def _safe_geocode(geocoder, query):
    if not query:
        return None
    try:
        return geocoder.geocode(query)
    except Exception:
        logger.warning("Geocoding failed for %r", query, exc_info=True)
        return None


def get_customer_reconquest_locations(invoices, geocoder, thresholds=DEFAULT_THRESHOLDS):
    """Geolocated customer profiles for the reconquest map.

    Coordinates come from the client address, then from the invoice region.
    Customers that cannot be placed are left out of the list only.
    """
    locations = []
    for profile in build_customer_profiles(invoices, thresholds):
        if profile.competitor_amount < thresholds.min_competitor_amount:
            continue
        coords = _safe_geocode(geocoder, profile.address) or _safe_geocode(geocoder, profile.region)
        if coords is None:
            logger.info("No coordinates for customer %r, left off the map", profile.client_name)
            continue
        lat, lng = coords
        locations.append(CustomerLocation(
            id=f"client-{slugify(profile.client_name)}",
            lat=lat,
            lng=lng,
            profile=profile,
        ))
    return locations


def _region_size(amount, thresholds):
    if amount > thresholds.large_region:
        return "large"
    if amount > thresholds.medium_region:
        return "medium"
    return "small"


def regional_opportunities(invoices, geocoder, thresholds=DEFAULT_THRESHOLDS):
    """Potential rolled up per region, with the first plan found in each."""
    regions: dict[str, dict] = {}
    for invoice in invoices:
        if is_extraction_failure_marker(invoice.client.name):
            continue
        region = invoice.region or DEFAULT_REGION
        entry = regions.setdefault(region, {"amount": 0.0, "clients": set(), "plan": None})
        entry["amount"] += invoice.potential
        entry["clients"].add(customer_key(invoice.client.name))
        if entry["plan"] is None and invoice.reconquest_plan is not None:
            entry["plan"] = invoice.reconquest_plan

    results = []
    for region, entry in regions.items():
        coords = _safe_geocode(geocoder, region) or _safe_geocode(geocoder, DEFAULT_REGION)
        if coords is None:
            continue
        results.append(RegionalOpportunity(
            id=f"region-{region}",
            region=region,
            lat=coords[0],
            lng=coords[1],
            amount=entry["amount"],
            size=_region_size(entry["amount"], thresholds),
            clients=len(entry["clients"]),
            reconquest_plan=entry["plan"],
        ))
    results.sort(key=lambda r: (-r.amount, r.region))
    return results
