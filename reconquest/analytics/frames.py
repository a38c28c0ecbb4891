"""Presentation frames -- pandas facade over domain/analytics.

Dashboards and reports consume DataFrames; the figures themselves are
computed by the pure functions in ``domain.analytics`` (brands, reconquest)
and only reshaped here.
"""

import pandas as pd

from domain.analytics.brands import get_all_competitor_brands, get_product_traceability
from domain.analytics.reconquest import DEFAULT_THRESHOLDS, build_customer_profiles
from domain.normalization import brand_token

INVOICE_COLUMNS = [
    "id", "number", "date", "client", "distributor", "region",
    "amount", "potential", "competitor_amount", "line_count", "has_plan",
]


def invoices_frame(invoices) -> pd.DataFrame:
    """One row per invoice with its competitor share of the amount."""
    rows = [
        (
            inv.id,
            inv.number,
            inv.date,
            inv.client.name,
            inv.distributor.name,
            inv.region,
            inv.amount,
            inv.potential,
            sum(p.total_price for p in inv.products if p.is_competitor),
            len(inv.products),
            inv.reconquest_plan is not None,
        )
        for inv in invoices
    ]
    df = pd.DataFrame(rows, columns=INVOICE_COLUMNS)
    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    return df


def brand_rollups_frame(invoices, extract_brand=brand_token) -> pd.DataFrame:
    """Competitor brands ranked by total amount, with their share in percent."""
    rollups = get_all_competitor_brands(invoices, extract_brand)
    df = pd.DataFrame(
        [(r.brand, r.total, r.invoice_count) for r in rollups],
        columns=["brand", "total", "invoice_count"],
    )
    grand_total = df["total"].sum()
    df["share_pct"] = (df["total"] / grand_total * 100).round(1) if grand_total else 0.0
    return df


def customer_profiles_frame(invoices, thresholds=DEFAULT_THRESHOLDS) -> pd.DataFrame:
    profiles = build_customer_profiles(invoices, thresholds)
    return pd.DataFrame(
        [
            (
                p.client_name,
                p.region,
                p.competitor_amount,
                p.reconquest_potential,
                p.priority.value,
                p.last_purchase_date,
                p.has_reconquest_plan,
                p.invoice_count,
            )
            for p in profiles
        ],
        columns=[
            "client", "region", "competitor_amount", "reconquest_potential",
            "priority", "last_purchase_date", "has_plan", "invoice_count",
        ],
    )


def traceability_frame(invoices, brand: str) -> pd.DataFrame:
    """Every competitor line matching *brand*, newest invoice first."""
    trace = get_product_traceability(invoices, brand)
    df = pd.DataFrame(
        [
            (
                line.invoice_number,
                line.invoice_date,
                line.client_name,
                line.product_designation,
                line.product_reference,
                line.quantity,
                line.unit_price,
                line.total_price,
                line.matched_by,
            )
            for line in trace.lines
        ],
        columns=[
            "invoice_number", "invoice_date", "client", "designation",
            "reference", "quantity", "unit_price", "total_price", "matched_by",
        ],
    )
    df["invoice_date"] = pd.to_datetime(df["invoice_date"], errors="coerce")
    return df.sort_values("invoice_date", ascending=False, ignore_index=True)


def monthly_competitor_amounts(invoices) -> pd.DataFrame:
    """Competitor amount per month, for trend charts."""
    df = invoices_frame(invoices).dropna(subset=["date"])
    if df.empty:
        return pd.DataFrame(columns=["month", "competitor_amount", "invoice_count"])
    df["month"] = df["date"].dt.to_period("M").astype(str)
    return (
        df.groupby("month")
        .agg(competitor_amount=("competitor_amount", "sum"), invoice_count=("id", "count"))
        .reset_index()
        .sort_values("month", ignore_index=True)
    )
