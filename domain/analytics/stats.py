"""Dashboard headline metrics: pure functions, zero external dependencies.

Only stdlib and domain imports allowed.
"""

from __future__ import annotations

from domain.analytics.reconquest import count_identified_customers
from domain.models import DashboardStats, Metric, StatsBaseline, TrendDirection


def compute_trend(current, previous):
    """Percentage change from *previous* to *current* and its direction.

    Without a baseline the trend is flat (0, up). A zero baseline gives 0 if
    nothing changed and 100 otherwise.
    """
    if previous is None:
        return 0.0, TrendDirection.UP
    if previous == 0:
        return (0.0 if current == 0 else 100.0), TrendDirection.UP
    trend = (current - previous) / previous * 100
    direction = TrendDirection.UP if current >= previous else TrendDirection.DOWN
    return trend, direction


def _metric(current, previous):
    trend, direction = compute_trend(current, previous)
    return Metric(value=current, trend=trend, trend_direction=direction)


def compute_dashboard_stats(invoices, baseline: StatsBaseline | None = None) -> DashboardStats:
    """The three dashboard metrics, compared against an injected *baseline*."""
    baseline = baseline or StatsBaseline()
    return DashboardStats(
        invoices_analyzed=_metric(len(invoices), baseline.invoices_analyzed),
        clients_identified=_metric(count_identified_customers(invoices), baseline.clients_identified),
        business_potential=_metric(sum(inv.potential for inv in invoices), baseline.business_potential),
    )
