"""Domain ports: abstract interfaces for storage, geocoding and messaging.

Only stdlib (abc) and domain.models imports allowed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from domain.models import DashboardStats, PlanRequest, StatsBaseline


# ── Infrastructure Ports ──────────────────────────────────────────────────


class SnapshotStore(ABC):
    """Port for a durable key-value store holding serialized snapshots."""

    @abstractmethod
    def get(self, key: str) -> str | None: ...

    @abstractmethod
    def set(self, key: str, payload: str) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...

    def close(self) -> None:
        """Release connections held by the store."""


class GeocodingPort(ABC):
    """Port for resolving an address or place name to (latitude, longitude)."""

    @abstractmethod
    def geocode(self, address: str) -> tuple[float, float] | None: ...


class PlanChannelPort(ABC):
    """Port for the fire-and-forget "show me the plan" broadcast."""

    @abstractmethod
    def publish(self, request: PlanRequest) -> None: ...

    @abstractmethod
    def subscribe(self, handler: Callable[[PlanRequest], None]) -> Callable[[], None]: ...


# ── Service Ports ─────────────────────────────────────────────────────────


class BaselineProvider(ABC):
    """Port supplying the prior observation dashboard trends compare against."""

    @abstractmethod
    def previous(self) -> StatsBaseline | None: ...

    @abstractmethod
    def record(self, stats: DashboardStats) -> StatsBaseline: ...
