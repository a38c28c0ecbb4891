"""Domain models: pure Python, zero external dependencies.

Only stdlib imports allowed: dataclasses, datetime, enum.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any


class ProductType(Enum):
    """Who manufactured a purchased line item."""

    COMPETITOR = "competitor"
    SOPREMA = "soprema"


class InvoiceStatus(Enum):
    """Processing status of an invoice."""

    ANALYZED = "analyzed"
    PENDING = "pending"
    PROCESSING = "processing"


class Priority(Enum):
    """Reconquest priority tier of a customer."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TrendDirection(Enum):
    UP = "up"
    DOWN = "down"


class PlanKind(Enum):
    """Kind of AI-generated action plan attached to an invoice."""

    CUSTOMER_PLAN = "customerPlan"
    REGION_PLAN = "regionPlan"


# ── Value Objects ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class Client:
    name: str
    full_name: str = ""
    address: str = ""
    siret: str | None = None
    contact: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class Distributor:
    name: str
    agency: str = ""
    seller: str | None = None


@dataclass(frozen=True)
class CompetitorInfo:
    brand: str
    category: str = ""


@dataclass(frozen=True)
class VerificationDetails:
    """Extraction confidence for a line item (0..1)."""

    confidence: float
    reclassified: bool | None = None


@dataclass(frozen=True)
class PlanPayload:
    """Opaque AI plan. Only ``kind`` is interpreted by the engine."""

    kind: PlanKind
    raw: Any = None


# ── Entities ────────────────────────────────────────────────────────────


@dataclass
class Product:
    """A purchased line item on an invoice."""

    reference: str
    designation: str
    quantity: float
    unit_price: float
    total_price: float
    type: ProductType
    brand: str | None = None
    competitor: CompetitorInfo | None = None
    verification_details: VerificationDetails | None = None

    @property
    def is_competitor(self) -> bool:
        return self.type is ProductType.COMPETITOR


@dataclass
class Invoice:
    """A distributor invoice and its line items.

    ``date`` stays an ISO ``YYYY-MM-DD`` string as received from the
    extraction pipeline; use :attr:`parsed_date` for comparisons.
    """

    id: str
    number: str
    date: str
    client: Client
    distributor: Distributor
    amount: float
    potential: float
    products: list[Product] = field(default_factory=list)
    status: InvoiceStatus = InvoiceStatus.ANALYZED
    region: str | None = None
    reconquest_plan: PlanPayload | None = None

    @property
    def parsed_date(self) -> date | None:
        try:
            return date.fromisoformat(self.date)
        except (ValueError, TypeError):
            return None


# ── Result Value Objects ────────────────────────────────────────────────


@dataclass(frozen=True)
class CustomerProfile:
    """Read-only reconquest profile of one customer."""

    client_name: str
    address: str
    region: str | None
    competitor_amount: float
    reconquest_potential: float
    priority: Priority
    last_purchase_date: str | None
    has_reconquest_plan: bool
    invoice_count: int
    total_amount: float


@dataclass(frozen=True)
class CustomerLocation:
    """A customer profile with resolved coordinates, ready for a map."""

    id: str
    lat: float
    lng: float
    profile: CustomerProfile

    @property
    def client_name(self) -> str:
        return self.profile.client_name

    @property
    def competitor_amount(self) -> float:
        return self.profile.competitor_amount

    @property
    def priority(self) -> Priority:
        return self.profile.priority


@dataclass(frozen=True)
class BrandRollup:
    """Aggregated competitor spend for one brand."""

    brand: str
    total: float
    invoice_count: int


@dataclass(frozen=True)
class TraceabilityLine:
    """One competitor line item with the invoice context needed for an audit."""

    invoice_id: str
    invoice_number: str
    invoice_date: str
    client_name: str
    product_designation: str
    product_reference: str
    quantity: float
    unit_price: float
    total_price: float
    matched_by: str


@dataclass(frozen=True)
class ProductTraceability:
    brand: str
    lines: tuple[TraceabilityLine, ...]
    total_amount: float


@dataclass(frozen=True)
class CompetitorShare:
    """Share of competitor spend held by one brand (percentage is 0..100)."""

    name: str
    amount: float
    percentage: int


@dataclass(frozen=True)
class RegionalOpportunity:
    id: str
    region: str
    lat: float
    lng: float
    amount: float
    size: str
    clients: int
    reconquest_plan: PlanPayload | None = None


@dataclass(frozen=True)
class Metric:
    value: float
    trend: float = 0.0
    trend_direction: TrendDirection = TrendDirection.UP


@dataclass(frozen=True)
class DashboardStats:
    invoices_analyzed: Metric
    clients_identified: Metric
    business_potential: Metric


@dataclass(frozen=True)
class StatsBaseline:
    """Prior observation used to compute dashboard trends."""

    invoices_analyzed: float | None = None
    clients_identified: float | None = None
    business_potential: float | None = None
    recorded_at: datetime | None = None


@dataclass(frozen=True)
class StorageInfo:
    """Usage report of the persisted invoice snapshot."""

    bytes_used: int
    item_count: int
    total_invoices: int
    max_bytes: int
    usage_ratio: float
    near_limit: bool
    exceeded: bool
    evicted_count: int
    formatted_size: str
    last_saved: datetime | None
    is_loaded: bool


@dataclass(frozen=True)
class PlanRequest:
    """Broadcast asking listeners to show an action plan."""

    plan_payload: PlanPayload
    subject_id: str
    subject_label: str
