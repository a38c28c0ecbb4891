"""JSON wire format of the persisted invoice snapshot.

Field names follow the dashboard's original camelCase layout so snapshots
written by earlier versions stay readable:

    {"version": 2, "savedAt": "2025-06-11T21:10:26+00:00", "invoices": [...]}

Version 1 snapshots were a bare list of invoices.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from domain.exceptions import ValidationError
from domain.models import (
    Client,
    CompetitorInfo,
    Distributor,
    Invoice,
    InvoiceStatus,
    PlanKind,
    PlanPayload,
    Product,
    ProductType,
    VerificationDetails,
)

SNAPSHOT_VERSION = 2


def _drop_none(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


def plan_to_dict(plan: PlanPayload | None) -> dict | None:
    if plan is None:
        return None
    return {"kind": plan.kind.value, "raw": plan.raw}


def plan_from_dict(data) -> PlanPayload | None:
    """Tagged payloads keep their kind; legacy untagged plans are customer plans."""
    if data is None:
        return None
    if isinstance(data, dict) and set(data) == {"kind", "raw"}:
        try:
            return PlanPayload(kind=PlanKind(data["kind"]), raw=data["raw"])
        except ValueError:
            pass
    return PlanPayload(kind=PlanKind.CUSTOMER_PLAN, raw=data)


def product_to_dict(product: Product) -> dict:
    data = {
        "reference": product.reference,
        "designation": product.designation,
        "quantity": product.quantity,
        "unitPrice": product.unit_price,
        "totalPrice": product.total_price,
        "type": product.type.value,
        "brand": product.brand,
    }
    if product.competitor is not None:
        data["competitor"] = {"brand": product.competitor.brand, "category": product.competitor.category}
    if product.verification_details is not None:
        data["verificationDetails"] = _drop_none({
            "confidence": product.verification_details.confidence,
            "reclassified": product.verification_details.reclassified,
        })
    return _drop_none(data)


def invoice_to_dict(invoice: Invoice) -> dict:
    client = invoice.client
    distributor = invoice.distributor
    return _drop_none({
        "id": invoice.id,
        "number": invoice.number,
        "date": invoice.date,
        "client": _drop_none({
            "name": client.name,
            "fullName": client.full_name,
            "address": client.address,
            "siret": client.siret,
            "contact": client.contact,
            "phone": client.phone,
        }),
        "distributor": _drop_none({
            "name": distributor.name,
            "agency": distributor.agency,
            "seller": distributor.seller,
        }),
        "amount": invoice.amount,
        "potential": invoice.potential,
        "products": [product_to_dict(p) for p in invoice.products],
        "status": invoice.status.value,
        "region": invoice.region,
        "reconquestPlan": plan_to_dict(invoice.reconquest_plan),
    })


def product_from_dict(data: dict, invoice_id: str | None = None) -> Product:
    try:
        product_type = ProductType(data.get("type"))
    except ValueError:
        raise ValidationError(f"unknown product type {data.get('type')!r}", "type", invoice_id) from None
    competitor = data.get("competitor")
    details = data.get("verificationDetails")
    return Product(
        reference=data.get("reference") or "",
        designation=data.get("designation") or "",
        quantity=data.get("quantity"),
        unit_price=data.get("unitPrice"),
        total_price=data.get("totalPrice"),
        type=product_type,
        brand=data.get("brand"),
        competitor=CompetitorInfo(
            brand=competitor.get("brand") or "",
            category=competitor.get("category") or "",
        ) if isinstance(competitor, dict) else None,
        verification_details=VerificationDetails(
            confidence=details.get("confidence"),
            reclassified=details.get("reclassified"),
        ) if isinstance(details, dict) else None,
    )


def invoice_from_dict(data: dict) -> Invoice:
    """Rebuild an Invoice from its wire form. Raises ValidationError on bad shape."""
    if not isinstance(data, dict):
        raise ValidationError("invoice record is not an object")
    invoice_id = data.get("id")
    client = data.get("client")
    if isinstance(client, str):
        client = {"name": client}
    if not isinstance(client, dict):
        raise ValidationError("missing client", "client", invoice_id)
    distributor = data.get("distributor") or {}
    if isinstance(distributor, str):
        distributor = {"name": distributor}
    if not isinstance(distributor, dict):
        raise ValidationError("distributor is not an object", "distributor", invoice_id)
    try:
        status = InvoiceStatus(data.get("status", InvoiceStatus.ANALYZED.value))
    except ValueError:
        raise ValidationError(f"unknown status {data.get('status')!r}", "status", invoice_id) from None
    return Invoice(
        id=invoice_id,
        number=data.get("number"),
        date=data.get("date"),
        client=Client(
            name=client.get("name") or "",
            full_name=client.get("fullName") or "",
            address=client.get("address") or "",
            siret=client.get("siret"),
            contact=client.get("contact"),
            phone=client.get("phone"),
        ),
        distributor=Distributor(
            name=distributor.get("name") or "",
            agency=distributor.get("agency") or "",
            seller=distributor.get("seller"),
        ),
        amount=data.get("amount"),
        potential=data.get("potential"),
        products=[product_from_dict(p, invoice_id) for p in data.get("products") or []
                  if isinstance(p, dict)],
        status=status,
        region=data.get("region"),
        reconquest_plan=plan_from_dict(data.get("reconquestPlan")),
    )


def encode_invoice(invoice: Invoice) -> str:
    return json.dumps(invoice_to_dict(invoice), ensure_ascii=False, separators=(",", ":"))


def encode_snapshot(encoded_invoices: list[str], saved_at: datetime | None = None) -> str:
    """Assemble a snapshot from already-encoded invoices."""
    saved_at = saved_at or datetime.now(timezone.utc)
    head = json.dumps(
        {"version": SNAPSHOT_VERSION, "savedAt": saved_at.isoformat()},
        separators=(",", ":"),
    )
    return head[:-1] + ',"invoices":[' + ",".join(encoded_invoices) + "]}"


def dumps_snapshot(invoices, saved_at: datetime | None = None) -> str:
    return encode_snapshot([encode_invoice(inv) for inv in invoices], saved_at)


def loads_snapshot(payload: str) -> tuple[list[dict], datetime | None]:
    """Decode a snapshot into raw invoice records, migrating version 1.

    Raises ValueError (json.JSONDecodeError included) on an undecodable payload.
    """
    data = json.loads(payload)
    if isinstance(data, list):
        return data, None
    if not isinstance(data, dict):
        raise ValueError("snapshot is neither an object nor a list")
    # Earlier dashboard builds nested the records under "state".
    records = data.get("invoices")
    if records is None and isinstance(data.get("state"), dict):
        records = data["state"].get("invoices")
    if not isinstance(records, list):
        raise ValueError("snapshot has no invoice list")
    saved_at = None
    if data.get("savedAt"):
        try:
            saved_at = datetime.fromisoformat(data["savedAt"])
        except ValueError:
            saved_at = None
    return records, saved_at
