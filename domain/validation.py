"""Ingestion-time invoice validation: pure functions, zero external dependencies.

Only stdlib and domain imports allowed.
"""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import date

from domain.exceptions import ValidationError
from domain.models import Invoice, InvoiceStatus, Product, ProductType
from domain.normalization import brand_token, is_failed_line

# Potential attributed to an invoice whose amount had to be recomputed.
POTENTIAL_MARKUP = 1.15


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _is_optional_text(value):
    return value is None or isinstance(value, str)


def check_total_coherence(product, tolerance=0.01):
    """True if quantity * unit_price matches total_price within tolerance.

    The tolerance is relative to the total; a 0.01 absolute slack absorbs
    cent rounding on small lines.
    """
    expected = product.quantity * product.unit_price
    gap = abs(expected - product.total_price)
    if gap <= 0.01:
        return True
    reference = abs(product.total_price) or abs(expected)
    return gap / reference <= tolerance


def validate_product(product: Product, index: int, invoice_id: str | None = None,
                     tolerance: float = 0.01) -> None:
    """Raise ValidationError if a line item breaks a data-model invariant."""
    where = f"products[{index}]"
    if not isinstance(product.type, ProductType):
        raise ValidationError("unknown product type", f"{where}.type", invoice_id)
    if not isinstance(product.designation, str):
        raise ValidationError("designation must be a string", f"{where}.designation", invoice_id)
    if not _is_optional_text(product.brand):
        raise ValidationError("brand must be a string", f"{where}.brand", invoice_id)
    if product.competitor is not None and not _is_optional_text(product.competitor.brand):
        raise ValidationError("brand must be a string", f"{where}.competitor.brand", invoice_id)
    for name in ("quantity", "unit_price", "total_price"):
        if not _is_number(getattr(product, name)):
            raise ValidationError("must be a finite number", f"{where}.{name}", invoice_id)
    if product.quantity <= 0:
        raise ValidationError("quantity must be positive", f"{where}.quantity", invoice_id)
    if product.unit_price < 0:
        raise ValidationError("unit price must not be negative", f"{where}.unit_price", invoice_id)
    if not check_total_coherence(product, tolerance):
        raise ValidationError(
            f"total {product.total_price} != {product.quantity} x {product.unit_price}",
            f"{where}.total_price",
            invoice_id,
        )
    details = product.verification_details
    if details is not None and not (_is_number(details.confidence) and 0 <= details.confidence <= 1):
        raise ValidationError(
            "confidence must be within [0, 1]",
            f"{where}.verification_details.confidence",
            invoice_id,
        )
    if product.type is ProductType.COMPETITOR:
        brand = (product.competitor.brand if product.competitor else None) or product.brand
        if not (brand and brand.strip()) and brand_token(product.designation) is None:
            raise ValidationError("competitor line has no resolvable brand", f"{where}.brand", invoice_id)


def validate_invoice(invoice: Invoice, tolerance: float = 0.01) -> None:
    """Raise ValidationError if *invoice* violates a data-model invariant."""
    invoice_id = invoice.id if isinstance(invoice.id, str) else None
    if not invoice_id or not invoice_id.strip():
        raise ValidationError("id must be a non-empty string", "id")
    if not isinstance(invoice.number, str) or not invoice.number.strip():
        raise ValidationError("number must be a non-empty string", "number", invoice_id)
    try:
        date.fromisoformat(invoice.date)
    except (TypeError, ValueError):
        raise ValidationError(f"not an ISO date: {invoice.date!r}", "date", invoice_id) from None
    if not isinstance(invoice.client.name, str) or not invoice.client.name.strip():
        raise ValidationError("client name must be a non-empty string", "client.name", invoice_id)
    if not _is_optional_text(invoice.client.address):
        raise ValidationError("client address must be a string", "client.address", invoice_id)
    if not _is_optional_text(invoice.region):
        raise ValidationError("region must be a string", "region", invoice_id)
    for name in ("amount", "potential"):
        value = getattr(invoice, name)
        if not _is_number(value) or value < 0:
            raise ValidationError("must be a non-negative number", name, invoice_id)
    if not isinstance(invoice.status, InvoiceStatus):
        raise ValidationError("unknown status", "status", invoice_id)
    if not invoice.products:
        raise ValidationError("invoice has no line items", "products", invoice_id)
    for index, product in enumerate(invoice.products):
        validate_product(product, index, invoice_id, tolerance)


def strip_failed_lines(invoice: Invoice) -> tuple[Invoice, int]:
    """Drop extraction-diagnostic line items.

    Returns the cleaned invoice and the number of dropped lines. When lines
    are dropped, ``amount`` is recomputed from the remaining lines and
    ``potential`` follows with POTENTIAL_MARKUP.
    """
    kept = [p for p in invoice.products if not is_failed_line(p)]
    dropped = len(invoice.products) - len(kept)
    if dropped == 0:
        return invoice, 0
    amount = round(sum(p.total_price for p in kept), 2)
    cleaned = replace(
        invoice,
        products=kept,
        amount=amount,
        potential=round(amount * POTENTIAL_MARKUP, 2),
    )
    return cleaned, dropped
