"""Competitor brand traceability: pure functions, zero external dependencies.

Only stdlib and domain imports allowed.
"""

from domain.models import (
    BrandRollup,
    CompetitorShare,
    ProductTraceability,
    TraceabilityLine,
)
from domain.normalization import brand_token, is_extraction_failure_marker, is_failed_line


def resolve_brand(product, extract_brand=brand_token):
    """Brand of a line item: competitor.brand, else brand, else extracted from the designation."""
    for candidate in (product.competitor.brand if product.competitor else None, product.brand):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    extracted = extract_brand(product.designation)
    if isinstance(extracted, str) and extracted.strip():
        return extracted.strip()
    return None


def _competitor_lines(invoices, extract_brand):
    """Yield (invoice, product, brand) for every classifiable competitor line."""
    for invoice in invoices:
        for product in invoice.products:
            if not product.is_competitor or is_failed_line(product):
                continue
            brand = resolve_brand(product, extract_brand)
            if brand is None:
                continue
            yield invoice, product, brand


def get_all_competitor_brands(invoices, extract_brand=brand_token):
    """Per-brand spend and distinct invoice count, biggest spend first."""
    totals = {}
    invoice_numbers = {}
    for invoice, product, brand in _competitor_lines(invoices, extract_brand):
        totals[brand] = totals.get(brand, 0.0) + product.total_price
        invoice_numbers.setdefault(brand, set()).add(invoice.number)
    rollups = [
        BrandRollup(brand=brand, total=total, invoice_count=len(invoice_numbers[brand]))
        for brand, total in totals.items()
    ]
    rollups.sort(key=lambda r: (-r.total, r.brand))
    return rollups


def count_competitor_brands(invoices, extract_brand=brand_token):
    return len({brand for _, _, brand in _competitor_lines(invoices, extract_brand)})


def match_brand(product, brand):
    """How a competitor line matches *brand*, or None.

    Rules are tried in order: exact competitor.brand, exact brand, then
    case-insensitive substring of *brand* in the designation.
    """
    if product.competitor is not None and product.competitor.brand == brand:
        return "competitor_brand"
    if product.brand == brand:
        return "brand"
    designation = product.designation if isinstance(product.designation, str) else ""
    if brand and brand.casefold() in designation.casefold():
        return "designation"
    return None


def get_product_traceability(invoices, brand):
    """Every competitor line item matching *brand*, with its invoice context."""
    lines = []
    total = 0.0
    for invoice in invoices:
        for product in invoice.products:
            if not product.is_competitor:
                continue
            matched_by = match_brand(product, brand)
            if matched_by is None:
                continue
            lines.append(TraceabilityLine(
                invoice_id=invoice.id,
                invoice_number=invoice.number,
                invoice_date=invoice.date,
                client_name=invoice.client.name or "Client inconnu",
                product_designation=product.designation,
                product_reference=product.reference or "",
                quantity=product.quantity,
                unit_price=product.unit_price,
                total_price=product.total_price,
                matched_by=matched_by,
            ))
            total += product.total_price
    return ProductTraceability(brand=brand, lines=tuple(lines), total_amount=total)


def competitor_share(invoices, extract_brand=brand_token, limit=5):
    """Top brands by competitor spend with their rounded percentage of the total.

    Invoices whose client name is an extraction diagnostic are ignored.
    """
    clean = [inv for inv in invoices if not is_extraction_failure_marker(inv.client.name)]
    amounts = {}
    for _, product, brand in _competitor_lines(clean, extract_brand):
        amounts[brand] = amounts.get(brand, 0.0) + product.total_price
    grand_total = sum(amounts.values())
    shares = [
        CompetitorShare(
            name=brand,
            amount=amount,
            percentage=round(amount / grand_total * 100) if grand_total > 0 else 0,
        )
        for brand, amount in amounts.items()
    ]
    shares.sort(key=lambda s: (-s.amount, s.name))
    return shares[:limit]
