"""Invoice list search and sort: pure functions, zero external dependencies."""

from datetime import date


def search_invoices(invoices, term):
    """Invoices whose number, client, distributor or a designation contains *term*."""
    if not term:
        return list(invoices)
    needle = term.casefold()

    def _hit(value):
        return isinstance(value, str) and needle in value.casefold()

    return [
        inv for inv in invoices
        if _hit(inv.number)
        or _hit(inv.client.name)
        or _hit(inv.distributor.name)
        or any(_hit(p.designation) for p in inv.products)
    ]


def sort_invoices(invoices, field="date", descending=True):
    """Sort by ``date`` or ``amount``. Undated invoices sort as the oldest."""
    if field == "date":
        def key(inv):
            return inv.parsed_date or date.min
    elif field == "amount":
        def key(inv):
            return inv.amount
    else:
        raise ValueError(f"Unsupported sort field: {field!r}")
    return sorted(invoices, key=key, reverse=descending)
