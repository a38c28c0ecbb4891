"""Domain normalization: pure functions, zero external dependencies.

Only stdlib imports allowed.
"""

import re

# Diagnostic strings the extraction pipeline writes into fields it failed to read.
EXTRACTION_FAILURE_MARKERS = (
    "conversion alternative",
    "document pdf",
    "non extrait",
    "pdf - conversion",
    "erreur conversion",
    "échec extraction",
)

_BRAND_TOKEN = re.compile(r"[^\W\d_][\w&'-]*[^\W_]", re.UNICODE)


def is_extraction_failure_marker(text):
    """True if *text* contains one of the extraction-failure markers (case-insensitive)."""
    if not isinstance(text, str) or not text:
        return False
    lowered = text.casefold()
    return any(marker in lowered for marker in EXTRACTION_FAILURE_MARKERS)


def is_failed_line(product):
    """True if a line item is an extraction diagnostic rather than a purchase."""
    brand = product.competitor.brand if product.competitor else product.brand
    return any(
        is_extraction_failure_marker(value)
        for value in (product.designation, product.reference, brand)
    )


def customer_key(name):
    """Deduplication key for a customer name: case-folded, whitespace collapsed."""
    if not isinstance(name, str):
        return ""
    return " ".join(name.split()).casefold()


def brand_token(designation):
    """Best-effort brand from a designation: its first word of two letters or more."""
    if not isinstance(designation, str):
        return None
    match = _BRAND_TOKEN.search(designation)
    if match is None:
        return None
    return match.group(0).upper()


def slugify(name):
    """Lower-case, dash-separated identifier fragment."""
    return "-".join(name.split()).lower()
