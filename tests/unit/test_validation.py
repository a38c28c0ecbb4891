"""Tests for domain.validation — ingestion checks and line clean-up."""

import math

import pytest

from domain.exceptions import ValidationError
from domain.models import (
    Client,
    CompetitorInfo,
    Distributor,
    Invoice,
    Product,
    ProductType,
    VerificationDetails,
)
from domain.validation import (
    POTENTIAL_MARKUP,
    check_total_coherence,
    strip_failed_lines,
    validate_invoice,
    validate_product,
)


def _line(**overrides):
    fields = dict(
        reference="R1", designation="IKO ARMOURBASE", quantity=10, unit_price=50.0,
        total_price=500.0, type=ProductType.COMPETITOR, brand="IKO",
    )
    fields.update(overrides)
    return Product(**fields)


def _invoice(products=None, **overrides):
    fields = dict(
        id="inv-1", number="FA-001", date="2025-03-14",
        client=Client(name="Dupont"), distributor=Distributor(name="Point.P"),
        amount=500.0, potential=575.0,
        products=products if products is not None else [_line()],
    )
    fields.update(overrides)
    return Invoice(**fields)


class TestCheckTotalCoherence:
    def test_exact(self):
        assert check_total_coherence(_line())

    def test_cent_rounding(self):
        assert check_total_coherence(_line(quantity=3, unit_price=33.333, total_price=100.0))

    def test_relative_tolerance(self):
        assert check_total_coherence(_line(total_price=504.0), tolerance=0.01)
        assert not check_total_coherence(_line(total_price=520.0), tolerance=0.01)


class TestValidateProduct:
    def test_valid(self):
        validate_product(_line(), 0)

    @pytest.mark.parametrize("field,value", [
        ("quantity", 0),
        ("quantity", -1),
        ("unit_price", -5.0),
        ("total_price", math.nan),
        ("quantity", None),
        ("unit_price", True),
    ])
    def test_bad_numbers(self, field, value):
        with pytest.raises(ValidationError):
            validate_product(_line(**{field: value}), 0)

    def test_incoherent_total(self):
        with pytest.raises(ValidationError, match="total_price"):
            validate_product(_line(total_price=900.0), 2, "inv-1")

    def test_confidence_out_of_range(self):
        line = _line(verification_details=VerificationDetails(confidence=1.2))
        with pytest.raises(ValidationError, match="confidence"):
            validate_product(line, 0)

    def test_competitor_brand_from_designation(self):
        validate_product(_line(brand=None), 0)

    def test_competitor_without_any_brand(self):
        with pytest.raises(ValidationError, match="brand"):
            validate_product(_line(brand=None, competitor=CompetitorInfo(brand=" "),
                                   designation="123"), 0)

    @pytest.mark.parametrize("overrides", [
        {"brand": 5},
        {"competitor": CompetitorInfo(brand=5)},
        {"designation": None},
    ])
    def test_non_string_text_fields(self, overrides):
        with pytest.raises(ValidationError):
            validate_product(_line(**overrides), 0)

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            validate_product(_line(type="competitor"), 0)


class TestValidateInvoice:
    def test_valid(self):
        validate_invoice(_invoice())

    @pytest.mark.parametrize("overrides", [
        {"id": ""},
        {"id": None},
        {"number": "  "},
        {"date": "14/03/2025"},
        {"client": Client(name="")},
        {"amount": -1.0},
        {"potential": math.inf},
        {"status": "analyzed"},
        {"client": Client(name="Dupont", address=12)},
        {"region": ["Bretagne"]},
    ])
    def test_invalid_fields(self, overrides):
        with pytest.raises(ValidationError):
            validate_invoice(_invoice(**overrides))

    def test_empty_products(self):
        with pytest.raises(ValidationError, match="products"):
            validate_invoice(_invoice(products=[]))

    def test_error_carries_invoice_id(self):
        with pytest.raises(ValidationError) as excinfo:
            validate_invoice(_invoice(amount=-1.0))
        assert excinfo.value.invoice_id == "inv-1"
        assert excinfo.value.field == "amount"


class TestStripFailedLines:
    def test_clean_invoice_untouched(self):
        inv = _invoice()
        cleaned, dropped = strip_failed_lines(inv)
        assert dropped == 0
        assert cleaned is inv

    def test_failed_line_dropped_and_amount_recomputed(self):
        failed = _line(designation="Document PDF - conversion échouée", brand=None,
                       total_price=0.0, unit_price=0.0, quantity=1)
        inv = _invoice(products=[_line(), failed], amount=9999.0, potential=1.0)
        cleaned, dropped = strip_failed_lines(inv)
        assert dropped == 1
        assert len(cleaned.products) == 1
        assert cleaned.amount == 500.0
        assert cleaned.potential == round(500.0 * POTENTIAL_MARKUP, 2)
        # Original left intact
        assert len(inv.products) == 2

    def test_all_lines_failed_leaves_empty_invoice(self):
        failed = _line(designation="non extrait")
        cleaned, dropped = strip_failed_lines(_invoice(products=[failed]))
        assert dropped == 1
        assert cleaned.products == []
        with pytest.raises(ValidationError):
            validate_invoice(cleaned)
