"""Tests for reconquest.data.brand_matching — fuzzy competitor brand extraction."""

import pytest

from reconquest.data.brand_matching import FuzzyBrandMatcher

KNOWN = ["IKO", "FIRESTONE", "TREMCO", "GAF", "ROCKWOOL", "SIPLAST"]


@pytest.fixture
def matcher():
    return FuzzyBrandMatcher(KNOWN, score_cutoff=85)


class TestFuzzyBrandMatcher:
    def test_exact_token_anywhere(self, matcher):
        assert matcher("Membrane bitume IKO Armourbase") == "IKO"

    def test_case_insensitive(self, matcher):
        assert matcher("rockwool hardrock 040") == "ROCKWOOL"

    def test_ocr_typo_matched(self, matcher):
        assert matcher("FIRESTNE RUBBERGARD EPDM") == "FIRESTONE"

    def test_short_tokens_not_fuzzy_matched(self, matcher):
        # "GAP" is one letter away from "GAF" but too short to trust.
        assert matcher("GAP joint") == "GAP"

    def test_unknown_brand_falls_back_to_first_word(self, matcher):
        assert matcher("Bauder Thermofin") == "BAUDER"

    @pytest.mark.parametrize("designation", [None, "", "   "])
    def test_empty(self, matcher, designation):
        assert matcher(designation) is None

    def test_known_brands_normalised(self):
        m = FuzzyBrandMatcher([" iko ", "IKO", "", "gaf"])
        assert m.known_brands == ("IKO", "GAF")

    def test_without_known_brands(self):
        assert FuzzyBrandMatcher()("Siplast Parafor") == "SIPLAST"
