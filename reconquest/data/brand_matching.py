"""Best-effort competitor brand extraction from free-text designations.

Used when a competitor line item carries neither ``competitor.brand`` nor
``brand``. Designations come out of OCR, so brand names are often slightly
misspelled ("FIRESTNE RUBBERGARD"); tokens are fuzzy-matched against the
configured list of known competitor brands before falling back to the first
word of the designation.
"""

from __future__ import annotations

import logging
import re

from rapidfuzz import fuzz, process

from domain.normalization import brand_token

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"[^\W_]+", re.UNICODE)


class FuzzyBrandMatcher:
    """Callable ``designation -> brand | None`` for the brand index."""

    def __init__(self, known_brands=(), score_cutoff: float = 85):
        self._known = tuple(dict.fromkeys(b.strip().upper() for b in known_brands if b and b.strip()))
        self._score_cutoff = score_cutoff

    @property
    def known_brands(self) -> tuple[str, ...]:
        return self._known

    def __call__(self, designation):
        return self.extract(designation)

    def extract(self, designation):
        if not isinstance(designation, str) or not designation.strip():
            return None
        tokens = [t.upper() for t in _TOKEN.findall(designation)]
        if self._known:
            for token in tokens:
                if token in self._known:
                    return token
            # Short tokens fuzzy-match far too eagerly ("GAP" ~ "GAF").
            for token in (t for t in tokens if len(t) >= 4):
                match = process.extractOne(
                    token, self._known, scorer=fuzz.ratio, score_cutoff=self._score_cutoff
                )
                if match is not None:
                    logger.debug("Brand %r matched fuzzily from %r", match[0], designation)
                    return match[0]
        return brand_token(designation)
