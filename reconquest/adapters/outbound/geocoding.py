"""Geocoding adapters implementing GeocodingPort.

``NominatimGeocoder`` queries OpenStreetMap through geopy and memoizes every
answer (misses included) in a local JSON file, so a derivation recomputed on
each read does not hit the network twice for the same address.
``RegionTableGeocoder`` resolves French region and city names offline, and
``FallbackGeocoder`` chains several geocoders.

Client addresses on invoices typically look like:
    "12 rue Victor Hugo, 69002 Lyon"   -> tried as-is, then "Lyon, France"
    "ZI des Landes (44)"               -> "ZI des Landes, France"
"""

from __future__ import annotations

import json
import logging
import os
import re

from geopy.exc import GeocoderServiceError, GeocoderTimedOut, GeocoderUnavailable
from geopy.geocoders import Nominatim

from domain.ports import GeocodingPort

logger = logging.getLogger(__name__)

REGION_COORDINATES: dict[str, tuple[float, float]] = {
    "Île-de-France": (48.8566, 2.3522),
    "Auvergne-Rhône-Alpes": (45.7640, 4.8357),
    "Hauts-de-France": (50.4801, 2.7931),
    "Grand Est": (48.5734, 7.7521),
    "Nouvelle-Aquitaine": (44.8378, -0.5792),
    "Occitanie": (43.6047, 1.4442),
    "Pays de la Loire": (47.4784, -0.5632),
    "Bretagne": (48.2020, -2.9326),
    "Normandie": (49.1829, -0.3707),
    "Bourgogne-Franche-Comté": (47.2808, 4.9994),
    "Centre-Val de Loire": (47.7516, 1.6751),
    "Provence-Alpes-Côte d'Azur": (43.9352, 6.0679),
    "Corse": (42.0396, 9.0129),
    "France": (46.603354, 1.888334),
}

CITY_COORDINATES: dict[str, tuple[float, float]] = {
    "Paris": (48.8566, 2.3522),
    "Strasbourg": (48.5734, 7.7521),
    "Lyon": (45.7640, 4.8357),
    "Marseille": (43.2965, 5.3698),
    "Toulouse": (43.6047, 1.4442),
    "Nantes": (47.2184, -1.5536),
    "Bordeaux": (44.8378, -0.5792),
    "Lille": (50.6292, 3.0573),
    "Mulhouse": (47.7508, 7.3359),
    "Nice": (43.7102, 7.2620),
    "Rennes": (48.1173, -1.6778),
}

_POSTAL_CITY = re.compile(r"\b\d{5}\s+([^\d,]+)$")


def city_of(address: str) -> str | None:
    """City part of a French postal address ("..., 69002 Lyon" -> "Lyon")."""
    cleaned = re.sub(r"\s*\([^)]*\)\s*", " ", address).strip().rstrip(",")
    match = _POSTAL_CITY.search(cleaned)
    if match:
        return match.group(1).strip()
    if "," in cleaned:
        return cleaned.rsplit(",", 1)[1].strip() or None
    return None


class RegionTableGeocoder(GeocodingPort):
    """Offline lookup of known region and city names (case-insensitive)."""

    def __init__(self, extra: dict[str, tuple[float, float]] | None = None):
        table = {**REGION_COORDINATES, **CITY_COORDINATES, **(extra or {})}
        self._table = {name.casefold(): coords for name, coords in table.items()}

    def geocode(self, address: str) -> tuple[float, float] | None:
        if not address:
            return None
        key = address.strip().casefold()
        if key in self._table:
            return self._table[key]
        city = city_of(address)
        if city:
            return self._table.get(city.casefold())
        return None


class NominatimGeocoder(GeocodingPort):
    """geopy/Nominatim geocoder with a JSON file cache."""

    def __init__(self, cache_path: str, user_agent: str = "reconquest-dashboard", timeout: int = 10):
        self._cache_path = cache_path
        self._user_agent = user_agent
        self._timeout = timeout
        self._cache: dict[str, list[float] | None] | None = None

    def _load_cache(self) -> dict[str, list[float] | None]:
        if self._cache is None:
            self._cache = {}
            if os.path.exists(self._cache_path):
                try:
                    with open(self._cache_path, encoding="utf-8") as f:
                        self._cache = json.load(f)
                except (OSError, json.JSONDecodeError):
                    logger.warning("Ignoring unreadable geocode cache %s", self._cache_path)
        return self._cache

    def _save_cache(self) -> None:
        directory = os.path.dirname(self._cache_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self._cache_path, "w", encoding="utf-8") as f:
            json.dump(self._cache, f, ensure_ascii=False, indent=2)

    def _nominatim_geocode(self, query: str) -> tuple[float, float] | None:
        """Single Nominatim geocode attempt. Returns (lat, lon) or None."""
        try:
            geolocator = Nominatim(user_agent=self._user_agent, timeout=self._timeout)
            location = geolocator.geocode(query)
        except (GeocoderTimedOut, GeocoderUnavailable, GeocoderServiceError) as exc:
            logger.debug("Nominatim failed for %r: %s", query, exc)
            return None
        if location:
            return (location.latitude, location.longitude)
        return None

    def geocode(self, address: str) -> tuple[float, float] | None:
        """Geocode *address*: full address first, then "City, France"."""
        if not address or not address.strip():
            return None
        cache = self._load_cache()
        if address in cache:
            val = cache[address]
            return tuple(val) if val is not None else None

        coords = self._nominatim_geocode(address)
        if coords is None:
            city = city_of(address)
            if city:
                coords = self._nominatim_geocode(f"{city}, France")

        # Cache the result (even None to avoid retrying)
        cache[address] = list(coords) if coords else None
        try:
            self._save_cache()
        except OSError:
            logger.warning("Could not write geocode cache %s", self._cache_path, exc_info=True)
        return coords


class FallbackGeocoder(GeocodingPort):
    """Try each geocoder in turn; the first answer wins."""

    def __init__(self, *geocoders: GeocodingPort):
        self._geocoders = geocoders

    def geocode(self, address: str) -> tuple[float, float] | None:
        for geocoder in self._geocoders:
            coords = geocoder.geocode(address)
            if coords is not None:
                return coords
        return None
