"""Configuration loading: ``config.yaml`` plus environment overrides.

Environment variables win over the YAML file:
    RECONQUEST_CONFIG   alternative YAML path
    DATABASE_URL        SQLAlchemy URL of the snapshot store
    REDIS_URL           Redis URL (selects the redis backend when set)
    RECONQUEST_HOST     host the dashboard is served from (local vs hosted demo)
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field

import yaml

from domain.analytics.reconquest import ReconquestThresholds

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_CONFIG_PATH = os.path.join(_PACKAGE_DIR, "config.yaml")

LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///data/reconquest.db"
    redis_url: str | None = None
    storage_backend: str = "sqlalchemy"
    storage_key: str = "reconquest-dashboard-v2-storage"
    max_bytes: int = 5 * 1024 * 1024
    warn_ratio: float = 0.8
    deployment_host: str = "localhost"
    demo_invoice_count: int = 50
    demo_seed: int | None = None
    total_tolerance: float = 0.01
    thresholds: ReconquestThresholds = field(default_factory=ReconquestThresholds)
    known_brands: tuple[str, ...] = ()
    fuzzy_cutoff: float = 85
    geocoding_enabled: bool = True
    geocoding_user_agent: str = "reconquest-dashboard"
    geocoding_timeout: int = 10
    geocode_cache_path: str = os.path.join(_PACKAGE_DIR, "data", "geocode_cache.json")
    log_level: str = "INFO"

    @property
    def is_local(self) -> bool:
        return self.deployment_host.strip().lower() in LOCAL_HOSTS


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(_PACKAGE_DIR, path)


def load_config(path: str | None = None) -> dict:
    """Read the raw YAML configuration as a dict."""
    path = path or os.environ.get("RECONQUEST_CONFIG") or DEFAULT_CONFIG_PATH
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def settings_from_dict(config: dict) -> Settings:
    """Build Settings from a config dict, applying environment overrides."""
    database = config.get("database", {}) or {}
    storage = config.get("storage", {}) or {}
    deployment = config.get("deployment", {}) or {}
    reconquest = config.get("reconquest", {}) or {}
    brands = config.get("brands", {}) or {}
    geocoding = config.get("geocoding", {}) or {}
    defaults = Settings()

    redis_url = os.environ.get("REDIS_URL") or (config.get("cache", {}) or {}).get("redis_url")
    backend = storage.get("backend", defaults.storage_backend)
    if os.environ.get("REDIS_URL"):
        backend = "redis"

    thresholds = ReconquestThresholds(
        high=float(reconquest.get("high_priority_threshold", defaults.thresholds.high)),
        medium=float(reconquest.get("medium_priority_threshold", defaults.thresholds.medium)),
        conversion_rate=float(reconquest.get("conversion_rate", defaults.thresholds.conversion_rate)),
        min_competitor_amount=float(reconquest.get("min_competitor_amount", 0) or 0),
        large_region=float(reconquest.get("large_region_threshold", defaults.thresholds.large_region)),
        medium_region=float(reconquest.get("medium_region_threshold", defaults.thresholds.medium_region)),
    )
    if thresholds.medium > thresholds.high:
        raise ValueError(
            f"medium_priority_threshold ({thresholds.medium}) exceeds "
            f"high_priority_threshold ({thresholds.high})"
        )

    cache_path = geocoding.get("cache_path")
    return Settings(
        database_url=os.environ.get("DATABASE_URL") or database.get("url", defaults.database_url),
        redis_url=redis_url,
        storage_backend=backend,
        storage_key=storage.get("key", defaults.storage_key),
        max_bytes=int(storage.get("max_bytes", defaults.max_bytes)),
        warn_ratio=float(storage.get("warn_ratio", defaults.warn_ratio)),
        deployment_host=os.environ.get("RECONQUEST_HOST") or deployment.get("host", defaults.deployment_host),
        demo_invoice_count=int(deployment.get("demo_invoice_count", defaults.demo_invoice_count)),
        demo_seed=deployment.get("demo_seed"),
        total_tolerance=float((config.get("ingestion", {}) or {}).get("total_tolerance", defaults.total_tolerance)),
        thresholds=thresholds,
        known_brands=tuple(str(b).upper() for b in brands.get("known_competitors", []) or []),
        fuzzy_cutoff=float(brands.get("fuzzy_cutoff", defaults.fuzzy_cutoff)),
        geocoding_enabled=bool(geocoding.get("enabled", defaults.geocoding_enabled)),
        geocoding_user_agent=geocoding.get("user_agent", defaults.geocoding_user_agent),
        geocoding_timeout=int(geocoding.get("timeout", defaults.geocoding_timeout)),
        geocode_cache_path=_resolve_path(cache_path) if cache_path else defaults.geocode_cache_path,
        log_level=str((config.get("logging", {}) or {}).get("level", defaults.log_level)),
    )


def load_settings(path: str | None = None) -> Settings:
    return settings_from_dict(load_config(path))


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Console logging for scripts; library code only calls ``getLogger``."""
    logger = logging.getLogger("reconquest")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logger.addHandler(handler)
    logging.getLogger("domain").setLevel(logger.level)
    logging.getLogger("domain").handlers[:] = [handler]
    return logger
