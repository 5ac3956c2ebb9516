"""
Shared API state - one engine and one catalog service per process.

Both share a single reference store and cache so admin writes are seen by
the next pricing request.
"""
from typing import Optional

from ..config.settings import Settings, get_settings
from ..engine import PricingEngine
from ..services.catalog_service import CatalogService

_engine: Optional[PricingEngine] = None
_catalog: Optional[CatalogService] = None


def configure(settings: Optional[Settings] = None) -> PricingEngine:
    """(Re)build the engine and catalog service from settings."""
    global _engine, _catalog
    _engine = PricingEngine.from_settings(settings or get_settings())
    _catalog = CatalogService(_engine.store, _engine.cache)
    return _engine


def get_engine() -> PricingEngine:
    if _engine is None:
        configure()
    return _engine


def get_catalog() -> CatalogService:
    if _catalog is None:
        configure()
    return _catalog
