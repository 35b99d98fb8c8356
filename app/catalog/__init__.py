"""Versioned diagnostic catalogs."""
from app.catalog.loader import (
    clear_catalog_cache,
    get_catalog,
    get_cause_catalog,
    load_cause_catalog,
    load_full_catalog,
)
from app.catalog.models import (
    CatalogAction,
    CatalogProcess,
    CatalogQuestion,
    CauseCatalog,
    CauseGap,
    FullCatalog,
    MechanismAction,
)

__all__ = [
    "clear_catalog_cache",
    "get_catalog",
    "get_cause_catalog",
    "load_cause_catalog",
    "load_full_catalog",
    "CatalogAction",
    "CatalogProcess",
    "CatalogQuestion",
    "CauseCatalog",
    "CauseGap",
    "FullCatalog",
    "MechanismAction",
]
