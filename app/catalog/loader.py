"""Catalog loading.

Catalogs are read once per process and handed to the engines by injection;
``clear_catalog_cache()`` is the only way to pick up a new file.
"""
import json
import logging
from functools import lru_cache
from pathlib import Path

from pydantic import ValidationError

from app.catalog.models import CauseCatalog, FullCatalog
from app.config import get_settings
from app.errors import IntegrityFailure

logger = logging.getLogger(__name__)


def _read_json(path: Path) -> dict:
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Catalog file unreadable {path}: {e}")
        raise IntegrityFailure(
            "CATALOG_INVALID",
            "Catálogo indisponível. Contate o suporte.",
            catalog=str(path.name),
        ) from e
    if not isinstance(data, dict):
        raise IntegrityFailure(
            "CATALOG_INVALID",
            "Catálogo indisponível. Contate o suporte.",
            catalog=str(path.name),
        )
    return data


def load_full_catalog(path: Path) -> FullCatalog:
    """Parse a full catalog file."""
    try:
        catalog = FullCatalog.model_validate(_read_json(path))
    except ValidationError as e:
        logger.error(f"Catalog {path} failed validation: {e}")
        raise IntegrityFailure(
            "CATALOG_INVALID",
            "Catálogo indisponível. Contate o suporte.",
            catalog=str(path.name),
        ) from e
    logger.info(
        f"Loaded catalog {catalog.version}: {len(catalog.processes)} processes, "
        f"{len(catalog.actions)} actions"
    )
    return catalog


def load_cause_catalog(path: Path) -> CauseCatalog:
    """Parse a cause-engine catalog file."""
    try:
        catalog = CauseCatalog.model_validate(_read_json(path))
    except ValidationError as e:
        logger.error(f"Cause catalog {path} failed validation: {e}")
        raise IntegrityFailure(
            "CATALOG_INVALID",
            "Catálogo indisponível. Contate o suporte.",
            catalog=str(path.name),
        ) from e
    logger.info(f"Loaded cause catalog {catalog.version}: {len(catalog.gaps)} gaps")
    return catalog


@lru_cache
def get_catalog() -> FullCatalog:
    """Get the active full catalog (FastAPI dependency)."""
    return load_full_catalog(get_settings().full_catalog_path)


@lru_cache
def get_cause_catalog() -> CauseCatalog:
    """Get the active cause-engine catalog (FastAPI dependency)."""
    return load_cause_catalog(get_settings().cause_catalog_path)


def clear_catalog_cache() -> None:
    """Drop the loaded catalogs so the next call re-reads the files."""
    get_catalog.cache_clear()
    get_cause_catalog.cache_clear()
