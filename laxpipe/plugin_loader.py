"""
Source loader for automatic discovery and registration of extractor classes.
"""

import importlib
import inspect
import logging
import pathlib
from typing import Dict, Type

from .extractor import SourceExtractor

logger = logging.getLogger(__name__)

# League plugin packages live next to this package
LEAGUE_DIR = pathlib.Path(__file__).parent.parent / "leagues"
LEAGUE_PACKAGE = "leagues"

# Global registry of discovered extractor classes, keyed by source tag
_REGISTRY: Dict[str, Type[SourceExtractor]] = {}


def refresh_registry() -> None:
    """Import every package under leagues/ and register SourceExtractor subclasses."""
    _REGISTRY.clear()

    if not LEAGUE_DIR.exists():
        logger.warning("League directory does not exist: %s", LEAGUE_DIR)
        return

    for pkg_dir in sorted(LEAGUE_DIR.iterdir()):
        if not (pkg_dir / "__init__.py").exists() or pkg_dir.name.startswith("_"):
            continue

        module_name = f"{LEAGUE_PACKAGE}.{pkg_dir.name}"
        try:
            mod = importlib.import_module(module_name)
        except ImportError as e:
            logger.error("Failed to load league package %s: %s", module_name, e)
            continue

        for _, obj in inspect.getmembers(mod, inspect.isclass):
            if issubclass(obj, SourceExtractor) and not inspect.isabstract(obj):
                _REGISTRY[obj.source] = obj
                logger.debug("Registered extractor: %s -> %s", obj.source, obj.__name__)

    logger.debug("Source discovery complete: %s", sorted(_REGISTRY))


def get(source: str) -> Type[SourceExtractor]:
    """Get an extractor class by its source tag.

    Raises:
        KeyError: If no extractor is registered for ``source``
    """
    if not _REGISTRY:
        refresh_registry()

    if source not in _REGISTRY:
        raise KeyError(f"Source '{source}' not found. Available: {sorted(_REGISTRY)}")

    return _REGISTRY[source]


def list_available() -> Dict[str, Type[SourceExtractor]]:
    """Get a copy of all registered extractors."""
    if not _REGISTRY:
        refresh_registry()
    return _REGISTRY.copy()
