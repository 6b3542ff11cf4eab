"""Requirement catalogs shipped as YAML."""

from .loader import CatalogLoadError, CatalogLoader, load_catalog

__all__ = ["CatalogLoadError", "CatalogLoader", "load_catalog"]
