"""Entity caches and the loaders that fill them."""

from .loader import ItemLoader, PartitionLoader
from .pagination import Page, fetch_all_pages
from .store import EntityCache, TrackerCache

__all__ = [
    "EntityCache",
    "ItemLoader",
    "Page",
    "PartitionLoader",
    "TrackerCache",
    "fetch_all_pages",
]
