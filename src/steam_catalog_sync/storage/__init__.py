"""Local persistence of catalog keys, availability and detail records."""

from steam_catalog_sync.storage.local import AvailabilitySet, LocalCatalogStore

__all__ = [
    "AvailabilitySet",
    "LocalCatalogStore",
]
