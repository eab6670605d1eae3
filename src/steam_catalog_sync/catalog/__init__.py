"""
Catalog reconciliation.

Extracts curated keys, indexes the destination, and splits keys
into records to create and records to update.
"""

from steam_catalog_sync.catalog.diff import CatalogDiff, compute_diff
from steam_catalog_sync.catalog.index import DestinationIndex, build_destination_index
from steam_catalog_sync.catalog.sources import extract_app_ids, read_catalog_document

__all__ = [
    "CatalogDiff",
    "DestinationIndex",
    "build_destination_index",
    "compute_diff",
    "extract_app_ids",
    "read_catalog_document",
]
