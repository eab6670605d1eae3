"""
Transformation of Steam metadata into destination fields.

All derivation logic lives here as pure functions; the sync
orchestrator calls them inside each upsert task.
"""

from steam_catalog_sync.transformation.derivation import (
    TAG_RULES,
    DerivedFields,
    IdSource,
    TagRule,
    derive_fields,
    normalize_release_date,
)

__all__ = [
    "TAG_RULES",
    "DerivedFields",
    "IdSource",
    "TagRule",
    "derive_fields",
    "normalize_release_date",
]
