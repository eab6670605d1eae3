"""Split catalog keys into records to create and records to update."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CatalogDiff:
    """Disjoint create/update key sequences, both in catalog order."""

    to_create: tuple[int, ...]
    to_update: tuple[int, ...]

    @property
    def total(self) -> int:
        return len(self.to_create) + len(self.to_update)

    def to_dict(self) -> dict[str, list[int]]:
        return {"to_create": list(self.to_create), "to_update": list(self.to_update)}


def compute_diff(catalog_keys: Iterable[int], index: Mapping[int, str]) -> CatalogDiff:
    """
    Partition catalog keys by presence in the destination index.

    Duplicate keys are collapsed to their first occurrence, so every
    curated key lands in exactly one of the two sequences.

    Args:
        catalog_keys: Curated keys in document order
        index: Destination index (app id -> record id)

    Returns:
        CatalogDiff: Keys absent from the index, then keys present
    """
    to_create: list[int] = []
    to_update: list[int] = []
    seen: set[int] = set()

    for key in catalog_keys:
        if key in seen:
            continue
        seen.add(key)
        (to_update if key in index else to_create).append(key)

    logger.info(
        "Computed catalog diff",
        catalog_keys=len(seen),
        to_create=len(to_create),
        to_update=len(to_update),
    )
    return CatalogDiff(to_create=tuple(to_create), to_update=tuple(to_update))
