"""
Destination index: which catalog keys already exist in DatoCMS.

Built once per run, before any write, by paging the whole model
collection. Read-only afterwards; records created during the run are
not reflected.
"""

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Protocol

from steam_catalog_sync.exceptions import SetupError
from steam_catalog_sync.ingestion.clients.base import ClientError
from steam_catalog_sync.ingestion.contracts import ItemRow
from steam_catalog_sync.logger import get_logger

logger = get_logger(__name__, component="destination_index")


class RecordLister(Protocol):
    async def list_records(self, model_type: str) -> list[ItemRow]: ...


class DestinationIndex(Mapping[int, str]):
    """Read-only mapping of app id to DatoCMS record id."""

    def __init__(self, entries: Mapping[int, str] | None = None) -> None:
        self._entries: Mapping[int, str] = MappingProxyType(dict(entries or {}))

    @classmethod
    def from_rows(cls, rows: Iterable[ItemRow]) -> "DestinationIndex":
        """
        Index listing rows by app id.

        Rows without a numeric steam_id are ignored. When several records
        carry the same steam_id the first listed one wins, so every key
        maps to exactly one record.
        """
        entries: dict[int, str] = {}
        for row in rows:
            app_id = row.attributes.app_id
            if app_id is None:
                logger.warning("Record without numeric steam_id", record_id=row.id)
                continue
            if app_id in entries:
                logger.warning(
                    "Duplicate record for app",
                    app_id=app_id,
                    kept=entries[app_id],
                    ignored=row.id,
                )
                continue
            entries[app_id] = row.id
        return cls(entries)

    def __getitem__(self, app_id: int) -> str:
        return self._entries[app_id]

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"DestinationIndex({len(self)} records)"


async def build_destination_index(client: RecordLister, model_type: str) -> DestinationIndex:
    """
    Page the destination collection into an index.

    Raises:
        SetupError: If the listing fails; nothing can be diffed without it
    """
    try:
        rows = await client.list_records(model_type)
    except ClientError as e:
        raise SetupError(f"Cannot build destination index: {e}") from e

    index = DestinationIndex.from_rows(rows)
    logger.info("Built destination index", model_type=model_type, records=len(index))
    return index
