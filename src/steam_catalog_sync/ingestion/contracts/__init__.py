"""
Data contracts for external API payloads.

Pydantic models describing every third-party payload the pipeline
consumes, so downstream logic works on validated structures.
"""

from steam_catalog_sync.ingestion.contracts.datocms import (
    ItemListResponse,
    ItemRow,
    JobResultResponse,
    ResourceResponse,
    UploadListResponse,
    UploadRequestResponse,
)
from steam_catalog_sync.ingestion.contracts.geforce_now import (
    GameListResponse,
    GameVariant,
)
from steam_catalog_sync.ingestion.contracts.steam_store import (
    AppId,
    Category,
    Genre,
    Platform,
    PriceOverview,
    ReleaseDate,
    SteamStoreAPIResponse,
    SteamStoreGame,
)

__all__ = [
    "AppId",
    "Category",
    "GameListResponse",
    "GameVariant",
    "Genre",
    "ItemListResponse",
    "ItemRow",
    "JobResultResponse",
    "Platform",
    "PriceOverview",
    "ReleaseDate",
    "ResourceResponse",
    "SteamStoreAPIResponse",
    "SteamStoreGame",
    "UploadListResponse",
    "UploadRequestResponse",
]
