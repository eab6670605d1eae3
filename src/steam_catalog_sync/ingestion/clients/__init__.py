"""
API clients for the Steam Store, GeForce NOW and DatoCMS.

All clients share a common base with retry logic for reads,
status code mapping, and structured logging.
"""

from steam_catalog_sync.ingestion.clients.base import (
    APIError,
    BaseAPIClient,
    ClientError,
    ExtractionResult,
    RateLimitError,
    ServerError,
    ValidationError,
)
from steam_catalog_sync.ingestion.clients.datocms import DatoCMSClient, upload_filename
from steam_catalog_sync.ingestion.clients.geforce_now import GeForceNowClient
from steam_catalog_sync.ingestion.clients.steam_store import SteamStoreClient

__all__ = [
    # Base classes and errors
    "APIError",
    "BaseAPIClient",
    "ClientError",
    "ExtractionResult",
    "RateLimitError",
    "ServerError",
    "ValidationError",
    # Clients
    "DatoCMSClient",
    "GeForceNowClient",
    "SteamStoreClient",
    "upload_filename",
]
