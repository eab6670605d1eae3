"""
Steam Store API client.

Fetches one app's full detail record from the appdetails endpoint.
The endpoint only returns full details when asked for a single id.
"""

import time
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from steam_catalog_sync.config import SteamAPIConfig, get_settings
from steam_catalog_sync.ingestion.clients.base import (
    BaseAPIClient,
    ClientError,
    ExtractionResult,
    ValidationError,
)
from steam_catalog_sync.ingestion.contracts import (
    AppId,
    SteamStoreAPIResponse,
    SteamStoreGame,
)


class SteamStoreClient(BaseAPIClient):
    """
    Client for the Steam Store appdetails endpoint.

    Pacing is left to the caller's scheduler; this client only issues
    the request and validates the envelope.

    Example:
        >>> async with SteamStoreClient() as steam:
        ...     result = await steam.extract(app_id=1091500)
        ...     if result.success:
        ...         print(result.data.name)
    """

    def __init__(self, *, config: SteamAPIConfig | None = None, **kwargs: Any) -> None:
        config = config or get_settings().steam
        kwargs.setdefault("timeout", config.timeout_seconds)
        super().__init__(**kwargs)
        self._store_url = config.store_url
        self._country_code = config.country_code
        self._language = config.language

    @property
    def source_name(self) -> str:
        """Return source identifier."""
        return "steam_store_api"

    @property
    def details_url(self) -> str:
        return f"{self._store_url}/appdetails"

    def _parse_response(self, raw_data: dict[str, Any]) -> SteamStoreGame:
        """
        Validate an appdetails data block.

        Raises:
            ValidationError: If the block doesn't match the contract
        """
        try:
            return SteamStoreGame.model_validate(raw_data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Response validation failed: {e}",
                source=self.source_name,
            ) from e

    async def extract(self, app_id: AppId) -> ExtractionResult[SteamStoreGame]:
        """
        Fetch details for one app.

        The raw response body is always attached so callers can cache
        it verbatim, including success=false envelopes.

        Args:
            app_id: Steam application ID

        Returns:
            ExtractionResult[SteamStoreGame]: Result with metadata
        """
        endpoint = f"{self.details_url}?appids={app_id}"
        start_time = time.perf_counter()

        self._logger.debug("Fetching app details", app_id=app_id)

        try:
            response = await self._make_request(
                "GET",
                self.details_url,
                params={
                    "appids": app_id,
                    "cc": self._country_code,
                    "l": self._language,
                },
            )
            raw_data = response.json() or {}
            duration_ms = (time.perf_counter() - start_time) * 1000

            envelope = SteamStoreAPIResponse.model_validate(raw_data.get(str(app_id)) or {})
            if not envelope.success or envelope.data is None:
                self._logger.warning("API returned success=false", app_id=app_id)
                return ExtractionResult(
                    success=False,
                    error_message=f"Steam API returned success=false for app_id={app_id}",
                    source=self.source_name,
                    endpoint=endpoint,
                    duration_ms=duration_ms,
                    raw_response=raw_data,
                )

            game = self._parse_response(envelope.data)

            self._logger.info(
                "Fetched app details",
                app_id=app_id,
                game_name=game.name,
                duration_ms=round(duration_ms, 2),
            )
            return ExtractionResult(
                success=True,
                data=game,
                source=self.source_name,
                endpoint=endpoint,
                duration_ms=duration_ms,
                extracted_at=datetime.now(timezone.utc),
                raw_response=raw_data,
            )

        except (ClientError, PydanticValidationError, ValueError) as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self._logger.error(
                "Fetching app details failed",
                app_id=app_id,
                error=str(e),
                status_code=getattr(e, "status_code", None),
            )
            return ExtractionResult(
                success=False,
                error_message=str(e),
                source=self.source_name,
                endpoint=endpoint,
                duration_ms=duration_ms,
            )
