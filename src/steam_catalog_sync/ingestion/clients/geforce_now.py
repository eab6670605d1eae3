"""
GeForce NOW game list client.

Queries the GraphQL API behind the public GFN games page and returns
the Steam app ids of every title available on the service.
"""

import base64
import time
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from steam_catalog_sync.config import GeForceNowConfig, get_settings
from steam_catalog_sync.ingestion.clients.base import (
    BaseAPIClient,
    ClientError,
    ExtractionResult,
)
from steam_catalog_sync.ingestion.contracts import GameListResponse

_PAGE_FIELDS = """
fragment queryFields on AppQueryType {
    items {
        variants {
            storeId
        }
    }
}
"""


def _cursor(offset: int) -> str:
    return base64.b64encode(str(offset).encode()).decode()


def build_game_list_query(config: GeForceNowConfig) -> str:
    """
    Build one query fetching every page through aliased fields.

    The API paginates with base64-encoded offsets as cursors, so all
    pages can be requested at once instead of walking pageInfo.
    """
    pages = []
    for index in range(config.max_pages):
        after = f' after:"{_cursor(index * config.page_size)}"' if index else ""
        pages.append(
            f'    page{index + 1}: apps(country:"{config.country}" '
            f'appStore:"{config.app_store}" first:{config.page_size}{after}) '
            "{ ...queryFields }"
        )
    return _PAGE_FIELDS + "{\n" + "\n".join(pages) + "\n}\n"


class GeForceNowClient(BaseAPIClient):
    """
    Client for the GeForce NOW game list.

    Example:
        >>> async with GeForceNowClient() as gfn:
        ...     result = await gfn.extract()
        ...     print(len(result.data))
    """

    def __init__(self, *, config: GeForceNowConfig | None = None, **kwargs: Any) -> None:
        self._config = config or get_settings().geforce_now
        kwargs.setdefault("timeout", self._config.timeout_seconds)
        super().__init__(**kwargs)

    @property
    def source_name(self) -> str:
        return "geforce_now_api"

    async def extract(self) -> ExtractionResult[list[int]]:
        """
        Fetch the sorted Steam app ids available on GeForce NOW.

        A result smaller than ``min_expected_games`` is reported as a
        failure: it means the API returned a partial list, and writing
        it out would drop the availability tag from real games.
        """
        start_time = time.perf_counter()
        query = build_game_list_query(self._config)

        try:
            # The endpoint takes the raw query as the request body
            response = await self._make_request("POST", self._config.api_url, content=query)
            raw_data = response.json()
            parsed = GameListResponse.model_validate(raw_data)
        except (ClientError, PydanticValidationError, ValueError) as e:
            self._logger.error("Fetching game list failed", error=str(e))
            return ExtractionResult(
                success=False,
                error_message=str(e),
                source=self.source_name,
                endpoint=self._config.api_url,
                duration_ms=(time.perf_counter() - start_time) * 1000,
            )

        app_ids = sorted(parsed.steam_app_ids())
        duration_ms = (time.perf_counter() - start_time) * 1000

        if len(app_ids) < self._config.min_expected_games:
            message = (
                f"Unexpected decrease in number of games "
                f"({len(app_ids)} < {self._config.min_expected_games})"
            )
            self._logger.error("Game list too small", count=len(app_ids))
            return ExtractionResult(
                success=False,
                error_message=message,
                source=self.source_name,
                endpoint=self._config.api_url,
                duration_ms=duration_ms,
            )

        self._logger.info("Fetched game list", count=len(app_ids), duration_ms=round(duration_ms, 2))
        return ExtractionResult(
            success=True,
            data=app_ids,
            source=self.source_name,
            endpoint=self._config.api_url,
            duration_ms=duration_ms,
        )
