"""
DatoCMS content management API client.

Covers the destination side of the pipeline: paged listing of a
model's records, record create/update, and image upload by URL.
Listing and lookups are retried on transient failures; writes are
attempted exactly once.
"""

import asyncio
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import urlparse

import httpx
from pydantic import SecretStr

from steam_catalog_sync.config import DatoCMSConfig, get_settings
from steam_catalog_sync.exceptions import SetupError
from steam_catalog_sync.ingestion.clients.base import APIError, BaseAPIClient, ClientError
from steam_catalog_sync.ingestion.contracts import (
    ItemListResponse,
    ItemRow,
    JobResultResponse,
    ResourceResponse,
    UploadListResponse,
    UploadRequestResponse,
)
from steam_catalog_sync.ingestion.utils.scheduler import SlidingWindowLimiter


def upload_filename(stem: str, url: str) -> str:
    """Name an upload after ``stem``, keeping the image's extension."""
    suffix = PurePosixPath(urlparse(url).path).suffix
    return f"{stem}{suffix}"


class DatoCMSClient(BaseAPIClient):
    """
    Client for the DatoCMS CMA REST API (JSON:API, version 3).

    Example:
        >>> async with DatoCMSClient() as dato:
        ...     rows = await dato.list_records("game")
        ...     await dato.update_record(rows[0].id, {"title": "Portal 2"})
    """

    def __init__(
        self,
        *,
        config: DatoCMSConfig | None = None,
        limiter: SlidingWindowLimiter | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Args:
            config: DatoCMS settings (defaults to settings)
            limiter: Request window shared with other clients of the same project
            **kwargs: Passed to BaseAPIClient
        """
        self._config = config or get_settings().datocms
        token = self._config.api_token
        if token is None:
            raise SetupError("DATOCMS_API_TOKEN is not configured")
        self._token: SecretStr = token
        self._limiter = limiter or SlidingWindowLimiter(
            self._config.interval_cap,
            self._config.interval_seconds,
            name="datocms_requests",
        )
        kwargs.setdefault("timeout", self._config.timeout_seconds)
        super().__init__(**kwargs)

    @property
    def source_name(self) -> str:
        return "datocms_api"

    def _url(self, path: str) -> str:
        return f"{self._config.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _api_headers(self) -> dict[str, str]:
        # Sent per request so the token never reaches image hosts or S3
        return {
            "Authorization": f"Bearer {self._token.get_secret_value()}",
            "Accept": "application/json",
            "Content-Type": "application/vnd.api+json",
            "X-Api-Version": "3",
            "X-Exclude-Invalid": "true",
        }

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        # Every CMA call counts against the project budget, retries and job polls included
        if url.startswith(self._config.base_url.rstrip("/")):
            await self._limiter.acquire()
        return await super()._send(method, url, **kwargs)

    async def _api(
        self,
        method: str,
        path: str,
        *,
        retryable: bool = True,
        **kwargs: Any,
    ) -> dict[str, Any]:
        response = await self._make_request(
            method,
            self._url(path),
            retryable=retryable,
            headers=self._api_headers(),
            **kwargs,
        )
        if not response.content:
            return {}
        return response.json()  # type: ignore[no-any-return]

    async def _list_page(self, model_type: str, offset: int) -> ItemListResponse:
        body = await self._api(
            "GET",
            "/items",
            params={
                "filter[type]": model_type,
                "page[offset]": offset,
                "page[limit]": self._config.page_size,
            },
        )
        return ItemListResponse.model_validate(body)

    async def list_records(self, model_type: str) -> list[ItemRow]:
        """
        List every record of a model.

        The first page reports the total count; the remaining pages are
        then fetched with at most ``listing_concurrency`` in flight.

        Args:
            model_type: API key of the model (e.g. "game")

        Returns:
            list[ItemRow]: Rows in listing order
        """
        first = await self._list_page(model_type, 0)
        total = first.meta.total_count
        offsets = list(range(self._config.page_size, total, self._config.page_size))
        slots = asyncio.Semaphore(self._config.listing_concurrency)

        async def fetch(offset: int) -> ItemListResponse:
            async with slots:
                return await self._list_page(model_type, offset)

        pages = [first, *await asyncio.gather(*(fetch(offset) for offset in offsets))]
        rows = [row for page in pages for row in page.data]

        self._logger.info(
            "Listed records",
            model_type=model_type,
            total_count=total,
            fetched=len(rows),
            pages=len(pages),
        )
        return rows

    async def create_record(self, attributes: dict[str, Any], *, item_type_id: str) -> str:
        """Create a record and return its DatoCMS id."""
        body = await self._api(
            "POST",
            "/items",
            retryable=False,
            json={
                "data": {
                    "type": "item",
                    "attributes": attributes,
                    "relationships": {
                        "item_type": {"data": {"type": "item_type", "id": item_type_id}},
                    },
                }
            },
        )
        record_id = ResourceResponse.model_validate(body).data.id
        self._logger.info("Created record", record_id=record_id, steam_id=attributes.get("steam_id"))
        return record_id

    async def update_record(self, record_id: str, attributes: dict[str, Any]) -> None:
        """Replace the given attributes of an existing record."""
        await self._api(
            "PUT",
            f"/items/{record_id}",
            retryable=False,
            json={"data": {"type": "item", "id": record_id, "attributes": attributes}},
        )
        self._logger.info("Updated record", record_id=record_id, steam_id=attributes.get("steam_id"))

    async def find_upload(self, filename: str) -> str | None:
        """Return the id of an existing upload with exactly this filename."""
        body = await self._api(
            "GET",
            "/uploads",
            params={"filter[query]": filename, "page[limit]": 100},
        )
        for row in UploadListResponse.model_validate(body).data:
            if row.attributes.filename == filename:
                return row.id
        return None

    async def upload_from_url(
        self,
        url: str,
        filename: str,
        *,
        skip_if_exists: bool = True,
    ) -> str:
        """
        Upload a remote image and return the upload id.

        Steps: optional lookup by filename, download, request a signed
        upload slot, push the bytes, create the upload, wait for the
        creation job.

        Args:
            url: Public image URL
            filename: Name to store the upload under
            skip_if_exists: Reuse an upload with the same filename

        Returns:
            str: DatoCMS upload id
        """
        if skip_if_exists:
            existing = await self.find_upload(filename)
            if existing is not None:
                self._logger.debug("Reusing upload", filename=filename, upload_id=existing)
                return existing

        image = await self._make_request("GET", url)

        body = await self._api(
            "POST",
            "/upload-requests",
            retryable=False,
            json={"data": {"type": "upload_request", "attributes": {"filename": filename}}},
        )
        slot = UploadRequestResponse.model_validate(body).data

        await self._make_request(
            "PUT",
            slot.attributes.url,
            retryable=False,
            content=image.content,
            headers=slot.attributes.request_headers,
        )

        body = await self._api(
            "POST",
            "/uploads",
            retryable=False,
            json={"data": {"type": "upload", "attributes": {"path": slot.id}}},
        )
        created = ResourceResponse.model_validate(body).data
        upload_id = created.id if created.type == "upload" else await self._wait_for_job(created.id)

        self._logger.info("Uploaded image", filename=filename, upload_id=upload_id)
        return upload_id

    async def _wait_for_job(self, job_id: str) -> str:
        """Poll an asynchronous job until it yields the created resource id."""
        endpoint = self._url(f"/job-results/{job_id}")
        for _ in range(self._config.job_poll_attempts):
            try:
                body = await self._api("GET", f"/job-results/{job_id}", retryable=False)
            except APIError as e:
                # 404 until the job has finished
                if e.status_code != 404:
                    raise
                await asyncio.sleep(self._config.job_poll_interval_seconds)
                continue

            result = JobResultResponse.model_validate(body)
            if result.data.attributes.status >= 400:
                raise APIError(
                    f"Job {job_id} failed with status {result.data.attributes.status}",
                    source=self.source_name,
                    endpoint=endpoint,
                    status_code=result.data.attributes.status,
                )
            resource_id = result.resource_id
            if resource_id is None:
                raise APIError(
                    f"Job {job_id} finished without a resource id",
                    source=self.source_name,
                    endpoint=endpoint,
                )
            return resource_id

        raise ClientError(
            f"Job {job_id} did not finish after {self._config.job_poll_attempts} polls",
            source=self.source_name,
            endpoint=endpoint,
        )
