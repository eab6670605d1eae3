"""Integration tests for API clients with mocked HTTP responses."""

import json
import time
from typing import Any

import httpx
import pytest
import respx
from conftest import load_fixture

from steam_catalog_sync.config import DatoCMSConfig, GeForceNowConfig
from steam_catalog_sync.exceptions import SetupError
from steam_catalog_sync.ingestion.clients import (
    APIError,
    DatoCMSClient,
    GeForceNowClient,
    SteamStoreClient,
    upload_filename,
)
from steam_catalog_sync.ingestion.clients.geforce_now import build_game_list_query
from steam_catalog_sync.ingestion.utils import SlidingWindowLimiter

STEAM_DETAILS_URL = "https://store.steampowered.com/api/appdetails"
GFN_URL = "https://api-prod.nvidia.com/gfngames/v1/gameList"
DATO_URL = "https://site-api.datocms.com"
IMAGE_URL = "https://cdn.akamai.steamstatic.com/steam/apps/620/capsule_231x87.jpg?t=1"
SIGNED_URL = "https://s3.example.com/signed/620-capsule.jpg"


@pytest.fixture
def dato_config() -> DatoCMSConfig:
    """DatoCMS config with small pages and fast job polling."""
    return DatoCMSConfig(page_size=200, job_poll_interval_seconds=0.01, job_poll_attempts=3)


class TestSteamStoreClient:
    """Integration tests for the Steam Store client."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_extract_success(self, store_response: dict[str, Any]) -> None:
        """Test successful detail fetch."""
        route = respx.get(STEAM_DETAILS_URL).mock(
            return_value=httpx.Response(200, json=store_response)
        )

        async with SteamStoreClient() as steam:
            result = await steam.extract(app_id=620)

        assert result.success is True
        assert result.data is not None
        assert result.data.name == "Portal 2"
        assert result.data.steam_appid == 620
        assert result.raw_response == store_response
        assert result.source == "steam_store_api"
        assert route.calls.last.request.url.params["appids"] == "620"

    @respx.mock
    @pytest.mark.asyncio
    async def test_extract_not_found(self) -> None:
        """Test that success=false is reported with the raw body kept."""
        body = {"999999999": {"success": False}}
        respx.get(STEAM_DETAILS_URL).mock(return_value=httpx.Response(200, json=body))

        async with SteamStoreClient() as steam:
            result = await steam.extract(app_id=999999999)

        assert result.success is False
        assert result.error_message is not None
        assert "success=false" in result.error_message
        assert result.raw_response == body

    @respx.mock
    @pytest.mark.asyncio
    async def test_extract_server_error(self) -> None:
        """Test that 5xx responses are retried, then reported."""
        route = respx.get(STEAM_DETAILS_URL).mock(return_value=httpx.Response(500))

        async with SteamStoreClient() as steam:
            result = await steam.extract(app_id=620)

        assert result.success is False
        assert result.raw_response is None
        assert route.call_count == 3

    @respx.mock
    @pytest.mark.asyncio
    async def test_retry_then_success(self, store_response: dict[str, Any]) -> None:
        """Test a 429 followed by a success."""
        respx.get(STEAM_DETAILS_URL).mock(
            side_effect=[httpx.Response(429), httpx.Response(200, json=store_response)]
        )

        async with SteamStoreClient() as steam:
            result = await steam.extract(app_id=620)

        assert result.success is True


class TestGeForceNowClient:
    """Integration tests for the GeForce NOW client."""

    def test_query_pages(self) -> None:
        """Test every page is requested through an aliased field."""
        query = build_game_list_query(GeForceNowConfig(page_size=1300, max_pages=3))

        assert "page1: apps(" in query
        assert 'after:"MTMwMA=="' in query  # base64("1300")
        assert 'after:"MjYwMA=="' in query  # base64("2600")
        assert "storeId" in query

    @respx.mock
    @pytest.mark.asyncio
    async def test_extract_success(self) -> None:
        respx.post(GFN_URL).mock(
            return_value=httpx.Response(200, json=load_fixture("geforce_now_response.json"))
        )

        async with GeForceNowClient() as gfn:
            result = await gfn.extract()

        assert result.success is True
        assert result.data == [570, 620, 730, 1091500]

    @respx.mock
    @pytest.mark.asyncio
    async def test_extract_too_few_games(self) -> None:
        """Test that a suspiciously small list is refused."""
        respx.post(GFN_URL).mock(
            return_value=httpx.Response(200, json=load_fixture("geforce_now_response.json"))
        )

        async with GeForceNowClient(config=GeForceNowConfig(min_expected_games=1000)) as gfn:
            result = await gfn.extract()

        assert result.success is False
        assert result.error_message is not None
        assert "decrease" in result.error_message


class TestDatoCMSClient:
    """Integration tests for the DatoCMS client."""

    def test_missing_token(self) -> None:
        """Test that a client cannot be built without credentials."""
        with pytest.raises(SetupError, match="DATOCMS_API_TOKEN"):
            DatoCMSClient(config=DatoCMSConfig(api_token=None))

    @respx.mock
    @pytest.mark.asyncio
    async def test_list_records_pages(self, dato_config: DatoCMSConfig) -> None:
        """Test that every page of the listing is fetched."""

        def page(request: httpx.Request) -> httpx.Response:
            offset = int(request.url.params["page[offset]"])
            size = min(200, 450 - offset)
            rows = [
                {"id": f"rec-{offset + i}", "type": "item", "attributes": {"steam_id": str(offset + i)}}
                for i in range(size)
            ]
            return httpx.Response(200, json={"data": rows, "meta": {"total_count": 450}})

        route = respx.get(f"{DATO_URL}/items").mock(side_effect=page)

        async with DatoCMSClient(config=dato_config) as dato:
            rows = await dato.list_records("game")

        assert len(rows) == 450
        assert [row.id for row in rows[:2]] == ["rec-0", "rec-1"]
        assert rows[-1].id == "rec-449"
        assert route.call_count == 3
        request = route.calls[0].request
        assert request.url.params["filter[type]"] == "game"
        assert request.headers["Authorization"] == "Bearer test_token_123"
        assert request.headers["X-Api-Version"] == "3"

    @respx.mock
    @pytest.mark.asyncio
    async def test_create_record(self, dato_config: DatoCMSConfig) -> None:
        """Test record creation with its model relationship."""
        route = respx.post(f"{DATO_URL}/items").mock(
            return_value=httpx.Response(201, json=load_fixture("datocms_item.json"))
        )

        async with DatoCMSClient(config=dato_config) as dato:
            record_id = await dato.create_record(
                {"steam_id": "620", "title": "Portal 2"},
                item_type_id="MD-Tx1HTQdyQtR5kV5zN5Q",
            )

        assert record_id == "FCrQJ4B3Q3q1mcRWdFN1kA"
        payload = json.loads(route.calls.last.request.content)
        assert payload["data"]["attributes"]["steam_id"] == "620"
        assert payload["data"]["relationships"]["item_type"]["data"]["id"] == "MD-Tx1HTQdyQtR5kV5zN5Q"

    @respx.mock
    @pytest.mark.asyncio
    async def test_writes_are_not_retried(self, dato_config: DatoCMSConfig) -> None:
        """Test that a failed write is attempted exactly once."""
        route = respx.put(f"{DATO_URL}/items/rec-1").mock(return_value=httpx.Response(503))

        async with DatoCMSClient(config=dato_config) as dato:
            with pytest.raises(APIError):
                await dato.update_record("rec-1", {"title": "X"})

        assert route.call_count == 1

    @respx.mock
    @pytest.mark.asyncio
    async def test_update_record(self, dato_config: DatoCMSConfig) -> None:
        route = respx.put(f"{DATO_URL}/items/rec-1").mock(
            return_value=httpx.Response(200, json=load_fixture("datocms_item.json"))
        )

        async with DatoCMSClient(config=dato_config) as dato:
            await dato.update_record("rec-1", {"title": "Portal 2"})

        payload = json.loads(route.calls.last.request.content)
        assert payload == {"data": {"type": "item", "id": "rec-1", "attributes": {"title": "Portal 2"}}}

    @respx.mock
    @pytest.mark.asyncio
    async def test_upload_reuses_existing(self, dato_config: DatoCMSConfig) -> None:
        """Test that an upload with the same filename is reused."""
        respx.get(f"{DATO_URL}/uploads").mock(
            return_value=httpx.Response(
                200,
                json={
                    "data": [
                        {"id": "up-other", "attributes": {"filename": "620-capsule-old.jpg"}},
                        {"id": "up-1", "attributes": {"filename": "620-capsule.jpg"}},
                    ]
                },
            )
        )
        image = respx.get(IMAGE_URL)

        async with DatoCMSClient(config=dato_config) as dato:
            upload_id = await dato.upload_from_url(IMAGE_URL, "620-capsule.jpg")

        assert upload_id == "up-1"
        assert image.call_count == 0

    @respx.mock
    @pytest.mark.asyncio
    async def test_upload_full_flow(self, dato_config: DatoCMSConfig) -> None:
        """Test download, signed push, creation and job polling."""
        respx.get(f"{DATO_URL}/uploads").mock(return_value=httpx.Response(200, json={"data": []}))
        respx.get(IMAGE_URL).mock(return_value=httpx.Response(200, content=b"\xff\xd8jpeg"))
        respx.post(f"{DATO_URL}/upload-requests").mock(
            return_value=httpx.Response(
                200,
                json={
                    "data": {
                        "id": "/12345/620-capsule.jpg",
                        "type": "upload_request",
                        "attributes": {
                            "url": SIGNED_URL,
                            "request_headers": {"Content-Type": "image/jpeg"},
                        },
                    }
                },
            )
        )
        push = respx.put(SIGNED_URL).mock(return_value=httpx.Response(200))
        create = respx.post(f"{DATO_URL}/uploads").mock(
            return_value=httpx.Response(202, json={"data": {"id": "job-1", "type": "job"}})
        )
        job = respx.get(f"{DATO_URL}/job-results/job-1").mock(
            side_effect=[
                httpx.Response(404),
                httpx.Response(
                    200,
                    json={
                        "data": {
                            "id": "job-1",
                            "type": "job_result",
                            "attributes": {
                                "status": 201,
                                "payload": {"data": {"id": "up-9", "type": "upload"}},
                            },
                        }
                    },
                ),
            ]
        )

        async with DatoCMSClient(config=dato_config) as dato:
            upload_id = await dato.upload_from_url(IMAGE_URL, "620-capsule.jpg")

        assert upload_id == "up-9"
        assert job.call_count == 2

        pushed = push.calls.last.request
        assert pushed.content == b"\xff\xd8jpeg"
        assert pushed.headers["Content-Type"] == "image/jpeg"
        assert "Authorization" not in pushed.headers

        created = json.loads(create.calls.last.request.content)
        assert created["data"]["attributes"]["path"] == "/12345/620-capsule.jpg"

    @respx.mock
    @pytest.mark.asyncio
    async def test_upload_job_failure(self, dato_config: DatoCMSConfig) -> None:
        """Test that a failed creation job surfaces as an error."""
        respx.post(f"{DATO_URL}/uploads").mock(
            return_value=httpx.Response(202, json={"data": {"id": "job-2", "type": "job"}})
        )
        respx.get(IMAGE_URL).mock(return_value=httpx.Response(200, content=b"img"))
        respx.post(f"{DATO_URL}/upload-requests").mock(
            return_value=httpx.Response(
                200,
                json={"data": {"id": "/1/x.jpg", "attributes": {"url": SIGNED_URL}}},
            )
        )
        respx.put(SIGNED_URL).mock(return_value=httpx.Response(200))
        respx.get(f"{DATO_URL}/job-results/job-2").mock(
            return_value=httpx.Response(
                200,
                json={"data": {"id": "job-2", "attributes": {"status": 422, "payload": {}}}},
            )
        )

        async with DatoCMSClient(config=dato_config) as dato:
            with pytest.raises(APIError, match="422"):
                await dato.upload_from_url(IMAGE_URL, "x.jpg", skip_if_exists=False)

    @respx.mock
    @pytest.mark.asyncio
    async def test_shared_request_window(self, dato_config: DatoCMSConfig) -> None:
        """Test that clients sharing a limiter share one request window, retries included."""
        stamps: list[float] = []

        def listing(request: httpx.Request) -> httpx.Response:
            stamps.append(time.monotonic())
            if len(stamps) == 1:
                return httpx.Response(503)
            return httpx.Response(200, json={"data": [], "meta": {"total_count": 0}})

        respx.get(f"{DATO_URL}/items").mock(side_effect=listing)
        limiter = SlidingWindowLimiter(2, 0.3)

        async with DatoCMSClient(config=dato_config, limiter=limiter) as first, DatoCMSClient(
            config=dato_config, limiter=limiter
        ) as second:
            await first.list_records("game")
            await second.list_records("game")

        assert len(stamps) == 3
        assert stamps[2] - stamps[0] >= 0.3 - 0.05

    @respx.mock
    @pytest.mark.asyncio
    async def test_image_hosts_not_counted(self, dato_config: DatoCMSConfig) -> None:
        """Test that only CMA requests take a slot in the request window."""
        respx.get(IMAGE_URL).mock(return_value=httpx.Response(200, content=b"img"))
        limiter = SlidingWindowLimiter(1, 10.0)

        async with DatoCMSClient(config=dato_config, limiter=limiter) as dato:
            start = time.monotonic()
            for _ in range(3):
                await dato._make_request("GET", IMAGE_URL)

        assert time.monotonic() - start < 1.0


class TestUploadFilename:
    """Tests for upload naming."""

    def test_keeps_extension(self) -> None:
        assert upload_filename("620-capsule", IMAGE_URL) == "620-capsule.jpg"

    def test_no_extension(self) -> None:
        assert upload_filename("620-header", "https://example.com/image") == "620-header"
