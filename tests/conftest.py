"""Shared fixtures."""

import json
import os
from pathlib import Path
from typing import Any, cast
from unittest.mock import patch

import pytest

from steam_catalog_sync.config import get_settings

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> dict[str, Any]:
    """Load a JSON fixture file."""
    with (FIXTURES_DIR / name).open(encoding="utf-8") as f:
        return cast(dict[str, Any], json.load(f))


@pytest.fixture(autouse=True)
def mock_env(tmp_path: Path) -> Any:
    """Isolated environment with instant retries and a temporary data dir."""
    with patch.dict(
        os.environ,
        {
            "DATOCMS_API_TOKEN": "test_token_123",
            "CATALOG_DATA_DIR": str(tmp_path / "outputs"),
            "CATALOG_README_PATH": str(tmp_path / "README.md"),
            "RETRY_BASE_DELAY_SECONDS": "0",
            "RETRY_MAX_DELAY_SECONDS": "0",
            "GFN_MIN_EXPECTED_GAMES": "1",
        },
    ):
        get_settings.cache_clear()
        yield
    get_settings.cache_clear()


@pytest.fixture
def store_response() -> dict[str, Any]:
    """Steam Store API response for Portal 2."""
    return load_fixture("steam_store_response.json")


@pytest.fixture
def portal_detail(store_response: dict[str, Any]) -> dict[str, Any]:
    """The data block of the Portal 2 response."""
    return cast(dict[str, Any], store_response["620"]["data"])
