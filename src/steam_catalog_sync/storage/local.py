"""
Local JSON storage for pipeline inputs and intermediate results.

Layout under ``data_dir``:
- steamIds.json: curated catalog keys, in document order
- games-on-geforce-now.json: sorted availability set
- steamDetails/<app_id>.json: raw appdetails responses, one per app
"""

import json
from pathlib import Path
from typing import Any

from steam_catalog_sync.config import PathsConfig, get_settings
from steam_catalog_sync.exceptions import SetupError
from steam_catalog_sync.ingestion.contracts import SteamStoreAPIResponse
from steam_catalog_sync.logger import get_logger

AvailabilitySet = frozenset[int]


class LocalCatalogStore:
    """
    Reads and writes the pipeline's JSON files.

    Example:
        >>> store = LocalCatalogStore()
        >>> store.save_detail(570, raw_response)
        >>> store.load_detail(570)["name"]
        'Dota 2'
    """

    def __init__(self, paths: PathsConfig | None = None) -> None:
        """
        Initialize the store.

        Args:
            paths: File locations (defaults to settings)
        """
        self._paths = paths or get_settings().paths
        self._logger = get_logger(__name__, component="local_store")

    @property
    def paths(self) -> PathsConfig:
        return self._paths

    def _write_json(self, path: Path, payload: Any) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        return path

    def _read_json(self, path: Path) -> Any:
        with path.open(encoding="utf-8") as f:
            return json.load(f)

    def _read_id_list(self, path: Path, label: str) -> list[int]:
        try:
            raw = self._read_json(path)
        except FileNotFoundError as e:
            raise SetupError(f"{label} file not found: {path}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise SetupError(f"{label} file is unreadable: {path}: {e}") from e

        if not isinstance(raw, list):
            raise SetupError(f"{label} file must contain a JSON array: {path}")
        try:
            return [int(value) for value in raw]
        except (TypeError, ValueError) as e:
            raise SetupError(f"{label} file contains a non-numeric id: {path}") from e

    # Catalog keys

    def save_catalog_keys(self, app_ids: list[int]) -> Path:
        path = self._write_json(self._paths.keys_file, app_ids)
        self._logger.info("Saved catalog keys", path=str(path), count=len(app_ids))
        return path

    def load_catalog_keys(self) -> list[int]:
        """
        Load curated catalog keys in document order.

        Raises:
            SetupError: If the file is missing or malformed
        """
        return self._read_id_list(self._paths.keys_file, "Catalog keys")

    # Availability

    def save_availability(self, app_ids: list[int]) -> Path:
        path = self._write_json(self._paths.availability_file, sorted(set(app_ids)))
        self._logger.info("Saved availability set", path=str(path), count=len(app_ids))
        return path

    def load_availability(self) -> AvailabilitySet:
        """
        Load the GeForce NOW availability set.

        Raises:
            SetupError: If the file is missing or malformed
        """
        return frozenset(self._read_id_list(self._paths.availability_file, "Availability"))

    # Detail records

    def detail_path(self, app_id: int) -> Path:
        return self._paths.details_dir / f"{app_id}.json"

    def has_detail(self, app_id: int) -> bool:
        return self.detail_path(app_id).is_file()

    def save_detail(self, app_id: int, raw_response: dict[str, Any]) -> Path:
        """Cache a raw appdetails response verbatim."""
        return self._write_json(self.detail_path(app_id), raw_response)

    def load_detail(self, app_id: int) -> dict[str, Any] | None:
        """
        Load the cached detail record for one app.

        Returns:
            The "data" block of the cached response, or None when no
            usable record exists (never fetched, fetch failed, or the
            store answered success=false)
        """
        path = self.detail_path(app_id)
        try:
            raw = self._read_json(path)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            self._logger.warning("Unreadable detail record", app_id=app_id, error=str(e))
            return None

        if not isinstance(raw, dict) or not isinstance(raw.get(str(app_id)), dict):
            return None
        envelope = SteamStoreAPIResponse.model_validate(raw[str(app_id)])
        if not envelope.success:
            return None
        return envelope.data
