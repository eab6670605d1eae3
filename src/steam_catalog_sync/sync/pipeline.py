"""
Run-level flows wiring sources, storage, scheduler and destination.

Each flow performs its setup first (loading files, building the
destination index) and lets any SetupError propagate before a single
task is scheduled.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from steam_catalog_sync.catalog.diff import CatalogDiff, compute_diff
from steam_catalog_sync.catalog.index import build_destination_index
from steam_catalog_sync.catalog.sources import read_catalog_document
from steam_catalog_sync.config import Settings
from steam_catalog_sync.exceptions import SetupError
from steam_catalog_sync.ingestion.clients import (
    DatoCMSClient,
    ExtractionResult,
    GeForceNowClient,
    SteamStoreClient,
)
from steam_catalog_sync.ingestion.contracts import SteamStoreGame
from steam_catalog_sync.ingestion.utils.scheduler import (
    RateLimitedScheduler,
    SchedulerConfig,
    SchedulerSnapshot,
    TaskStatus,
)
from steam_catalog_sync.logger import get_logger
from steam_catalog_sync.storage.local import LocalCatalogStore
from steam_catalog_sync.sync.orchestrator import SyncResult, UpsertOrchestrator

logger = get_logger(__name__, component="pipeline")

ProgressCallback = Callable[[SchedulerSnapshot], None]


@dataclass
class DetailFetchResult:
    """Result of a detail fetch run."""

    requested: int
    fetched: int = 0
    unavailable: int = 0
    failed: int = 0
    timed_out: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "requested": self.requested,
            "fetched": self.fetched,
            "unavailable": self.unavailable,
            "failed": self.failed,
            "timed_out": self.timed_out,
            "errors": self.errors,
        }


def run_parse_catalog(settings: Settings) -> list[int]:
    """Extract catalog keys from the curated document and store them."""
    app_ids = read_catalog_document(settings.paths.readme_path)
    LocalCatalogStore(settings.paths).save_catalog_keys(app_ids)
    return app_ids


async def run_fetch_availability(settings: Settings) -> ExtractionResult[list[int]]:
    """Fetch the GeForce NOW availability set and store it when complete."""
    async with GeForceNowClient(config=settings.geforce_now, retry_config=settings.retry) as gfn:
        result = await gfn.extract()

    if result.success and result.data is not None:
        LocalCatalogStore(settings.paths).save_availability(result.data)
    return result


async def run_fetch_details(
    settings: Settings,
    *,
    only_missing: bool = False,
    on_progress: ProgressCallback | None = None,
) -> DetailFetchResult:
    """
    Fetch Steam details for every catalog key and cache the raw responses.

    Args:
        settings: Application settings
        only_missing: Skip keys that already have a cached response
        on_progress: Scheduler progress observer
    """
    store = LocalCatalogStore(settings.paths)
    app_ids = store.load_catalog_keys()
    if only_missing:
        app_ids = [app_id for app_id in app_ids if not store.has_detail(app_id)]

    logger.info("Fetching details", total=len(app_ids), only_missing=only_missing)
    scheduler = RateLimitedScheduler(
        SchedulerConfig.from_settings(settings.steam),
        on_progress=on_progress,
    )

    async with SteamStoreClient(config=settings.steam, retry_config=settings.retry) as steam:

        def fetch(app_id: int) -> Callable[[], Any]:
            async def work() -> ExtractionResult[SteamStoreGame]:
                result = await steam.extract(app_id)
                if result.raw_response is not None:
                    store.save_detail(app_id, result.raw_response)
                return result

            return work

        report = await scheduler.run([fetch(app_id) for app_id in app_ids], keys=app_ids)

    summary = DetailFetchResult(requested=len(app_ids))
    for outcome in report.outcomes:
        result = outcome.result
        if outcome.status is TaskStatus.SUCCEEDED and result is not None:
            if result.success:
                summary.fetched += 1
            elif result.raw_response is not None:
                # Cached as-is; the sync treats it as a missing record
                summary.unavailable += 1
            else:
                summary.failed += 1
                summary.errors.append(
                    {"app_id": outcome.key, "status": "failed", "error": result.error_message}
                )
            continue

        if outcome.status is TaskStatus.TIMED_OUT:
            summary.timed_out += 1
        else:
            summary.failed += 1
        summary.errors.append(
            {"app_id": outcome.key, "status": outcome.status.value, "error": outcome.error}
        )

    logger.info(
        "Detail fetch complete",
        requested=summary.requested,
        fetched=summary.fetched,
        unavailable=summary.unavailable,
        failed=summary.failed,
        timed_out=summary.timed_out,
    )
    return summary


async def run_diff(settings: Settings) -> CatalogDiff:
    """Compute the create/update split without writing anything."""
    keys = LocalCatalogStore(settings.paths).load_catalog_keys()
    async with DatoCMSClient(config=settings.datocms, retry_config=settings.retry) as dato:
        index = await build_destination_index(dato, settings.datocms.model_type)
    return compute_diff(keys, index)


async def run_sync(
    settings: Settings,
    *,
    refresh_images: bool = False,
    on_progress: ProgressCallback | None = None,
) -> SyncResult:
    """
    Reconcile the cached catalog into DatoCMS.

    Raises:
        SetupError: If keys, availability or the destination index
            cannot be loaded; nothing has been written in that case
    """
    store = LocalCatalogStore(settings.paths)
    keys = store.load_catalog_keys()
    availability = store.load_availability()
    if not keys:
        raise SetupError("Catalog is empty; run parse-catalog first")

    async with DatoCMSClient(config=settings.datocms, retry_config=settings.retry) as dato:
        index = await build_destination_index(dato, settings.datocms.model_type)
        diff = compute_diff(keys, index)

        orchestrator = UpsertOrchestrator(
            destination=dato,
            store=store,
            availability=availability,
            scheduler=RateLimitedScheduler(
                SchedulerConfig.from_settings(settings.datocms),
                on_progress=on_progress,
            ),
            item_type_id=settings.datocms.item_type_id,
            reference_timezone=settings.sync.reference_timezone,
        )
        return await orchestrator.run(diff, index, refresh_images=refresh_images)
