"""
Upsert orchestrator that reconciles the catalog into DatoCMS.

Builds one task per catalog key, runs the tasks through the
rate-limited scheduler, and folds per-task outcomes into a run result
that tells partial failure apart from total failure.
"""

from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol
from uuid import UUID, uuid4

from steam_catalog_sync.catalog.diff import CatalogDiff
from steam_catalog_sync.ingestion.clients.datocms import upload_filename
from steam_catalog_sync.ingestion.utils.scheduler import (
    RateLimitedScheduler,
    SchedulerReport,
    TaskStatus,
)
from steam_catalog_sync.logger import get_logger
from steam_catalog_sync.storage.local import LocalCatalogStore
from steam_catalog_sync.transformation.derivation import (
    DEFAULT_REFERENCE_TIMEZONE,
    derive_fields,
)

# (attribute, source field on the detail record, filename suffix)
IMAGE_FIELDS: tuple[tuple[str, str, str], ...] = (
    ("capsule_image", "capsule_image", "capsule"),
    ("header_image", "header_image", "header"),
)


class Destination(Protocol):
    """Write side of the destination store."""

    async def create_record(self, attributes: dict[str, Any], *, item_type_id: str) -> str: ...

    async def update_record(self, record_id: str, attributes: dict[str, Any]) -> None: ...

    async def upload_from_url(self, url: str, filename: str, *, skip_if_exists: bool = True) -> str: ...


class UpsertMode(str, Enum):
    CREATE = "create"
    UPDATE = "update"


class UpsertOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class SyncStatus(str, Enum):
    """Overall result of a sync run."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class UpsertTask:
    """One write against one catalog key."""

    app_id: int
    mode: UpsertMode
    record_id: str | None = None
    refresh_images: bool = False

    @property
    def uploads_images(self) -> bool:
        return self.mode is UpsertMode.CREATE or self.refresh_images


@dataclass
class SyncResult:
    """Result of a complete sync run."""

    run_id: UUID
    started_at: datetime
    completed_at: datetime
    total_tasks: int
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    timed_out: int = 0
    not_cached: list[int] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def written(self) -> int:
        return self.created + self.updated

    @property
    def status(self) -> SyncStatus:
        if not self.failed and not self.timed_out:
            return SyncStatus.SUCCESS
        # Partial means at least one write landed; skipped tasks wrote nothing
        if self.written:
            return SyncStatus.PARTIAL
        return SyncStatus.FAILED

    @property
    def success_rate(self) -> float:
        """Share of tasks that settled without a fault."""
        if self.total_tasks == 0:
            return 100.0
        return ((self.total_tasks - self.failed - self.timed_out) / self.total_tasks) * 100

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": str(self.run_id),
            "status": self.status.value,
            "total_tasks": self.total_tasks,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "timed_out": self.timed_out,
            "not_cached": self.not_cached,
            "success_rate": round(self.success_rate, 2),
            "duration_seconds": round(self.duration_seconds, 2),
            "errors": self.errors,
        }


class UpsertOrchestrator:
    """
    Creates missing records and refreshes existing ones.

    Create tasks always upload the capsule and header images. Update
    tasks rewrite every derived field but leave images alone unless
    ``refresh_images`` is requested.
    """

    def __init__(
        self,
        *,
        destination: Destination,
        store: LocalCatalogStore,
        availability: Collection[int],
        scheduler: RateLimitedScheduler,
        item_type_id: str,
        reference_timezone: str = DEFAULT_REFERENCE_TIMEZONE,
    ) -> None:
        self._destination = destination
        self._store = store
        self._availability = availability
        self._scheduler = scheduler
        self._item_type_id = item_type_id
        self._reference_timezone = reference_timezone
        self._logger = get_logger(__name__, component="orchestrator")

    def build_tasks(
        self,
        diff: CatalogDiff,
        index: Mapping[int, str],
        *,
        refresh_images: bool = False,
    ) -> tuple[list[UpsertTask], list[int]]:
        """
        Build one task per key that has a cached detail record.

        Returns:
            The tasks, and the keys skipped for lack of a detail record
        """
        tasks: list[UpsertTask] = []
        not_cached: list[int] = []

        for app_id in diff.to_create:
            if not self._store.has_detail(app_id):
                not_cached.append(app_id)
                continue
            tasks.append(UpsertTask(app_id=app_id, mode=UpsertMode.CREATE))

        for app_id in diff.to_update:
            if not self._store.has_detail(app_id):
                not_cached.append(app_id)
                continue
            tasks.append(
                UpsertTask(
                    app_id=app_id,
                    mode=UpsertMode.UPDATE,
                    record_id=index[app_id],
                    refresh_images=refresh_images,
                )
            )

        if not_cached:
            self._logger.info("Skipping keys without detail records", count=len(not_cached))
        return tasks, not_cached

    async def _upload_images(self, app_id: int, detail: dict[str, Any]) -> dict[str, Any]:
        images: dict[str, Any] = {}
        for attribute, source_field, suffix in IMAGE_FIELDS:
            url = detail.get(source_field)
            if not url:
                continue
            upload_id = await self._destination.upload_from_url(
                url,
                upload_filename(f"{app_id}-{suffix}", url),
                skip_if_exists=True,
            )
            images[attribute] = {"upload_id": upload_id}
        return images

    def build_attributes(self, app_id: int, detail: dict[str, Any]) -> dict[str, Any]:
        """Derive the full field set written for ``app_id``."""
        return derive_fields(
            detail,
            self._availability,
            app_id=app_id,
            reference_timezone=self._reference_timezone,
        ).to_attributes()

    async def execute(self, task: UpsertTask) -> UpsertOutcome:
        """
        Run one task: derive fields, upload images if due, then write.

        Raises whatever the derivation or the destination raises; the
        scheduler records it against this task only.
        """
        detail = self._store.load_detail(task.app_id)
        if detail is None:
            self._logger.info("No detail record, skipping", app_id=task.app_id)
            return UpsertOutcome.SKIPPED

        attributes = self.build_attributes(task.app_id, detail)

        if task.uploads_images:
            attributes.update(await self._upload_images(task.app_id, detail))

        if task.mode is UpsertMode.CREATE:
            await self._destination.create_record(attributes, item_type_id=self._item_type_id)
            return UpsertOutcome.CREATED

        if task.record_id is None:
            raise ValueError(f"Update task for {task.app_id} has no record id")
        await self._destination.update_record(task.record_id, attributes)
        return UpsertOutcome.UPDATED

    def _work_item(self, task: UpsertTask) -> Callable[[], Any]:
        async def work() -> UpsertOutcome:
            return await self.execute(task)

        return work

    async def run(
        self,
        diff: CatalogDiff,
        index: Mapping[int, str],
        *,
        refresh_images: bool = False,
    ) -> SyncResult:
        """
        Reconcile every key of ``diff`` into the destination.

        Args:
            diff: Keys to create and keys to update
            index: Destination index the diff was computed from
            refresh_images: Re-upload images on update tasks too

        Returns:
            SyncResult: Counts per outcome and per-task error rows
        """
        run_id = uuid4()
        started_at = datetime.now(timezone.utc)
        tasks, not_cached = self.build_tasks(diff, index, refresh_images=refresh_images)

        self._logger.info(
            "Starting sync",
            run_id=str(run_id),
            create_tasks=sum(1 for t in tasks if t.mode is UpsertMode.CREATE),
            update_tasks=sum(1 for t in tasks if t.mode is UpsertMode.UPDATE),
            refresh_images=refresh_images,
        )

        report: SchedulerReport[UpsertOutcome] = await self._scheduler.run(
            [self._work_item(task) for task in tasks],
            keys=[task.app_id for task in tasks],
        )

        result = SyncResult(
            run_id=run_id,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            total_tasks=len(tasks),
            not_cached=not_cached,
        )
        for task, outcome in zip(tasks, report.outcomes):
            if outcome.status is TaskStatus.SUCCEEDED:
                if outcome.result is UpsertOutcome.CREATED:
                    result.created += 1
                elif outcome.result is UpsertOutcome.UPDATED:
                    result.updated += 1
                else:
                    result.skipped += 1
                continue

            if outcome.status is TaskStatus.TIMED_OUT:
                result.timed_out += 1
            else:
                result.failed += 1
            result.errors.append(
                {
                    "app_id": task.app_id,
                    "mode": task.mode.value,
                    "status": outcome.status.value,
                    "error": outcome.error,
                }
            )

        self._logger.info(
            "Sync complete",
            run_id=str(run_id),
            status=result.status.value,
            created=result.created,
            updated=result.updated,
            skipped=result.skipped,
            failed=result.failed,
            timed_out=result.timed_out,
            duration_seconds=round(result.duration_seconds, 2),
        )
        return result
