"""
Command-line interface for the Steam catalog sync.

Provides commands for each pipeline stage and for inspecting
single records while debugging.
"""

import asyncio
import json
import sys
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from steam_catalog_sync.config import get_settings
from steam_catalog_sync.exceptions import SetupError
from steam_catalog_sync.logger import get_logger, setup_logging

# Initialize logging
setup_logging()
logger = get_logger(__name__, component="cli")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PARTIAL = 2


class CLIOutput(BaseModel):
    """Structured output for CLI commands."""

    success: bool
    command: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    data: dict[str, Any] | list[Any] | None = None
    error: str | None = None


def print_json(output: CLIOutput) -> None:
    """Print output as formatted JSON."""
    print(json.dumps(output.model_dump(), indent=2, default=str))


def print_progress(snapshot: Any) -> None:
    """Render scheduler progress on stderr."""
    print(
        f"\r  Queue Size: {snapshot.queued}  Pending: {snapshot.in_flight}  "
        f"Done: {snapshot.completed}     ",
        end="",
        file=sys.stderr,
        flush=True,
    )


async def cmd_test_config() -> int:
    """Test configuration loading."""
    settings = get_settings()

    output = CLIOutput(
        success=True,
        command="test-config",
        data={
            "environment": settings.environment,
            "steam_store_url": settings.steam.store_url,
            "steam_caps": {
                "concurrency": settings.steam.concurrency,
                "interval_cap": settings.steam.interval_cap,
                "interval_seconds": settings.steam.interval_seconds,
            },
            "datocms_base_url": settings.datocms.base_url,
            "datocms_caps": {
                "concurrency": settings.datocms.concurrency,
                "interval_cap": settings.datocms.interval_cap,
                "interval_seconds": settings.datocms.interval_seconds,
            },
            "data_dir": str(settings.paths.data_dir),
            "api_token_configured": settings.datocms.api_token is not None,
        },
    )
    print_json(output)
    return EXIT_OK


async def cmd_parse_catalog() -> int:
    """Extract catalog keys from the curated document."""
    from steam_catalog_sync.sync.pipeline import run_parse_catalog

    app_ids = run_parse_catalog(get_settings())
    print_json(CLIOutput(success=True, command="parse-catalog", data={"count": len(app_ids)}))
    return EXIT_OK


async def cmd_fetch_availability() -> int:
    """Fetch the GeForce NOW availability set."""
    from steam_catalog_sync.sync.pipeline import run_fetch_availability

    result = await run_fetch_availability(get_settings())
    print_json(
        CLIOutput(
            success=result.success,
            command="fetch-availability",
            data={"count": len(result.data or [])},
            error=result.error_message,
        )
    )
    return EXIT_OK if result.success else EXIT_FAILED


async def cmd_fetch_details(only_missing: bool) -> int:
    """Fetch and cache Steam details for every catalog key."""
    from steam_catalog_sync.sync.pipeline import run_fetch_details

    summary = await run_fetch_details(
        get_settings(),
        only_missing=only_missing,
        on_progress=print_progress,
    )
    print(file=sys.stderr)

    faults = summary.failed + summary.timed_out
    print_json(CLIOutput(success=faults == 0, command="fetch-details", data=summary.to_dict()))
    if faults == 0:
        return EXIT_OK
    return EXIT_PARTIAL if summary.fetched else EXIT_FAILED


async def cmd_extract_store(app_id: int) -> int:
    """Fetch one app's details without caching them."""
    from steam_catalog_sync.ingestion.clients import SteamStoreClient

    logger.info("Extracting store data", app_id=app_id)

    async with SteamStoreClient() as steam:
        result = await steam.extract(app_id=app_id)

    print_json(
        CLIOutput(
            success=result.success,
            command="extract-store",
            data=result.data.model_dump() if result.data else None,
            error=result.error_message,
        )
    )
    return EXIT_OK if result.success else EXIT_FAILED


async def cmd_derive(app_id: int) -> int:
    """Show the destination fields derived from a cached record."""
    from steam_catalog_sync.storage.local import LocalCatalogStore
    from steam_catalog_sync.transformation.derivation import derive_fields

    settings = get_settings()
    store = LocalCatalogStore(settings.paths)
    detail = store.load_detail(app_id)
    if detail is None:
        print_json(CLIOutput(success=False, command="derive", error=f"No detail record for {app_id}"))
        return EXIT_FAILED

    fields = derive_fields(
        detail,
        store.load_availability(),
        app_id=app_id,
        reference_timezone=settings.sync.reference_timezone,
    )
    data = fields.to_attributes()
    data.pop("steam_json")
    print_json(CLIOutput(success=True, command="derive", data=data))
    return EXIT_OK


async def cmd_diff() -> int:
    """Show which keys would be created and which updated."""
    from steam_catalog_sync.sync.pipeline import run_diff

    diff = await run_diff(get_settings())
    print_json(CLIOutput(success=True, command="diff", data=diff.to_dict()))
    return EXIT_OK


async def cmd_sync(refresh_images: bool) -> int:
    """Run the full reconciliation into DatoCMS."""
    from steam_catalog_sync.sync.orchestrator import SyncStatus
    from steam_catalog_sync.sync.pipeline import run_sync

    result = await run_sync(
        get_settings(),
        refresh_images=refresh_images,
        on_progress=print_progress,
    )
    print(file=sys.stderr)

    print_json(
        CLIOutput(
            success=result.status is SyncStatus.SUCCESS,
            command="sync",
            data=result.to_dict(),
        )
    )
    return {
        SyncStatus.SUCCESS: EXIT_OK,
        SyncStatus.PARTIAL: EXIT_PARTIAL,
        SyncStatus.FAILED: EXIT_FAILED,
    }[result.status]


def print_usage() -> None:
    """Print CLI usage information."""
    usage = """
Steam Catalog Sync CLI
======================

Usage: steam-catalog-sync <command> [arguments]

Commands:
  test-config                     Test configuration loading
  parse-catalog                   Extract Steam app ids from the curated README
  fetch-availability              Fetch the GeForce NOW availability set
  fetch-details [--only-missing]  Fetch and cache Steam details for the catalog
  extract-store <app_id>          Fetch one app's Steam details
  derive <app_id>                 Show derived fields for a cached app
  diff                            Show records to create and to update
  sync [--refresh-images]         Create and update records in DatoCMS

Exit codes:
  0  success
  1  setup fault or total failure
  2  partial failure (some tasks failed or timed out)
"""
    print(usage)


def _app_id_arg() -> int:
    if len(sys.argv) < 3:
        print("Error: app_id required")
        sys.exit(EXIT_FAILED)
    return int(sys.argv[2])


def main() -> None:
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        print_usage()
        sys.exit(EXIT_FAILED)

    command = sys.argv[1]
    flags = set(sys.argv[2:])

    try:
        if command == "test-config":
            code = asyncio.run(cmd_test_config())
        elif command == "parse-catalog":
            code = asyncio.run(cmd_parse_catalog())
        elif command == "fetch-availability":
            code = asyncio.run(cmd_fetch_availability())
        elif command == "fetch-details":
            code = asyncio.run(cmd_fetch_details("--only-missing" in flags))
        elif command == "extract-store":
            code = asyncio.run(cmd_extract_store(_app_id_arg()))
        elif command == "derive":
            code = asyncio.run(cmd_derive(_app_id_arg()))
        elif command == "diff":
            code = asyncio.run(cmd_diff())
        elif command == "sync":
            code = asyncio.run(cmd_sync("--refresh-images" in flags))
        elif command in ("help", "--help", "-h"):
            print_usage()
            code = EXIT_OK
        else:
            print(f"Unknown command: {command}")
            print_usage()
            code = EXIT_FAILED

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(130)
    except SetupError as e:
        logger.error("Setup failed", command=command, error=str(e))
        print_json(CLIOutput(success=False, command=command, error=str(e)))
        sys.exit(EXIT_FAILED)
    except Exception as e:
        logger.exception("CLI error", error=str(e))
        print_json(CLIOutput(success=False, command=command, error=str(e)))
        sys.exit(EXIT_FAILED)

    sys.exit(code)


if __name__ == "__main__":
    main()
