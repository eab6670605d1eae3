"""Curated catalog key extraction from the markdown game list."""

import re
from pathlib import Path

from steam_catalog_sync.exceptions import SetupError

STEAM_APP_LINK = re.compile(r"store\.steampowered\.com/app/(\d+)", re.IGNORECASE)


def extract_app_ids(markdown: str) -> list[int]:
    """Return Steam app ids linked from the document, first occurrence order."""
    seen: dict[int, None] = {}
    for match in STEAM_APP_LINK.finditer(markdown):
        seen.setdefault(int(match.group(1)), None)
    return list(seen)


def read_catalog_document(path: Path) -> list[int]:
    """
    Extract catalog keys from the curated document on disk.

    Raises:
        SetupError: If the document is missing or lists no games
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SetupError(f"Cannot read catalog document {path}: {e}") from e

    app_ids = extract_app_ids(text)
    if not app_ids:
        raise SetupError(f"No Steam store links found in {path}")
    return app_ids
