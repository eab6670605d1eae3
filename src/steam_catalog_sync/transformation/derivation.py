"""
Field derivation from Steam detail records.

Turns one nested appdetails record into the flat field set written to
the destination. Tags come from an ordered list of independent rules,
each a membership test against the record's full category or genre id
set, so every matching rule contributes its tag.
"""

import json
from collections.abc import Collection
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from steam_catalog_sync.exceptions import DerivationError
from steam_catalog_sync.ingestion.contracts import SteamStoreGame

DEFAULT_REFERENCE_TIMEZONE = "America/Los_Angeles"

# Steam prints release dates according to the store locale
RELEASE_DATE_FORMATS = (
    "%d %b, %Y",
    "%b %d, %Y",
    "%d %B, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%b %d %Y",
    "%Y-%m-%d",
    "%b %Y",
    "%B %Y",
    "%Y",
)


class IdSource(str, Enum):
    """Which identifier set a rule tests."""

    CATEGORY = "category"
    GENRE = "genre"


@dataclass(frozen=True)
class TagRule:
    """A predicate mapping identifier membership to one boolean field."""

    field: str
    tag: str
    source: IdSource
    ids: frozenset[int | str]

    def matches(self, category_ids: Collection[int], genre_ids: Collection[str]) -> bool:
        present = category_ids if self.source is IdSource.CATEGORY else genre_ids
        return any(identifier in self.ids for identifier in present)


TAG_RULES: tuple[TagRule, ...] = (
    TagRule("is_coop", "coop", IdSource.CATEGORY, frozenset({9, 38})),
    TagRule("is_pvp", "pvp", IdSource.CATEGORY, frozenset({49, 36})),
    TagRule("has_controller_support", "controller", IdSource.CATEGORY, frozenset({28, 18})),
    TagRule("is_early_access", "early_access", IdSource.GENRE, frozenset({"70"})),
    TagRule("is_free_to_play", "free_to_play", IdSource.GENRE, frozenset({"37"})),
)

AVAILABILITY_FIELD = "is_on_geforce_now"
AVAILABILITY_TAG = "gfn"


class DerivedFields(BaseModel):
    """Flat destination field set for one game."""

    steam_id: str
    title: str
    short_description: str
    about_the_game: str
    detailed_description: str
    developers: str
    publishers: str
    is_free: bool
    platform_windows: bool
    platform_mac: bool
    platform_linux: bool
    is_coop: bool
    is_pvp: bool
    has_controller_support: bool
    is_early_access: bool
    is_free_to_play: bool
    is_on_geforce_now: bool
    tags: str
    release_date_raw: str
    release_date: str | None
    steam_json: str

    def to_attributes(self) -> dict[str, Any]:
        """Destination attributes in declaration order."""
        return self.model_dump()


def normalize_release_date(
    raw: str,
    *,
    reference_timezone: str = DEFAULT_REFERENCE_TIMEZONE,
) -> date | None:
    """
    Parse a Steam release date string into a calendar date.

    The store writes release dates as calendar days in ``reference_timezone``.
    The parsed day is returned unchanged; it is never converted to UTC or
    any other zone, so the same string yields the same date wherever the
    sync runs. The zone name is still checked and an unknown one raises.

    Partial dates ("Mar 2024", "2024") resolve to the first day of the
    period. Placeholders such as "Coming soon" or "Q2 2025" yield None.
    """
    text = " ".join(raw.split())
    if not text:
        return None

    ZoneInfo(reference_timezone)
    for fmt in RELEASE_DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return parsed.date()
    return None


def derive_fields(
    raw_detail: dict[str, Any],
    availability: Collection[int],
    *,
    app_id: int | None = None,
    reference_timezone: str = DEFAULT_REFERENCE_TIMEZONE,
) -> DerivedFields:
    """
    Build the destination field set for one detail record.

    Args:
        raw_detail: The "data" block of an appdetails response
        availability: App ids available on GeForce NOW
        app_id: Catalog key (defaults to the record's steam_appid)
        reference_timezone: Timezone for release date normalization

    Returns:
        DerivedFields: Flat field set

    Raises:
        DerivationError: If the record is structurally malformed
    """
    try:
        game = SteamStoreGame.model_validate(raw_detail)
    except PydanticValidationError as e:
        raise DerivationError(f"Malformed detail record: {e}", app_id=app_id) from e

    key = app_id if app_id is not None else game.steam_appid
    if key is None:
        raise DerivationError("Detail record has no steam_appid", app_id=app_id)

    category_ids = game.category_ids
    genre_ids = game.genre_ids

    flags: dict[str, bool] = {}
    tags: list[str] = []
    for rule in TAG_RULES:
        matched = rule.matches(category_ids, genre_ids)
        flags[rule.field] = matched
        if matched:
            tags.append(rule.tag)

    on_geforce_now = key in availability
    if on_geforce_now:
        tags.append(AVAILABILITY_TAG)

    raw_date = game.release_date.date
    normalized = normalize_release_date(raw_date, reference_timezone=reference_timezone)

    return DerivedFields(
        steam_id=str(key),
        title=game.name,
        short_description=game.short_description,
        about_the_game=game.about_the_game,
        detailed_description=game.detailed_description,
        developers=", ".join(game.developers),
        publishers=", ".join(game.publishers),
        is_free=game.is_free,
        platform_windows=game.platforms.windows,
        platform_mac=game.platforms.mac,
        platform_linux=game.platforms.linux,
        **flags,
        **{AVAILABILITY_FIELD: on_geforce_now},
        tags=json.dumps(tags),
        release_date_raw=raw_date,
        release_date=normalized.isoformat() if normalized else None,
        steam_json=json.dumps(raw_detail, indent=2, ensure_ascii=False),
    )
