"""
Data contracts for Steam Store API responses.

Every field is optional: the appdetails payload varies between apps
(DLC, unreleased games, delisted apps), so models default to empty
values rather than rejecting partial records.
"""

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PriceOverview(BaseModel):
    """Price information for a game."""

    currency: str = Field(default="", description="Currency code (e.g., USD, EUR)")
    initial: int = Field(default=0, description="Initial price in cents")
    final: int = Field(default=0, description="Final price in cents (after discount)")
    discount_percent: int = Field(default=0, ge=0, le=100, description="Discount percentage")
    initial_formatted: str = Field(default="", description="Formatted initial price")
    final_formatted: str = Field(default="", description="Formatted final price")


class ReleaseDate(BaseModel):
    """Release date information."""

    coming_soon: bool = Field(default=False, description="Whether the game is not yet released")
    date: str = Field(default="", description="Human-readable release date string")


class Platform(BaseModel):
    """Platform availability."""

    windows: bool = Field(default=False)
    mac: bool = Field(default=False)
    linux: bool = Field(default=False)


class Category(BaseModel):
    """Store category (multiplayer modes, controller support, ...)."""

    id: int | None = None
    description: str = ""


class Genre(BaseModel):
    """Store genre. Steam serializes genre ids as strings."""

    id: str | None = None
    description: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Accept numeric ids and keep them in Steam's string form."""
        if isinstance(v, int):
            return str(v)
        return v


class SteamStoreGame(BaseModel):
    """
    Game detail record from the Steam Store /appdetails endpoint.

    Unknown keys are kept so the raw record can be re-serialized.
    """

    model_config = ConfigDict(extra="allow")

    # Identifiers
    steam_appid: int | None = Field(default=None, description="Steam application ID")
    name: str = Field(default="", description="Game name")
    type: str = Field(default="", description="Type: game, dlc, demo, etc.")

    # Description
    short_description: str = Field(default="", description="Brief description")
    detailed_description: str = Field(default="", description="Full description")
    about_the_game: str = Field(default="", description="About section")

    # Classification
    is_free: bool = Field(default=False, description="Whether the game is free")
    required_age: int = Field(default=0, description="Required age")
    developers: list[str] = Field(default_factory=list)
    publishers: list[str] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    genres: list[Genre] = Field(default_factory=list)

    price_overview: PriceOverview | None = Field(
        default=None, description="Price info (None for free games)"
    )

    platforms: Platform = Field(default_factory=Platform)
    release_date: ReleaseDate = Field(default_factory=ReleaseDate)

    # Media
    header_image: str | None = Field(default=None, description="Header image URL")
    capsule_image: str | None = Field(default=None, description="Capsule image URL")
    capsule_imagev5: str | None = Field(default=None)

    website: str | None = Field(default=None, description="Official website")

    @field_validator("required_age", mode="before")
    @classmethod
    def coerce_required_age(cls, v: int | str | None) -> int:
        """Convert required_age to int (API sometimes returns string)."""
        if v is None:
            return 0
        if isinstance(v, str):
            return int(v) if v.isdigit() else 0
        return v

    @field_validator("developers", "publishers", "categories", "genres", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("platforms", "release_date", mode="before")
    @classmethod
    def none_as_default(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def category_ids(self) -> frozenset[int]:
        """All category ids present on the record."""
        return frozenset(c.id for c in self.categories if c.id is not None)

    @property
    def genre_ids(self) -> frozenset[str]:
        """All genre ids present on the record."""
        return frozenset(g.id for g in self.genres if g.id is not None)

    @property
    def genre_names(self) -> list[str]:
        """Extract genre names as simple list."""
        return [g.description for g in self.genres]


class SteamStoreAPIResponse(BaseModel):
    """
    Per-app envelope of the Steam Store API response.

    The API returns {app_id: {success: bool, data: {...}}}
    """

    success: bool = False
    data: dict[str, Any] | None = None

    @field_validator("data", mode="before")
    @classmethod
    def empty_list_as_none(cls, v: Any) -> Any:
        # Steam sends "data": [] for some region-locked apps
        if isinstance(v, list) and not v:
            return None
        return v


AppId = Annotated[int, Field(gt=0, description="Steam App ID")]
