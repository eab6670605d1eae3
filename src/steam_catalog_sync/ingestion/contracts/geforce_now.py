"""Data contracts for the GeForce NOW game list GraphQL API."""

from pydantic import BaseModel, Field


class GameVariant(BaseModel):
    """One storefront variant of a GFN title."""

    store_id: str | int | None = Field(default=None, alias="storeId")

    @property
    def steam_app_id(self) -> int | None:
        """Numeric Steam app id, or None for malformed or placeholder ids."""
        if not isinstance(self.store_id, str) or not self.store_id.isdigit():
            return None
        value = int(self.store_id)
        return value or None


class GameItem(BaseModel):
    variants: list[GameVariant] = Field(default_factory=list)


class GamePage(BaseModel):
    items: list[GameItem] = Field(default_factory=list)


class GameListResponse(BaseModel):
    """Response body: one aliased page per requested cursor."""

    data: dict[str, GamePage | None] = Field(default_factory=dict)

    def steam_app_ids(self) -> set[int]:
        """Collect the Steam app ids of the first variant of every item."""
        ids: set[int] = set()
        for page in self.data.values():
            if page is None:
                continue
            for item in page.items:
                if not item.variants:
                    continue
                app_id = item.variants[0].steam_app_id
                if app_id is not None:
                    ids.add(app_id)
        return ids
