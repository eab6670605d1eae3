"""
Data contracts for the DatoCMS content management API.

Only the parts of the JSON:API documents the pipeline reads are
modelled; everything else is ignored.
"""

from typing import Any

from pydantic import BaseModel, Field


class ItemAttributes(BaseModel):
    """Record attributes the index needs."""

    steam_id: str | int | None = None

    @property
    def app_id(self) -> int | None:
        """The catalog key this record belongs to, if well formed."""
        if isinstance(self.steam_id, int):
            return self.steam_id
        if isinstance(self.steam_id, str) and self.steam_id.strip().isdigit():
            return int(self.steam_id.strip())
        return None


class ItemRow(BaseModel):
    """One row of a paged item listing."""

    id: str
    type: str = "item"
    attributes: ItemAttributes = Field(default_factory=ItemAttributes)


class ListingMeta(BaseModel):
    total_count: int = 0


class ItemListResponse(BaseModel):
    data: list[ItemRow] = Field(default_factory=list)
    meta: ListingMeta = Field(default_factory=ListingMeta)


class ResourceRef(BaseModel):
    """Bare {type, id} reference returned by create calls."""

    id: str
    type: str = ""


class ResourceResponse(BaseModel):
    data: ResourceRef


class UploadAttributes(BaseModel):
    filename: str = ""
    url: str | None = None


class UploadRow(BaseModel):
    id: str
    attributes: UploadAttributes = Field(default_factory=UploadAttributes)


class UploadListResponse(BaseModel):
    data: list[UploadRow] = Field(default_factory=list)


class UploadRequestAttributes(BaseModel):
    url: str
    request_headers: dict[str, str] = Field(default_factory=dict)


class UploadRequest(BaseModel):
    """Signed slot for pushing file bytes; its id is the upload path."""

    id: str
    attributes: UploadRequestAttributes


class UploadRequestResponse(BaseModel):
    data: UploadRequest


class JobResultAttributes(BaseModel):
    status: int
    payload: dict[str, Any] = Field(default_factory=dict)


class JobResult(BaseModel):
    id: str
    attributes: JobResultAttributes


class JobResultResponse(BaseModel):
    data: JobResult

    @property
    def resource_id(self) -> str | None:
        """Id of the resource the job created, if any."""
        data = self.data.attributes.payload.get("data")
        if isinstance(data, dict) and data.get("id"):
            return str(data["id"])
        return None
