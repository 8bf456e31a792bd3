from datetime import datetime

from pydantic import BaseModel, ConfigDict


class StoredObject(BaseModel):
    """An object as reported by a bucket listing."""

    model_config = ConfigDict(frozen=True)

    key: str
    size: int
    last_modified: datetime
    etag: str | None = None


class ListObjectsPage(BaseModel):
    """One page of a paginated bucket listing."""

    objects: list[StoredObject]
    is_truncated: bool = False
    next_continuation_token: str | None = None
