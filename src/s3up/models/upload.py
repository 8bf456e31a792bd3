"""Inputs and results of file uploads."""

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class UploadRequest(BaseModel):
    """A local file to be stored under ``remote_key``."""

    model_config = ConfigDict(frozen=True)

    local_path: Path
    remote_key: str = Field(min_length=1)
    size: int = Field(ge=0)

    @classmethod
    def for_file(cls, local_path: str | Path, remote_key: str) -> "UploadRequest":
        local_path = Path(local_path)
        return cls(local_path=local_path, remote_key=remote_key, size=local_path.stat().st_size)


class UploadStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"
    PAUSED = "paused"


class UploadOutcome(BaseModel):
    """Terminal result of uploading one file."""

    model_config = ConfigDict(frozen=True)

    key: str
    status: UploadStatus
    public_url: str | None = None
    error: str | None = None
    message: str = ""

    @property
    def success(self) -> bool:
        return self.status is UploadStatus.SUCCESS

    @classmethod
    def succeeded(cls, key: str, public_url: str) -> "UploadOutcome":
        return cls(key=key, status=UploadStatus.SUCCESS, public_url=public_url, message=f"Uploaded {key}")

    @classmethod
    def failed(cls, key: str, error: str) -> "UploadOutcome":
        return cls(key=key, status=UploadStatus.FAILED, error=error, message=f"Upload of {key} failed: {error}")

    @classmethod
    def paused(cls, key: str, message: str) -> "UploadOutcome":
        return cls(key=key, status=UploadStatus.PAUSED, message=message)
