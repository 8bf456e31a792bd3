"""Persisted state of a resumable multipart upload."""

import math
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
        extra="ignore",
    )


class CompletedPart(CamelModel):
    part_number: int = Field(ge=1)
    etag: str


class UploadState(CamelModel):
    """
    State of one in-flight multipart upload of a local file.

    Valid only against the exact file revision (size and modification time)
    that created it.
    """

    version: Literal[1] = 1
    upload_id: str
    bucket: str
    key: str
    file_size: int = Field(ge=0)
    file_modified: int
    """Modification time of the source file in milliseconds since the epoch."""
    chunk_size: int = Field(ge=1)
    total_parts: int = Field(ge=0)
    completed_parts: list[CompletedPart] = Field(default_factory=list)
    created_at: int
    """Creation time in milliseconds since the epoch."""
    provider: str
    endpoint: str

    def part_range(self, part_number: int) -> tuple[int, int]:
        """Byte range ``[start, end)`` of a 1-indexed part."""
        start = (part_number - 1) * self.chunk_size
        end = min(part_number * self.chunk_size, self.file_size)
        return start, end

    def part_size(self, part_number: int) -> int:
        start, end = self.part_range(part_number)
        return end - start

    def completed_part_numbers(self) -> set[int]:
        return {p.part_number for p in self.completed_parts}

    def pending_part_numbers(self) -> list[int]:
        """Part numbers not yet recorded as completed, ascending."""
        done = self.completed_part_numbers()
        return [n for n in range(1, self.total_parts + 1) if n not in done]

    def completed_bytes(self) -> int:
        return sum(self.part_size(p.part_number) for p in self.completed_parts)

    @property
    def percent_complete(self) -> int:
        if self.total_parts == 0:
            return 0
        return round(len(self.completed_parts) / self.total_parts * 100)


def count_parts(file_size: int, chunk_size: int) -> int:
    return math.ceil(file_size / chunk_size)
