"""
Sidecar files for resumable multipart uploads.

The state of an in-flight upload of ``dir/name`` is stored as JSON in
``dir/.name.s3up``. Corrupted or outdated sidecars are treated as absent.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
import time
from os import PathLike
from pathlib import Path

from pydantic import ValidationError

from .constants import STATE_FILE_SUFFIX
from .models.state import CompletedPart, UploadState, count_parts

log = logging.getLogger(__name__)

# serializes read-modify-write cycles of the sidecar
_commit_lock = threading.Lock()


def state_file_path(file_path: str | PathLike) -> Path:
    """Return the sidecar path for a local file."""
    file_path = Path(file_path)
    return file_path.with_name(f".{file_path.name}{STATE_FILE_SUFFIX}")


def file_modified_ms(file_path: str | PathLike) -> int:
    """Modification time of a file in milliseconds since the epoch."""
    return os.stat(file_path).st_mtime_ns // 1_000_000


def load_state(file_path: str | PathLike) -> UploadState | None:
    """
    Load the upload state of a file.

    :returns: the state, or ``None`` if the sidecar is missing, corrupted or of another version
    """
    sidecar = state_file_path(file_path)
    try:
        content = sidecar.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        log.warning(f"Unable to read upload state {sidecar}: {e}")
        return None

    try:
        return UploadState.model_validate_json(content)
    except ValidationError as e:
        log.debug(f"Ignoring invalid upload state {sidecar}: {e}")
        return None


def save_state(file_path: str | PathLike, state: UploadState) -> None:
    """
    Persist the upload state of a file.

    The sidecar is written to a temporary file first and then renamed, so a
    torn write never leaves a partially written sidecar behind.
    """
    sidecar = state_file_path(file_path)
    fd, tmp_name = tempfile.mkstemp(prefix=sidecar.name, suffix=".tmp", dir=sidecar.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp:
            tmp.write(state.model_dump_json(by_alias=True, indent=2))
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, sidecar)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def delete_state(file_path: str | PathLike) -> None:
    """Remove the sidecar of a file. Does nothing if there is none."""
    state_file_path(file_path).unlink(missing_ok=True)


def has_file_changed(file_path: str | PathLike, state: UploadState) -> bool:
    """Whether size or modification time of the file differ from the recorded values."""
    try:
        stat = os.stat(file_path)
    except FileNotFoundError:
        return True
    return stat.st_size != state.file_size or stat.st_mtime_ns // 1_000_000 != state.file_modified


def add_completed_part(file_path: str | PathLike, state: UploadState, part: CompletedPart) -> None:
    """
    Record a completed part and persist the state.

    Replaces an existing entry with the same part number, keeps the list
    sorted by part number and saves before returning.
    """
    with _commit_lock:
        parts = {p.part_number: p for p in state.completed_parts}
        parts[part.part_number] = part
        state.completed_parts = sorted(parts.values(), key=lambda p: p.part_number)
        save_state(file_path, state)


def create_initial_state(  # noqa: PLR0913
    upload_id: str,
    bucket: str,
    key: str,
    file_size: int,
    file_modified: int,
    chunk_size: int,
    provider: str,
    endpoint: str,
) -> UploadState:
    return UploadState(
        upload_id=upload_id,
        bucket=bucket,
        key=key,
        file_size=file_size,
        file_modified=file_modified,
        chunk_size=chunk_size,
        total_parts=count_parts(file_size, chunk_size),
        completed_parts=[],
        created_at=int(time.time() * 1000),
        provider=provider,
        endpoint=endpoint,
    )
