"""
Resumable multipart uploads.

:class:`MultipartUploader` decides between a fresh start and resuming from the
sidecar state, drives the :class:`~s3up.scheduler.PartScheduler` and finalizes
or pauses the upload.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import StrEnum
from os import PathLike
from pathlib import Path

import requests

from . import state as state_store
from .cancellation import CancellationToken
from .client import ObjectStoreClient
from .constants import INTERRUPT_GRACE_PERIOD, MULTIPART_MAX_PARTS, MULTIPART_MIN_PART_SIZE
from .exceptions import ProtocolError, S3upError, StaleRemoteUploadError, UploadCancelledError
from .models.config import S3Config
from .models.state import UploadState
from .models.upload import UploadOutcome
from .progress import ProgressCallback, ProgressEstimator
from .scheduler import PartScheduler

log = logging.getLogger(__name__)


class UploadPhase(StrEnum):
    IDLE = "idle"
    INITIATING = "initiating"
    TRANSFERRING = "transferring"
    FINALIZING = "finalizing"
    DONE = "done"
    ABORTING = "aborting"
    FAILED = "failed"


@dataclass(frozen=True)
class ResumeInfo:
    can_resume: bool
    percent_complete: int = 0
    state: UploadState | None = None


def calculate_part_size(
    file_size: int,
    default_part_size: int,
    max_parts: int = MULTIPART_MAX_PARTS,
    min_part_size: int = MULTIPART_MIN_PART_SIZE,
) -> int:
    """
    Calculate the part size for a multipart upload.

    The requested part size is kept unless it would exceed ``max_parts`` parts.

    :param file_size: Size of the file to upload in bytes
    :param default_part_size: requested part size
    :param max_parts: Maximum number of parts allowed
    :param min_part_size: lower bound when the part size has to be increased
    :returns: Part size to use in bytes
    """
    if file_size <= 0:
        return default_part_size

    # if default part size would result in too many parts, increase it
    if file_size / default_part_size > max_parts:
        return max(math.ceil(file_size / max_parts), min_part_size)

    return default_part_size


def _normalize_etag(etag: str) -> str:
    return etag.strip().strip('"')


def check_resumable(file_path: str | PathLike) -> ResumeInfo:
    """Whether a usable sidecar exists for an unchanged file."""
    state = state_store.load_state(file_path)
    if state is None or state_store.has_file_changed(file_path, state):
        return ResumeInfo(can_resume=False)
    return ResumeInfo(can_resume=True, percent_complete=state.percent_complete, state=state)


class MultipartUploader:
    """
    Uploads single files with the multipart protocol, resuming where possible.

    An interrupted upload (cancelled token) leaves the sidecar and the remote
    upload in place and reports a paused outcome. Failures also keep the
    sidecar so a later invocation can resume.
    """

    __log = log.getChild("MultipartUploader")

    def __init__(  # noqa: PLR0913
        self,
        client: ObjectStoreClient,
        config: S3Config,
        chunk_size: int,
        connections: int,
        token: CancellationToken | None = None,
        on_progress: ProgressCallback | None = None,
        grace_period: float = INTERRUPT_GRACE_PERIOD,
    ):
        self._client = client
        self._config = config
        self._chunk_size = chunk_size
        self._connections = connections
        self._token = token or CancellationToken()
        self._on_progress = on_progress
        self._grace_period = grace_period
        self.phase = UploadPhase.IDLE

    def upload(self, file_path: str | PathLike, key: str) -> UploadOutcome:
        """Upload a file to ``key`` and report the terminal outcome."""
        file_path = Path(file_path)
        self.phase = UploadPhase.IDLE
        try:
            self.phase = UploadPhase.INITIATING
            state = self._prepare(file_path, key)

            self.phase = UploadPhase.TRANSFERRING
            estimator = ProgressEstimator(file_path.name, state.file_size, state.total_parts)
            estimator.credit(len(state.completed_parts), state.completed_bytes())
            if self._on_progress is not None:
                self._on_progress(estimator.snapshot())

            PartScheduler(
                self._client,
                file_path,
                state,
                self._connections,
                token=self._token,
                estimator=estimator,
                on_progress=self._on_progress,
                grace_period=self._grace_period,
            ).run()

            if self._token.cancelled:
                raise UploadCancelledError(f"Upload of {file_path.name} paused before finalizing")
            missing = state.pending_part_numbers()
            if missing:
                raise S3upError(f"Parts {missing} of {file_path.name} are missing after transfer")

            self.phase = UploadPhase.FINALIZING
            self._client.complete_multipart_upload(state.key, state.upload_id, state.completed_parts)
            state_store.delete_state(file_path)
            self.phase = UploadPhase.DONE
            self.__log.info(f"Uploaded {file_path.name} to {key} in {state.total_parts} parts")
            return UploadOutcome.succeeded(key, self._config.public_url(key))
        except UploadCancelledError as e:
            self.phase = UploadPhase.ABORTING
            self.__log.info(f"{e}. Run the upload again to resume.")
            return UploadOutcome.paused(key, f"{e}. Run the upload again to resume.")
        except (S3upError, requests.RequestException, OSError) as e:
            self.phase = UploadPhase.FAILED
            self.__log.error(f"Upload of {file_path.name} failed: {e}")
            return UploadOutcome.failed(key, str(e))

    def _prepare(self, file_path: Path, key: str) -> UploadState:
        """Load and validate the sidecar state, or start a fresh upload."""
        state = state_store.load_state(file_path)

        if state is not None and state_store.has_file_changed(file_path, state):
            self.__log.warning(f"{file_path.name} changed since the last attempt, starting over")
            self._discard(file_path, state)
            state = None

        if state is not None and (state.bucket != self._client.bucket or state.key != key):
            self.__log.warning(
                f"Recorded upload of {file_path.name} targets {state.bucket}/{state.key}, starting over"
            )
            self._discard(file_path, state)
            state = None

        if state is not None and not state.completed_parts:
            # an expired upload id looks the same as one without parts, so there is nothing worth resuming
            self.__log.debug(f"No parts of {file_path.name} recorded yet, starting over")
            self._discard(file_path, state)
            state = None

        if state is not None:
            try:
                state = self._reconcile(file_path, state)
            except StaleRemoteUploadError as e:
                self.__log.warning(f"{e}, starting over")
                state_store.delete_state(file_path)
                state = None

        if state is None:
            state = self._initiate(file_path, key)
        return state

    def _reconcile(self, file_path: Path, state: UploadState) -> UploadState:
        """
        Match the local record against the parts the server holds.

        Only parts confirmed by the server with the same ETag are kept; the
        rest are uploaded again.

        :raises StaleRemoteUploadError: if the server holds no parts although some were recorded
        """
        remote = {p.part_number: _normalize_etag(p.etag) for p in self._client.list_parts(state.key, state.upload_id)}

        if not remote:
            raise StaleRemoteUploadError(
                f"Multipart upload {state.upload_id} of {file_path.name} no longer exists on the server"
            )

        confirmed = [p for p in state.completed_parts if remote.get(p.part_number) == _normalize_etag(p.etag)]
        if len(confirmed) != len(state.completed_parts):
            self.__log.warning(
                f"Server confirmed {len(confirmed)} of {len(state.completed_parts)} recorded parts of "
                f"{file_path.name}; uploading the others again"
            )
            state.completed_parts = confirmed
            state_store.save_state(file_path, state)
        else:
            self.__log.info(
                f"Resuming upload of {file_path.name}: {len(confirmed)}/{state.total_parts} parts already uploaded"
            )
        return state

    def _initiate(self, file_path: Path, key: str) -> UploadState:
        stat = file_path.stat()
        chunk_size = calculate_part_size(stat.st_size, self._chunk_size)
        upload_id = self._client.create_multipart_upload(key)
        state = state_store.create_initial_state(
            upload_id=upload_id,
            bucket=self._client.bucket,
            key=key,
            file_size=stat.st_size,
            file_modified=state_store.file_modified_ms(file_path),
            chunk_size=chunk_size,
            provider=str(self._config.provider),
            endpoint=self._client.endpoint,
        )
        state_store.save_state(file_path, state)
        self.__log.debug(f"Started multipart upload {upload_id} of {file_path.name} with {state.total_parts} parts")
        return state

    def _discard(self, file_path: Path, state: UploadState) -> None:
        """Drop a sidecar that can not be resumed and release its remote upload."""
        try:
            self._client.abort_multipart_upload(state.key, state.upload_id)
        except (ProtocolError, requests.RequestException) as e:
            self.__log.warning(f"Could not abort previous upload {state.upload_id}: {e}")
        state_store.delete_state(file_path)

    def abort(self, file_path: str | PathLike) -> bool:
        """
        Cancel the recorded upload of a file and delete its sidecar.

        A remote upload that no longer exists counts as already cancelled.

        :returns: ``False`` if there was no recorded upload
        :raises ProtocolError: if the server refuses the abort; the sidecar is kept then
        """
        state = state_store.load_state(file_path)
        if state is None:
            return False
        self.phase = UploadPhase.ABORTING
        self._client.abort_multipart_upload(state.key, state.upload_id)
        state_store.delete_state(file_path)
        self.phase = UploadPhase.IDLE
        self.__log.info(f"Aborted upload {state.upload_id} of {Path(file_path).name}")
        return True
