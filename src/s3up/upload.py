"""
Uploading a batch of files.

Files below the multipart threshold are sent with a single ``PUT`` each, several
at a time; larger files go one after another through the resumable
:class:`~s3up.multipart.MultipartUploader`. Failures are isolated per file.
"""

from __future__ import annotations

import logging
import mimetypes
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

import requests

from .cancellation import CancellationToken
from .client import ObjectStoreClient
from .constants import MULTIPART_THRESHOLD, ExitCode, SpeedPreset
from .exceptions import InvalidKeyError, S3upError
from .models.config import S3Config
from .models.upload import UploadOutcome, UploadRequest, UploadStatus
from .multipart import MultipartUploader, ResumeInfo, check_resumable
from .progress import ProgressCallback

log = logging.getLogger(__name__)

ResumeDecider = Callable[[UploadRequest, ResumeInfo], bool]
OutcomeCallback = Callable[[UploadRequest, UploadOutcome], None]


def build_key(filename: str, prefix: str | None = None) -> str:
    """
    Join an optional prefix and a file name into an object key.

    Empty and ``.`` segments of the prefix are dropped.

    :raises InvalidKeyError: if the prefix contains ``..`` or the file name is ``.`` or ``..``
    """
    if filename in (".", ".."):
        raise InvalidKeyError(f"Invalid file name for an object key: {filename!r}")
    segments = [s for s in (prefix or "").split("/") if s not in ("", ".")]
    if ".." in segments:
        raise InvalidKeyError(f"Key prefix {prefix!r} must not contain '..' segments")
    return "/".join([*segments, filename])


def guess_content_type(path: str | Path) -> str:
    content_type, _ = mimetypes.guess_type(str(path))
    return content_type or "application/octet-stream"


@dataclass
class BatchResult:
    outcomes: list[UploadOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[UploadOutcome]:
        return [o for o in self.outcomes if o.status is UploadStatus.SUCCESS]

    @property
    def failed(self) -> list[UploadOutcome]:
        return [o for o in self.outcomes if o.status is UploadStatus.FAILED]

    @property
    def paused(self) -> list[UploadOutcome]:
        return [o for o in self.outcomes if o.status is UploadStatus.PAUSED]

    @property
    def exit_code(self) -> ExitCode:
        """
        Exit code of the batch.

        Paused uploads are not failures: they resume on the next run.
        """
        if not self.failed:
            return ExitCode.SUCCESS
        if self.succeeded:
            return ExitCode.PARTIAL_FAILURE
        return ExitCode.ERROR


class BatchUploader:
    __log = log.getChild("BatchUploader")

    def __init__(  # noqa: PLR0913
        self,
        client: ObjectStoreClient,
        config: S3Config,
        preset: SpeedPreset,
        token: CancellationToken | None = None,
        multipart_threshold: int = MULTIPART_THRESHOLD,
        on_progress: ProgressCallback | None = None,
        on_outcome: OutcomeCallback | None = None,
        resume_decider: ResumeDecider | None = None,
    ):
        """
        :param preset: chunk size and number of concurrent requests
        :param multipart_threshold: files of at least this size use the multipart protocol
        :param on_progress: receives progress of multipart uploads
        :param on_outcome: called once per file as soon as its outcome is known
        :param resume_decider: asked whether to resume an interrupted upload; resumes if not given
        """
        self._client = client
        self._config = config
        self._preset = preset
        self._token = token or CancellationToken()
        self._threshold = multipart_threshold
        self._on_progress = on_progress
        self._on_outcome = on_outcome
        self._resume_decider = resume_decider

    def _report(self, request: UploadRequest, outcome: UploadOutcome) -> UploadOutcome:
        if self._on_outcome is not None:
            self._on_outcome(request, outcome)
        return outcome

    def upload_single(self, request: UploadRequest) -> UploadOutcome:
        """Upload a file with a single ``PUT`` request."""
        key = request.remote_key
        if self._token.cancelled:
            return UploadOutcome.paused(key, f"Upload of {request.local_path.name} cancelled before it started")
        try:
            data = request.local_path.read_bytes()
            self._client.put_object(key, data, content_type=guess_content_type(request.local_path))
        except (S3upError, requests.RequestException, OSError) as e:
            self.__log.error(f"Upload of {request.local_path.name} failed: {e}")
            return UploadOutcome.failed(key, str(e))
        self.__log.info(f"Uploaded {request.local_path.name} to {key}")
        return UploadOutcome.succeeded(key, self._config.public_url(key))

    def upload_multipart(self, request: UploadRequest) -> UploadOutcome:
        uploader = MultipartUploader(
            self._client,
            self._config,
            chunk_size=self._preset.chunk_size,
            connections=self._preset.connections,
            token=self._token,
            on_progress=self._on_progress,
        )

        info = check_resumable(request.local_path)
        if info.can_resume and self._resume_decider is not None and not self._resume_decider(request, info):
            self.__log.info(f"Discarding interrupted upload of {request.local_path.name}")
            try:
                uploader.abort(request.local_path)
            except (S3upError, requests.RequestException) as e:
                return UploadOutcome.failed(request.remote_key, f"Could not discard previous upload: {e}")

        if self._token.cancelled:
            return UploadOutcome.paused(
                request.remote_key, f"Upload of {request.local_path.name} cancelled before it started"
            )
        return uploader.upload(request.local_path, request.remote_key)

    def is_multipart(self, request: UploadRequest) -> bool:
        # multipart needs at least one part
        return request.size > 0 and request.size >= self._threshold

    def upload_all(self, requests_: Iterable[UploadRequest]) -> BatchResult:
        """
        Upload all files, large ones first.

        :returns: outcomes in the order the uploads finished
        """
        requests_ = list(requests_)
        large = [r for r in requests_ if self.is_multipart(r)]
        small = [r for r in requests_ if not self.is_multipart(r)]
        result = BatchResult()

        for request in large:
            result.outcomes.append(self._report(request, self.upload_multipart(request)))

        if small:
            with ThreadPoolExecutor(max_workers=self._preset.connections, thread_name_prefix="s3up-put") as executor:
                futures = {executor.submit(self.upload_single, request): request for request in small}
                for future in as_completed(futures):
                    result.outcomes.append(self._report(futures[future], future.result()))

        self.__log.info(
            f"{len(result.succeeded)} uploaded, {len(result.failed)} failed, {len(result.paused)} paused"
        )
        return result
