"""
Bounded-concurrency upload of the parts of a multipart upload.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from os import PathLike
from pathlib import Path

from . import state as state_store
from .cancellation import CancellationToken
from .client import ObjectStoreClient
from .constants import INTERRUPT_GRACE_PERIOD
from .exceptions import UploadCancelledError
from .models.state import CompletedPart, UploadState
from .progress import ProgressCallback, ProgressEstimator

log = logging.getLogger(__name__)

# how often the control loop checks for cancellation while parts are in flight
POLL_INTERVAL = 0.1


class PartScheduler:
    """
    Uploads parts of a file with at most ``connections`` requests in flight.

    Completed parts are committed to the sidecar from the control thread
    before another part is submitted, so a crash loses at most the parts
    that were in flight at that moment.
    """

    __log = log.getChild("PartScheduler")

    def __init__(  # noqa: PLR0913
        self,
        client: ObjectStoreClient,
        file_path: str | PathLike,
        state: UploadState,
        connections: int,
        token: CancellationToken | None = None,
        estimator: ProgressEstimator | None = None,
        on_progress: ProgressCallback | None = None,
        grace_period: float = INTERRUPT_GRACE_PERIOD,
    ):
        if connections < 1:
            raise ValueError("connections must be at least 1")
        self._client = client
        self._file_path = Path(file_path)
        self._state = state
        self._connections = connections
        self._token = token or CancellationToken()
        self._estimator = estimator
        self._on_progress = on_progress
        self._grace_period = grace_period
        # cancelled when the grace period is over; stops parts still being sent
        self._abort = CancellationToken()

    def _read_part(self, part_number: int) -> bytes:
        start, end = self._state.part_range(part_number)
        with open(self._file_path, "rb") as f:
            f.seek(start)
            return f.read(end - start)

    def _upload_part(self, part_number: int) -> CompletedPart:
        data = self._read_part(part_number)
        return self._client.upload_part(self._state.key, self._state.upload_id, part_number, data, abort=self._abort)

    def _commit(self, part: CompletedPart) -> None:
        state_store.add_completed_part(self._file_path, self._state, part)
        self.__log.debug(f"Part {part.part_number}/{self._state.total_parts} of {self._file_path.name} committed")
        if self._estimator is not None:
            self._estimator.record(self._state.part_size(part.part_number))
            if self._on_progress is not None:
                self._on_progress(self._estimator.snapshot())

    def _collect(self, done: Iterable[Future], in_flight: dict[Future, int]) -> BaseException | None:
        """Commit finished parts; return the first failure unrelated to cancellation."""
        error = None
        for future in done:
            part_number = in_flight.pop(future)
            try:
                part = future.result()
            except Exception as e:
                if self._token.cancelled:
                    self.__log.debug(f"Part {part_number} did not finish before cancellation: {e}")
                    continue
                self.__log.error(f"Upload of part {part_number} of {self._file_path.name} failed: {e}")
                if error is None:
                    error = e
                continue
            self._commit(part)
        return error

    def run(self, part_numbers: Iterable[int] | None = None) -> None:
        """
        Upload the given parts, by default all parts not yet completed.

        Parts already recorded as completed are never requested again.

        :raises UploadCancelledError: if the token was cancelled before all parts finished
        :raises Exception: the first part failure, after all in-flight parts were settled
        """
        if part_numbers is None:
            part_numbers = self._state.pending_part_numbers()
        done_numbers = self._state.completed_part_numbers()
        pending = deque(sorted({n for n in part_numbers if n not in done_numbers}))

        if not pending:
            return
        if self._token.cancelled:
            raise UploadCancelledError(f"Upload of {self._file_path.name} was cancelled before it started")

        in_flight: dict[Future, int] = {}
        error: BaseException | None = None
        executor = ThreadPoolExecutor(max_workers=self._connections, thread_name_prefix="s3up-part")
        try:
            while pending or in_flight:
                while pending and len(in_flight) < self._connections and error is None and not self._token.cancelled:
                    part_number = pending.popleft()
                    in_flight[executor.submit(self._upload_part, part_number)] = part_number

                if self._token.cancelled:
                    break
                if not in_flight:
                    break

                done, _ = wait(in_flight, timeout=POLL_INTERVAL, return_when=FIRST_COMPLETED)
                failure = self._collect(done, in_flight)
                if error is None:
                    error = failure

            if self._token.cancelled and in_flight:
                self.__log.info(
                    f"Waiting up to {self._grace_period:g}s for {len(in_flight)} in-flight part(s) of "
                    f"{self._file_path.name}"
                )
                done, not_done = wait(in_flight, timeout=self._grace_period)
                self._collect(done, in_flight)
                if not_done:
                    self.__log.debug(f"Aborting {len(not_done)} part upload(s) of {self._file_path.name}")
                    self._abort.cancel()
        finally:
            executor.shutdown(wait=not self._token.cancelled, cancel_futures=True)

        if error is not None:
            raise error
        if self._token.cancelled and (pending or in_flight):
            raise UploadCancelledError(
                f"Upload of {self._file_path.name} paused after "
                f"{len(self._state.completed_parts)}/{self._state.total_parts} parts"
            )
