"""Cooperative cancellation of running transfers."""

from __future__ import annotations

import logging
import os
import signal
import threading
from typing import Any

log = logging.getLogger(__name__)


class CancellationToken:
    """
    A flag shared between the caller and a running transfer.

    Once cancelled, a token stays cancelled. Workers poll :attr:`cancelled` and
    stop taking on new work.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or the timeout expired; returns whether the token is cancelled."""
        return self._event.wait(timeout)


class SignalManager:
    """
    Context manager translating SIGINT into cancellation of a token.

    Handles SIGINT (Ctrl+C) with two-stage behavior:
    - First signal: cancel the token so transfers pause in a resumable state
    - Second signal: force immediate exit
    """

    def __init__(self, token: CancellationToken, logger: logging.Logger | None = None):
        """
        :param token: token to cancel on the first interrupt
        :param logger: Optional logger for interrupt messages
        """
        self._token = token
        self._log = logger or log
        self._original_handler: Any = None

    def __enter__(self) -> SignalManager:
        def signal_handler(signum: int, frame: Any) -> None:
            if self._token.cancelled:
                self._log.warning("Received second interrupt - forcing immediate exit...")

                os._exit(130)  # 128 + SIGINT(2)
            self._log.warning("Interrupt received! Pausing uploads...")
            self._log.info("Finishing in-flight parts. Press Ctrl+C again to force exit.")
            self._token.cancel()

        # signal handlers can only be installed from the main thread
        if threading.current_thread() is threading.main_thread():
            self._original_handler = signal.signal(signal.SIGINT, signal_handler)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._original_handler is not None:
            signal.signal(signal.SIGINT, self._original_handler)
            self._original_handler = None
