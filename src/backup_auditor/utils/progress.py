"""Progress reporting hooks for audits.

The coordinator calls advance() once per finished comparison with the index of
the worker slot that ran it and a status string naming the entry. Rendering is
up to the observer; nothing in the audit depends on it.
"""
import logging


class ProgressObserver:
    """Observer that ignores every notification."""

    def advance(self, worker_index: int, status: str) -> None:
        pass


class LoggingProgress(ProgressObserver):
    """Log a progress line every `interval` comparisons."""

    def __init__(self, logger: logging.Logger | None = None, interval: int = 1000):
        if interval < 1:
            raise ValueError(f"interval must be at least 1: {interval}")

        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self._interval = interval
        self._completed = 0

    @property
    def completed(self) -> int:
        return self._completed

    def advance(self, worker_index: int, status: str) -> None:
        self._completed += 1
        if self._completed % self._interval == 0:
            self._logger.info(f"Compared {self._completed} entries (worker {worker_index}: {status})")
