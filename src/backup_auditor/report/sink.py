"""Synchronized output for diagnostic records."""

import logging
import os
import threading
from collections import Counter
from enum import StrEnum
from pathlib import Path
from typing import Iterator

import msgpack

from .record import DiagnosticRecord, EntryCategory

logger = logging.getLogger(__name__)


class ReportFormat(StrEnum):
    TEXT = 'text'
    MSGPACK = 'msgpack'


class ReportSink:
    """Append-only report file shared by all comparisons of an audit.

    record() may be called from any thread or task. Each record is encoded first
    and then written with unbuffered writes while holding the sink lock, so
    records never interleave and a record is in the file (and, with fsync
    enabled, on disk) once record() returns.

    Creating the sink truncates an existing file. OSError from opening the file
    propagates to the caller.
    """

    def __init__(self, path: Path, report_format: ReportFormat = ReportFormat.TEXT, *,
                 fsync: bool = True, summary: bool = True):
        self._path = Path(path)
        self._format = ReportFormat(report_format)
        self._fsync = fsync
        self._summary = summary
        self._lock = threading.Lock()
        self._counts: Counter[EntryCategory] = Counter()
        self._file = open(self._path, 'wb', buffering=0)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def format(self) -> ReportFormat:
        return self._format

    @property
    def closed(self) -> bool:
        return self._file.closed

    def counts(self) -> dict[EntryCategory, int]:
        """Number of records accepted so far, per category."""
        with self._lock:
            return dict(self._counts)

    def record(self, record: DiagnosticRecord) -> None:
        if self._format is ReportFormat.MSGPACK:
            data = record.to_msgpack()
        else:
            data = record.render_text().encode('utf-8', errors='surrogateescape')

        with self._lock:
            self._write(data)
            self._counts[record.category] += 1

    def write_summary(self, compared: int) -> None:
        """Append the closing summary block. Only the text format carries one."""
        if not self._summary or self._format is not ReportFormat.TEXT:
            return

        with self._lock:
            counts = dict(self._counts)
            lines = [
                "Summary",
                f"compared={compared}",
                f"findings={sum(counts.values())}",
            ]
            lines.extend(f"{category}={counts[category]}" for category in EntryCategory if category in counts)
            self._write(("\n".join(lines) + "\n").encode('utf-8'))

    def close(self):
        with self._lock:
            if not self._file.closed:
                self._file.close()
                logger.info(f"Closed report {self._path}")

    def _write(self, data: bytes):
        view = memoryview(data)
        while view:
            written = self._file.write(view)
            view = view[written:]
        if self._fsync:
            os.fsync(self._file.fileno())


def read_report(path: Path) -> Iterator[DiagnosticRecord]:
    """Read back the records of a report written in the msgpack format."""
    with open(path, 'rb') as f:
        for fields in msgpack.Unpacker(f, raw=False, unicode_errors='surrogateescape'):
            yield DiagnosticRecord.from_fields(fields)
