import asyncio
import logging
import os
from pathlib import Path

from .commands.audit import AuditArgs, AuditSummary, do_audit
from .report.sink import ReportFormat, ReportSink
from .settings import (
    AuditConfigurationError,
    AuditSettings,
    AuditSetupError,
    SETTING_CHUNK_SIZE,
    SETTING_CONCURRENCY,
    SETTING_DIGEST_ALGORITHM,
    SETTING_EXCLUDE,
    SETTING_LOGGING_LEVEL,
    SETTING_LOGGING_PATH,
    SETTING_REPORT_FORMAT,
    SETTING_REPORT_FSYNC,
    SETTING_REPORT_SUMMARY,
)
from .utils.processor import DEFAULT_CHUNK_SIZE, DEFAULT_DIGEST_ALGORITHM, Processor
from .utils.progress import ProgressObserver

logger = logging.getLogger(__name__)


def _positive_int(name: str, value) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise AuditConfigurationError(f"{name} must be a positive integer: {value!r}")
    return value


def create_processor(settings: AuditSettings | None = None, *,
                     concurrency: int | None = None,
                     algorithm: str | None = None,
                     chunk_size: int | None = None) -> Processor:
    """Create the digest Processor, taking unspecified options from settings.

    Raises:
        AuditConfigurationError: An option has an invalid value
    """
    if settings is None:
        settings = AuditSettings()

    if concurrency is None:
        concurrency = settings.get(SETTING_CONCURRENCY)
    if algorithm is None:
        algorithm = settings.get(SETTING_DIGEST_ALGORITHM, DEFAULT_DIGEST_ALGORITHM)
    if chunk_size is None:
        chunk_size = settings.get(SETTING_CHUNK_SIZE, DEFAULT_CHUNK_SIZE)

    concurrency = _positive_int(SETTING_CONCURRENCY, concurrency)
    chunk_size = _positive_int(SETTING_CHUNK_SIZE, chunk_size)

    try:
        return Processor(concurrency, algorithm=algorithm, chunk_size=chunk_size)
    except ValueError as e:
        raise AuditConfigurationError(str(e)) from e


class Auditor:
    """Workflow layer for auditing a target tree (e.g. a backup) against its source.

    The Auditor validates the roots, opens the report and drives one audit run
    per call to audit(). The concurrent comparison itself lives in
    commands.audit; the Auditor only wires settings, the report sink and the
    Processor together.
    """

    def __init__(self, processor: Processor, source_root: str | os.PathLike, target_root: str | os.PathLike,
                 settings: AuditSettings | None = None):
        """Initialize an auditor for a pair of roots.

        Args:
            processor: Digest backend, which also fixes the audit concurrency
            source_root: Directory holding the original tree
            target_root: Directory holding the copy to verify
            settings: Configuration; defaults apply when omitted

        Raises:
            AuditConfigurationError: A root is missing or not a directory, or the
                                     exclusion list is malformed
        """
        self._processor = processor
        self._settings = settings if settings is not None else AuditSettings()
        self._source_root = self._validate_root("source", source_root)
        self._target_root = self._validate_root("target", target_root)

        excluded = self._settings.get(SETTING_EXCLUDE, [])
        if not isinstance(excluded, list) or not all(isinstance(p, str) for p in excluded):
            raise AuditConfigurationError(f"{SETTING_EXCLUDE} must be a list of relative paths: {excluded!r}")
        self._excluded_paths = frozenset(Path(p) for p in excluded)

    @staticmethod
    def _validate_root(label: str, root: str | os.PathLike) -> Path:
        path = Path(root)
        if not path.is_dir():
            raise AuditConfigurationError(f"The {label} root is not a directory: {path}")
        return path

    @property
    def source_root(self) -> Path:
        return self._source_root

    @property
    def target_root(self) -> Path:
        return self._target_root

    def configure_logging_from_settings(self) -> bool:
        """Configure logging from logging.path and logging.level if a log path is set.

        Returns:
            True if logging was configured, False otherwise
        """
        log_path = self._settings.get(SETTING_LOGGING_PATH)
        if not log_path:
            return False

        level_name = self._settings.get(SETTING_LOGGING_LEVEL)
        if level_name is None:
            level = logging.root.level if logging.root.level != logging.NOTSET else logging.INFO
        else:
            level = logging.getLevelName(str(level_name).upper())
            if not isinstance(level, int):
                raise AuditConfigurationError(f"Unknown logging level: {level_name}")

        for handler in logging.root.handlers[:]:
            logging.root.removeHandler(handler)

        logging.basicConfig(
            filename=str(log_path),
            level=level,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        return True

    def audit(self, output_path: str | os.PathLike, *,
              report_format: str | None = None,
              summary: bool | None = None,
              fsync: bool | None = None,
              progress: ProgressObserver | None = None) -> AuditSummary:
        """Run a complete audit and write the findings to output_path.

        Options left as None are read from the settings.

        Raises:
            AuditConfigurationError: The report format is unknown
            AuditSetupError: The report file cannot be created
        """
        if report_format is None:
            report_format = self._settings.get(SETTING_REPORT_FORMAT, ReportFormat.TEXT)
        if summary is None:
            summary = bool(self._settings.get(SETTING_REPORT_SUMMARY, True))
        if fsync is None:
            fsync = bool(self._settings.get(SETTING_REPORT_FSYNC, True))

        try:
            report_format = ReportFormat(report_format)
        except ValueError as e:
            raise AuditConfigurationError(f"Unknown report format: {report_format}") from e

        try:
            sink = ReportSink(Path(output_path), report_format, fsync=fsync, summary=summary)
        except OSError as e:
            raise AuditSetupError(f"Failed to create output file {output_path}: {e}") from e

        with sink:
            return asyncio.run(do_audit(sink, AuditArgs(
                self._processor,
                self._source_root,
                self._target_root,
                self._excluded_paths,
                progress
            )))
