import tomllib
from pathlib import Path


class AuditConfigurationError(ValueError):
    """Settings or roots that do not allow an audit to start."""


class AuditSetupError(RuntimeError):
    """The report could not be created, so no audit was attempted."""


SETTING_CONCURRENCY = 'audit.concurrency'
SETTING_EXCLUDE = 'audit.exclude'
SETTING_DIGEST_ALGORITHM = 'digest.algorithm'
SETTING_CHUNK_SIZE = 'digest.chunk_size'
SETTING_REPORT_FORMAT = 'report.format'
SETTING_REPORT_SUMMARY = 'report.summary'
SETTING_REPORT_FSYNC = 'report.fsync'
SETTING_LOGGING_PATH = 'logging.path'
SETTING_LOGGING_LEVEL = 'logging.level'


class AuditSettings:
    """Read-only view of an audit configuration file.

    The file is TOML; the class does not interpret its schema and merely
    resolves dotted keys against the loaded tables. Without a file every get()
    returns its default.

    Example:
        settings = AuditSettings(Path('audit.toml'))
        algorithm = settings.get(SETTING_DIGEST_ALGORITHM, 'sha256')
        excluded = settings.get(SETTING_EXCLUDE, [])
    """

    def __init__(self, config_path: Path | None = None):
        """Load settings from config_path when given.

        Raises:
            FileNotFoundError: config_path does not exist
            AuditConfigurationError: config_path is not valid TOML
        """
        self._config_path = config_path
        self._settings = {}

        if config_path is not None:
            with open(config_path, 'rb') as f:
                try:
                    self._settings = tomllib.load(f)
                except tomllib.TOMLDecodeError as e:
                    raise AuditConfigurationError(f"Invalid settings file {config_path}: {e}") from e

    @property
    def config_path(self) -> Path | None:
        return self._config_path

    def get(self, key: str, default=None):
        """Get a setting value by dotted key, e.g. 'digest.algorithm'.

        Returns default when any part of the key path is missing or an
        intermediate value is not a table.
        """
        value = self._settings

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value
