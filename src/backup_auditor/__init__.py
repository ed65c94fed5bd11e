from .auditor import Auditor
from .settings import AuditSettings, AuditConfigurationError, AuditSetupError
from .commands.audit import AuditSummary
from .report.record import DiagnosticRecord, EntryCategory, EntryType
from .report.sink import ReportFormat, ReportSink, read_report
from .utils.processor import Processor
