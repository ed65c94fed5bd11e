"""Report module for audit findings.

This package contains:
- record: EntryCategory, EntryType and the DiagnosticRecord written for each finding
- sink: ReportSink serializing records from concurrent comparisons into one file
"""
