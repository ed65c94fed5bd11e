"""Tests for report module.

Test Files and Coverage:
========================

| Test File      | Test Classes           | Tested Constructs                | Tested Functionalities                     |
|----------------|------------------------|----------------------------------|--------------------------------------------|
| test_record.py | EntryCategoryTest      | EntryCategory                    | Silent match categories                    |
|                | EntryTypeTest          | EntryType.from_mode()            | File type detection                        |
|                | DiagnosticRecordTest   | DiagnosticRecord                 | Text rendering, msgpack serialization      |
| test_sink.py   | ReportSinkTest         | ReportSink, read_report()        | Concurrent writes, summary, truncation     |
"""
