"""Tests for command implementation modules.

Test Files and Coverage:
========================

| Test File          | Test Classes                     | Tested Constructs                         | Tested Functionalities                     |
|--------------------|----------------------------------|-------------------------------------------|--------------------------------------------|
| test_classifier.py | ResolveEntryTest                 | resolve_entry(), ResolvedEntry            | Present, absent and unreadable sides,      |
|                    |                                  |                                           | symlinked ancestors                        |
|                    | StructuralCategoryTest           | structural_category(), make_record()      | Decision table, unreadable precedence,     |
|                    |                                  |                                           | special files                              |
|                    | EntryClassifierTest              | EntryClassifier.classify()                | Digest comparison, digest failures         |
| test_audit.py      | DoAuditTest                      | do_audit(), AuditProcessor                | Bilateral walk, exclusions, pool size,     |
|                    |                                  |                                           | progress, listing failures, symlinked      |
|                    |                                  |                                           | directories, non-UTF-8 names               |
"""
