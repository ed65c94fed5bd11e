import asyncio
import os
import tempfile
import unittest
from pathlib import Path

from backup_auditor.commands.classifier import (
    EntryClassifier,
    ResolvedEntry,
    ResolvedPair,
    make_record,
    resolve_entry,
    resolve_pair,
    structural_category,
)
from backup_auditor.report.record import EntryCategory, EntryType
from backup_auditor.utils.processor import Processor

from ..test_utils import build_tree


class ResolveEntryTest(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self._tmpdir.name)

    def tearDown(self):
        self._tmpdir.cleanup()

    def test_present_file(self):
        build_tree(self.root, files={'a.txt': b'hello'})

        entry = resolve_entry(self.root, Path('a.txt'))

        self.assertTrue(entry.present)
        self.assertFalse(entry.absent)
        self.assertFalse(entry.unreadable)
        self.assertIs(EntryType.FILE, entry.entry_type)

    def test_missing_entry_is_absent(self):
        entry = resolve_entry(self.root, Path('missing'))

        self.assertTrue(entry.absent)
        self.assertIsInstance(entry.error, FileNotFoundError)
        self.assertIsNone(entry.entry_type)

    def test_entry_below_a_file_is_absent(self):
        build_tree(self.root, files={'a.txt': b'hello'})

        self.assertTrue(resolve_entry(self.root, Path('a.txt', 'child')).absent)

    def test_entry_below_a_symlinked_directory_is_absent(self):
        build_tree(self.root, files={'real/f': b'hello'}, symlinks={'d': 'real'})

        entry = resolve_entry(self.root, Path('d', 'f'))

        self.assertTrue(entry.absent)
        self.assertIsInstance(entry.error, NotADirectoryError)
        self.assertEqual(str(self.root / 'd'), entry.error.filename)
        self.assertTrue(resolve_entry(self.root, Path('real', 'f')).present)

    def test_nested_entry_below_real_directories_is_present(self):
        build_tree(self.root, files={'a/b/c.txt': b'hello'})

        entry = resolve_entry(self.root, Path('a', 'b', 'c.txt'))

        self.assertTrue(entry.present)
        self.assertEqual(self.root / 'a' / 'b' / 'c.txt', entry.path)

    def test_broken_symlink_is_present(self):
        build_tree(self.root, symlinks={'link': 'nowhere'})

        entry = resolve_entry(self.root, Path('link'))

        self.assertTrue(entry.present)
        self.assertIs(EntryType.SYMLINK, entry.entry_type)

    def test_permission_error_is_unreadable(self):
        entry = ResolvedEntry(self.root / 'x', error=PermissionError(13, 'Permission denied'))

        self.assertTrue(entry.unreadable)
        self.assertFalse(entry.absent)


class StructuralCategoryTest(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        base = Path(self._tmpdir.name)
        self.source = base / 'source'
        self.target = base / 'target'
        build_tree(self.source,
                   files={'file': b'x', 'file-vs-dir': b'x', 'only-source': b'x'},
                   dirs=['dir'],
                   symlinks={'link': 'file', 'link-vs-file': 'file'})
        build_tree(self.target,
                   files={'file': b'y', 'link-vs-file': b'x', 'only-target': b'x'},
                   dirs=['dir', 'file-vs-dir'],
                   symlinks={'link': 'elsewhere'})

    def tearDown(self):
        self._tmpdir.cleanup()

    def _category(self, name):
        return structural_category(resolve_pair(self.source, self.target, Path(name)))

    def test_decision_table(self):
        self.assertIs(EntryCategory.MISSING_IN_BOTH, self._category('nowhere'))
        self.assertIs(EntryCategory.MISSING_IN_SOURCE, self._category('only-target'))
        self.assertIs(EntryCategory.MISSING_IN_TARGET, self._category('only-source'))
        self.assertIs(EntryCategory.BOTH_DIRECTORIES, self._category('dir'))
        self.assertIs(EntryCategory.BOTH_SYMLINKS, self._category('link'))
        self.assertIs(EntryCategory.TYPE_MISMATCH, self._category('file-vs-dir'))
        self.assertIs(EntryCategory.TYPE_MISMATCH, self._category('link-vs-file'))

    def test_regular_files_need_content_comparison(self):
        self.assertIsNone(self._category('file'))

    def test_special_files_of_the_same_kind_match(self):
        os.mkfifo(self.source / 'pipe')
        os.mkfifo(self.target / 'pipe')

        self.assertIs(EntryCategory.BOTH_SPECIAL_FILES, self._category('pipe'))

    def test_special_file_versus_regular_file_is_a_type_mismatch(self):
        os.mkfifo(self.source / 'pipe')
        (self.target / 'pipe').write_bytes(b'x')

        pair = resolve_pair(self.source, self.target, Path('pipe'))

        self.assertIs(EntryCategory.TYPE_MISMATCH, structural_category(pair))
        record = make_record(EntryCategory.TYPE_MISMATCH, pair)
        self.assertIs(EntryType.FIFO, record.source_type)
        self.assertIs(EntryType.FILE, record.target_type)

    def test_unreadable_side_wins_over_missing(self):
        pair = ResolvedPair(
            Path('x'),
            ResolvedEntry(self.source / 'x', error=PermissionError(13, 'Permission denied')),
            ResolvedEntry(self.target / 'x', error=FileNotFoundError(2, 'No such file or directory')))

        self.assertIs(EntryCategory.UNREADABLE, structural_category(pair))

        record = make_record(EntryCategory.UNREADABLE, pair)
        self.assertIn('Permission denied', record.source_error)
        self.assertIn('No such file or directory', record.target_error)


class EntryClassifierTest(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        base = Path(self._tmpdir.name)
        self.source = base / 'source'
        self.target = base / 'target'
        build_tree(self.source, files={'same.txt': b'hello', 'c.txt': b'foo', 'gone.txt': b'x'}, dirs=['d'])
        build_tree(self.target, files={'same.txt': b'hello', 'c.txt': b'bar'}, dirs=['d'])

    def tearDown(self):
        self._tmpdir.cleanup()

    def _classify(self, name, processor):
        classifier = EntryClassifier(processor)
        return asyncio.run(classifier.classify(resolve_pair(self.source, self.target, Path(name))))

    def test_identical_files_match_silently(self):
        with Processor(2) as processor:
            classification = self._classify('same.txt', processor)

        self.assertIs(EntryCategory.CONTENT_MATCH, classification.category)
        self.assertIsNone(classification.record)

    def test_directories_match_silently(self):
        with Processor(1) as processor:
            classification = self._classify('d', processor)

        self.assertIs(EntryCategory.BOTH_DIRECTORIES, classification.category)
        self.assertIsNone(classification.record)

    def test_different_content_reports_both_digests(self):
        with Processor(2) as processor:
            classification = self._classify('c.txt', processor)

        record = classification.record
        self.assertIs(EntryCategory.CONTENT_MISMATCH, classification.category)
        self.assertEqual('c.txt', record.relative_path)
        self.assertEqual('sha256', record.digest_algorithm)
        self.assertEqual('2c26b46b68ffc68ff99b453c1d30413413422d706483bfa0f98a5e886266e7ae', record.source_digest)
        self.assertEqual('fcde2b2edba56bf408601fb721fe9b5c338d10ee429ea04fae5511b68fbf8fb9', record.target_digest)

    def test_missing_in_target_carries_reason(self):
        with Processor(1) as processor:
            classification = self._classify('gone.txt', processor)

        record = classification.record
        self.assertIs(EntryCategory.MISSING_IN_TARGET, record.category)
        self.assertEqual(str(self.source / 'gone.txt'), record.source_path)
        self.assertEqual(str(self.target / 'gone.txt'), record.target_path)
        self.assertIs(EntryType.FILE, record.source_type)
        self.assertIsNone(record.source_error)
        self.assertIn('No such file or directory', record.target_error)

    @unittest.skipIf(os.geteuid() == 0, "permissions are not enforced for root")
    def test_unreadable_content_is_a_digest_failure(self):
        (self.target / 'same.txt').chmod(0)
        self.addCleanup((self.target / 'same.txt').chmod, 0o644)

        with Processor(1) as processor:
            classification = self._classify('same.txt', processor)

        record = classification.record
        self.assertIs(EntryCategory.DIGEST_FAILED, record.category)
        self.assertIsNone(record.source_error)
        self.assertIn('Permission denied', record.target_error)


if __name__ == '__main__':
    unittest.main()
