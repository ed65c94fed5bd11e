"""Resolution of relative paths against both roots and classification of the pairs."""

import asyncio
import errno
import logging
import os
import stat
from pathlib import Path
from typing import NamedTuple

from ..report.record import DiagnosticRecord, EntryCategory, EntryType
from ..utils.processor import Processor

logger = logging.getLogger(__name__)


def is_not_found(error: OSError) -> bool:
    """Whether error means that nothing exists at the path, as opposed to an unreadable entry."""
    return isinstance(error, (FileNotFoundError, NotADirectoryError))


class ResolvedEntry(NamedTuple):
    """The outcome of lstat()ing one side of a pair.

    Exactly one of stat and error is set.
    """
    path: Path
    stat: os.stat_result | None = None
    error: OSError | None = None

    @property
    def present(self) -> bool:
        return self.stat is not None

    @property
    def absent(self) -> bool:
        return self.error is not None and is_not_found(self.error)

    @property
    def unreadable(self) -> bool:
        return self.error is not None and not is_not_found(self.error)

    @property
    def entry_type(self) -> EntryType | None:
        return None if self.stat is None else EntryType.from_mode(self.stat.st_mode)


def resolve_entry(root: Path, relative_path: Path) -> ResolvedEntry:
    """lstat() root / relative_path without following a symlink in any component.

    Every ancestor below root has to be a real directory. When one is not (a
    symlink to a directory included), nothing exists at the path on this side.
    """
    path = root / relative_path
    ancestor = root
    for part in relative_path.parts[:-1]:
        ancestor = ancestor / part
        try:
            st = ancestor.stat(follow_symlinks=False)
        except OSError as e:
            return ResolvedEntry(path, error=e)
        if not stat.S_ISDIR(st.st_mode):
            return ResolvedEntry(path, error=NotADirectoryError(
                errno.ENOTDIR, os.strerror(errno.ENOTDIR), str(ancestor)))

    try:
        return ResolvedEntry(path, stat=path.stat(follow_symlinks=False))
    except OSError as e:
        return ResolvedEntry(path, error=e)


class ResolvedPair(NamedTuple):
    relative_path: Path
    source: ResolvedEntry
    target: ResolvedEntry


def resolve_pair(source_root: Path, target_root: Path, relative_path: Path) -> ResolvedPair:
    return ResolvedPair(
        relative_path,
        resolve_entry(source_root, relative_path),
        resolve_entry(target_root, relative_path))


_ORDINARY_TYPES = frozenset({EntryType.FILE, EntryType.DIRECTORY, EntryType.SYMLINK})


def structural_category(pair: ResolvedPair) -> EntryCategory | None:
    """Categorize a pair from metadata alone.

    Returns None when both sides are regular files, whose contents have to be
    compared to decide between CONTENT_MATCH and CONTENT_MISMATCH. An entry that
    exists but cannot be examined is UNREADABLE rather than missing.
    """
    source, target = pair.source, pair.target

    if source.unreadable or target.unreadable:
        return EntryCategory.UNREADABLE
    if source.absent and target.absent:
        return EntryCategory.MISSING_IN_BOTH
    if source.absent:
        return EntryCategory.MISSING_IN_SOURCE
    if target.absent:
        return EntryCategory.MISSING_IN_TARGET

    source_type, target_type = source.entry_type, target.entry_type
    if source_type is EntryType.DIRECTORY and target_type is EntryType.DIRECTORY:
        return EntryCategory.BOTH_DIRECTORIES
    if source_type is EntryType.SYMLINK and target_type is EntryType.SYMLINK:
        # Link targets are not compared.
        return EntryCategory.BOTH_SYMLINKS
    if source_type is EntryType.FILE and target_type is EntryType.FILE:
        return None
    if source_type not in _ORDINARY_TYPES and \
            stat.S_IFMT(source.stat.st_mode) == stat.S_IFMT(target.stat.st_mode):
        # Special files of the same kind; device numbers are not compared.
        return EntryCategory.BOTH_SPECIAL_FILES
    return EntryCategory.TYPE_MISMATCH


def make_record(category: EntryCategory, pair: ResolvedPair, *,
                source_error: BaseException | None = None,
                target_error: BaseException | None = None,
                digest_algorithm: str | None = None,
                source_digest: bytes | None = None,
                target_digest: bytes | None = None) -> DiagnosticRecord:
    """Build the record for a pair; errors default to those met while resolving it."""
    if source_error is None:
        source_error = pair.source.error
    if target_error is None:
        target_error = pair.target.error

    return DiagnosticRecord(
        category,
        pair.relative_path.as_posix(),
        str(pair.source.path),
        str(pair.target.path),
        source_type=pair.source.entry_type,
        target_type=pair.target.entry_type,
        source_error=None if source_error is None else str(source_error),
        target_error=None if target_error is None else str(target_error),
        digest_algorithm=digest_algorithm,
        source_digest=None if source_digest is None else source_digest.hex(),
        target_digest=None if target_digest is None else target_digest.hex(),
    )


class Classification(NamedTuple):
    category: EntryCategory
    record: DiagnosticRecord | None


class EntryClassifier:
    """Decide the category of resolved pairs, digesting regular files with a Processor."""

    def __init__(self, processor: Processor):
        self._processor = processor

    async def classify(self, pair: ResolvedPair) -> Classification:
        category = structural_category(pair)
        if category is None:
            return await self._compare_content(pair)

        if not category.is_diagnostic:
            return Classification(category, None)

        return Classification(category, make_record(category, pair))

    async def _compare_content(self, pair: ResolvedPair) -> Classification:
        algorithm = self._processor.algorithm
        source_result, target_result = await asyncio.gather(
            self._processor.digest(pair.source.path),
            self._processor.digest(pair.target.path),
            return_exceptions=True)

        for result in (source_result, target_result):
            if isinstance(result, BaseException) and not isinstance(result, OSError):
                raise result

        if isinstance(source_result, OSError) or isinstance(target_result, OSError):
            logger.warning(f"Failed to digest {pair.relative_path}: {source_result!r}, {target_result!r}")
            return Classification(EntryCategory.DIGEST_FAILED, make_record(
                EntryCategory.DIGEST_FAILED, pair,
                source_error=source_result if isinstance(source_result, OSError) else None,
                target_error=target_result if isinstance(target_result, OSError) else None,
                digest_algorithm=algorithm))

        if source_result == target_result:
            return Classification(EntryCategory.CONTENT_MATCH, None)

        return Classification(EntryCategory.CONTENT_MISMATCH, make_record(
            EntryCategory.CONTENT_MISMATCH, pair,
            digest_algorithm=algorithm,
            source_digest=source_result,
            target_digest=target_result))
