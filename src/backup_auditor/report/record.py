"""Diagnostic records produced by an audit."""

import stat
from dataclasses import dataclass
from enum import StrEnum

import msgpack


class EntryCategory(StrEnum):
    """Outcome of comparing the entries found at one relative path under both roots."""
    BOTH_DIRECTORIES = 'both_directories'
    BOTH_SYMLINKS = 'both_symlinks'
    BOTH_SPECIAL_FILES = 'both_special_files'
    CONTENT_MATCH = 'content_match'
    CONTENT_MISMATCH = 'content_mismatch'
    TYPE_MISMATCH = 'type_mismatch'
    MISSING_IN_TARGET = 'missing_in_target'
    MISSING_IN_SOURCE = 'missing_in_source'
    MISSING_IN_BOTH = 'missing_in_both'
    UNREADABLE = 'unreadable'
    LISTING_FAILED = 'listing_failed'
    DIGEST_FAILED = 'digest_failed'

    @property
    def is_diagnostic(self) -> bool:
        """Whether the category is reported. Matches are silent."""
        return self not in _MATCH_CATEGORIES


_MATCH_CATEGORIES = frozenset({
    EntryCategory.BOTH_DIRECTORIES,
    EntryCategory.BOTH_SYMLINKS,
    EntryCategory.BOTH_SPECIAL_FILES,
    EntryCategory.CONTENT_MATCH,
})


class EntryType(StrEnum):
    FILE = 'file'
    DIRECTORY = 'directory'
    SYMLINK = 'symlink'
    FIFO = 'fifo'
    SOCKET = 'socket'
    CHAR_DEVICE = 'char_device'
    BLOCK_DEVICE = 'block_device'
    OTHER = 'other'

    @classmethod
    def from_mode(cls, mode: int) -> 'EntryType':
        if stat.S_ISREG(mode):
            return cls.FILE
        if stat.S_ISDIR(mode):
            return cls.DIRECTORY
        if stat.S_ISLNK(mode):
            return cls.SYMLINK
        if stat.S_ISFIFO(mode):
            return cls.FIFO
        if stat.S_ISSOCK(mode):
            return cls.SOCKET
        if stat.S_ISCHR(mode):
            return cls.CHAR_DEVICE
        if stat.S_ISBLK(mode):
            return cls.BLOCK_DEVICE
        return cls.OTHER


HEADLINES = {
    EntryCategory.CONTENT_MISMATCH: "Found mismatched {algorithm} hashes",
    EntryCategory.TYPE_MISMATCH: "Found mismatched file types",
    EntryCategory.MISSING_IN_TARGET: "Found missing file in target",
    EntryCategory.MISSING_IN_SOURCE: "Found missing file in source",
    EntryCategory.MISSING_IN_BOTH: "Found missing file in source and target",
    EntryCategory.UNREADABLE: "Found unreadable entry",
    EntryCategory.LISTING_FAILED: "Failed to list directory",
    EntryCategory.DIGEST_FAILED: "Failed to compute {algorithm} hashes",
}


@dataclass(frozen=True)
class DiagnosticRecord:
    """One finding of divergence between the source and the target root.

    Attributes:
        category: What was found; never one of the match categories
        relative_path: Path of the entry relative to both roots ('.' for a root)
        source_path: Absolute path of the entry under the source root
        target_path: Absolute path of the entry under the target root
        source_type: Type of the source entry when it could be determined
        target_type: Type of the target entry when it could be determined
        source_error: Text of the error met on the source side, if any
        target_error: Text of the error met on the target side, if any
        digest_algorithm: hashlib name of the digest, for content findings
        source_digest: Hex digest of the source file, for content mismatches
        target_digest: Hex digest of the target file, for content mismatches
    """
    category: EntryCategory
    relative_path: str
    source_path: str
    target_path: str
    source_type: EntryType | None = None
    target_type: EntryType | None = None
    source_error: str | None = None
    target_error: str | None = None
    digest_algorithm: str | None = None
    source_digest: str | None = None
    target_digest: str | None = None

    def __post_init__(self):
        if not EntryCategory(self.category).is_diagnostic:
            raise ValueError(f"{self.category} does not produce a diagnostic record")

    @property
    def headline(self) -> str:
        return HEADLINES[self.category].format(algorithm=self.digest_algorithm or 'content')

    def render_text(self) -> str:
        """Render the record as a self-describing text block terminated by a blank line."""
        lines = [
            self.headline,
            f"path={self.relative_path!r}",
            f"src={self.source_path!r}",
            f"tgt={self.target_path!r}",
        ]

        optional = [
            ('src_type', self.source_type),
            ('tgt_type', self.target_type),
            ('src_digest', self.source_digest),
            ('tgt_digest', self.target_digest),
            ('src_reason', self.source_error),
            ('tgt_reason', self.target_error),
        ]
        lines.extend(f"{key}={value}" for key, value in optional if value is not None)

        return "\n".join(lines) + "\n\n"

    def to_msgpack(self) -> bytes:
        """Serialize to a msgpack array in field order.

        File names that are not valid UTF-8 keep their surrogate escapes, so
        os.fsencode() of a decoded path gives back the original bytes.
        """
        result = msgpack.dumps([
            str(self.category),
            self.relative_path,
            self.source_path,
            self.target_path,
            None if self.source_type is None else str(self.source_type),
            None if self.target_type is None else str(self.target_type),
            self.source_error,
            self.target_error,
            self.digest_algorithm,
            self.source_digest,
            self.target_digest,
        ], unicode_errors='surrogateescape')
        assert isinstance(result, bytes)
        return result

    @classmethod
    def from_fields(cls, fields: list) -> "DiagnosticRecord":
        """Build a record from a decoded msgpack array."""
        category, relative_path, source_path, target_path, source_type, target_type, \
            source_error, target_error, digest_algorithm, source_digest, target_digest = fields

        return cls(
            EntryCategory(category),
            relative_path,
            source_path,
            target_path,
            source_type=None if source_type is None else EntryType(source_type),
            target_type=None if target_type is None else EntryType(target_type),
            source_error=source_error,
            target_error=target_error,
            digest_algorithm=digest_algorithm,
            source_digest=source_digest,
            target_digest=target_digest,
        )

    @classmethod
    def from_msgpack(cls, data: bytes) -> "DiagnosticRecord":
        decoded = msgpack.loads(data, raw=False, unicode_errors='surrogateescape')
        assert isinstance(decoded, list)
        return cls.from_fields(decoded)
