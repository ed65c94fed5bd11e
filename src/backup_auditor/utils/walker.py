import functools
import logging
import os
import stat
from pathlib import Path
from typing import Callable, Generator, Iterator, NamedTuple

logger = logging.getLogger(__name__)


class FileContext:
    """An entry met while walking a root.

    The context knows its name and parent, which is enough to derive the
    root-independent relative path used to pair entries between two roots:
        source_root / context.relative_path
        target_root / context.relative_path

    The _path attribute is only used to lstat() the entry lazily. Symlinks are
    never dereferenced.
    """
    def __init__(self, parent, name: str | None, path: Path | None = None, st: os.stat_result | None = None):
        self._parent: FileContext | None = parent
        self._name: str | None = name
        self._stat: os.stat_result | None = st
        self._path: Path | None = path

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def parent(self) -> 'FileContext':
        if self._parent is None:
            raise LookupError("no parent")

        return self._parent

    @property
    def stat(self) -> os.stat_result:
        if self._stat is None:
            if self._path is None:
                raise LookupError("stat not available and path not provided")
            self._stat = self._path.stat(follow_symlinks=False)
        return self._stat

    @functools.cached_property
    def relative_path(self) -> Path | None:
        """Path of this entry relative to the walked root, None for the root itself."""
        if self._name is None:
            return None

        if self._parent is None:
            return Path(self._name)

        parent_path = self._parent.relative_path
        if parent_path is None:
            return Path(self._name)

        return parent_path / self._name

    def is_file(self):
        return stat.S_ISREG(self.stat.st_mode)

    def is_dir(self):
        return stat.S_ISDIR(self.stat.st_mode)

    def is_symlink(self):
        return stat.S_ISLNK(self.stat.st_mode)


ListingErrorHandler = Callable[[Path, FileContext, OSError], None]


def walk(path: Path, parent: FileContext,
         on_error: ListingErrorHandler | None = None) -> Generator[tuple[Path, FileContext], None | bool, None]:
    """Recursively traverse a directory without following symlinks.

    Sending False back after an entry is yielded prevents descending into it.
    A directory that cannot be listed is handed to on_error and skipped; without
    a handler the OSError propagates.
    """
    try:
        children = list(path.iterdir())
    except OSError as e:
        if on_error is None:
            raise
        on_error(path, parent, e)
        return

    for child in children:
        context = FileContext(parent, child.name, path=child)
        descend = yield child, context

        if descend is False:
            continue

        try:
            is_dir = context.is_dir()
        except OSError:
            # Vanished since it was listed; resolving it later reports why.
            continue

        if is_dir:
            yield from walk(child, context, on_error)


class WalkPolicy(NamedTuple):
    """Policy controlling filesystem traversal behavior.

    Attributes:
        excluded_paths: Relative paths that are neither yielded nor descended into
        on_error: Called with (directory_path, directory_context, error) for each
                  directory that cannot be listed
    """
    excluded_paths: frozenset[Path] = frozenset()
    on_error: ListingErrorHandler | None = None


def walk_with_policy(path: Path, policy: WalkPolicy) -> Iterator[tuple[Path, FileContext]]:
    """Walk a root and yield (absolute_path, file_context) for every entry below it.

    The root itself is not yielded. Traversal order follows the directory
    listings and is not reproducible across runs.

    Example:
        policy = WalkPolicy(excluded_paths=frozenset({Path('lost+found')}))
        for file_path, context in walk_with_policy(source_root, policy):
            print(context.relative_path)
    """
    root_context = FileContext(None, None, path)
    gen = walk(path, root_context, policy.on_error)
    pending = None

    try:
        while True:
            file_path, file_context = gen.send(pending)
            pending = None

            if file_context.relative_path in policy.excluded_paths:
                logger.debug(f"Skipping excluded path: {file_path}")
                pending = False
                continue

            yield file_path, file_context
    except StopIteration:
        pass
