"""cProfile hooks for backup-auditor.

Setting BACKUP_AUDITOR_PROFILE to a directory enables profiling. Every audit run
gets its own session directory below it, named {timestamp_ms}_{main_pid}, and the
main entry point as well as each digest computed in a worker process dump their
statistics there.
"""
import cProfile
import functools
import itertools
import os
import time
from pathlib import Path
from typing import Callable, TypeVar, ParamSpec

P = ParamSpec('P')
T = TypeVar('T')

PROFILE_ENV = 'BACKUP_AUDITOR_PROFILE'
SESSION_ENV = '_BACKUP_AUDITOR_PROFILE_SESSION_DIR'

_dump_sequence = itertools.count()


def get_profile_dir() -> Path | None:
    """Return the session directory profiles are written to, or None when profiling is off."""
    profile_root = os.environ.get(PROFILE_ENV)
    if not profile_root:
        return None
    return Path(profile_root) / _session_name()


def _session_name() -> str:
    # Worker processes inherit the name chosen by the main process through the environment.
    inherited = os.environ.get(SESSION_ENV)
    if inherited:
        return inherited
    return f"{int(time.time() * 1000)}_{os.getpid()}"


def generate_profile_filename(prefix: str = "profile") -> str:
    """Build a dump file name unique within the session: {prefix}_{pid}_{seq}.prof"""
    return f"{prefix}_{os.getpid()}_{next(_dump_sequence)}.prof"


def profile_function(func: Callable[P, T], prefix: str = "profile") -> Callable[P, T]:
    """Wrap func so that each call is profiled when BACKUP_AUDITOR_PROFILE is set."""
    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        profile_dir = get_profile_dir()
        if profile_dir is None:
            return func(*args, **kwargs)

        profile_dir.mkdir(parents=True, exist_ok=True)
        profiler = cProfile.Profile()
        try:
            profiler.enable()
            return func(*args, **kwargs)
        finally:
            profiler.disable()
            profiler.dump_stats(str(profile_dir / generate_profile_filename(prefix)))

    return wrapper


def profile_main(func: Callable[P, T]) -> Callable[P, T]:
    """Profile the CLI entry point and pin the session directory for the worker processes."""
    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        if os.environ.get(PROFILE_ENV):
            os.environ[SESSION_ENV] = _session_name()
        return profile_function(func, prefix="main")(*args, **kwargs)

    return wrapper


def profile_worker(func: Callable[P, T]) -> Callable[P, T]:
    """Profile a function executed inside the digest process pool."""
    return profile_function(func, prefix="worker")
