import asyncio
import hashlib
import logging
import multiprocessing
from multiprocessing.pool import Pool
import pathlib
from typing import Awaitable, BinaryIO

from .profiling import profile_worker

logger = logging.getLogger(__name__)

DEFAULT_DIGEST_ALGORITHM = 'sha256'
DEFAULT_CHUNK_SIZE = 1024 * 1024


def digest_stream(stream: BinaryIO, algorithm: str = DEFAULT_DIGEST_ALGORITHM,
                  chunk_size: int = DEFAULT_CHUNK_SIZE) -> bytes:
    """Hash everything readable from stream, chunk_size bytes at a time.

    The whole stream is always consumed. The result does not depend on chunk_size.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk size must be positive: {chunk_size}")

    hasher = hashlib.new(algorithm)
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        hasher.update(chunk)
    return hasher.digest()


@profile_worker
def compute_digest_for_path(path: pathlib.Path, algorithm: str, chunk_size: int) -> bytes:
    with open(path, "rb") as f:
        return digest_stream(f, algorithm, chunk_size)


def validate_digest_algorithm(algorithm: str) -> str:
    """Return algorithm if hashlib provides it with a fixed digest size, raise ValueError otherwise."""
    try:
        hasher = hashlib.new(algorithm)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Unknown digest algorithm: {algorithm}") from e

    if algorithm.lower().startswith('shake'):
        raise ValueError(f"Digest algorithm has no fixed length: {algorithm}")

    return hasher.name


class Processor:
    """Process pool computing file digests on behalf of an event loop.

    The pool size is the concurrency of an audit: the coordinator never keeps
    more comparisons in flight than there are processes.
    """

    def __init__(self, concurrency: int | None = None, *,
                 algorithm: str = DEFAULT_DIGEST_ALGORITHM, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if concurrency is None:
            concurrency = multiprocessing.cpu_count()

        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1: {concurrency}")

        if chunk_size <= 0:
            raise ValueError(f"chunk size must be positive: {chunk_size}")

        self._concurrency = concurrency
        self._algorithm = validate_digest_algorithm(algorithm)
        self._chunk_size = chunk_size
        self._pool: Pool = Pool(self._concurrency)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.terminate()
        else:
            self.close()

    def close(self):
        """Wait for submitted digests to finish and shut the pool down."""
        self._pool.close()
        self._pool.join()

    def terminate(self):
        """Shut the pool down without waiting for digests still in progress."""
        self._pool.terminate()
        self._pool.join()

    @property
    def concurrency(self):
        return self._concurrency

    @property
    def algorithm(self) -> str:
        return self._algorithm

    def digest(self, path: pathlib.Path) -> Awaitable[bytes]:
        """Compute the digest of a file in the pool.

        :raise OSError: the file could not be opened or read"""
        logger.debug(f"Starting {self._algorithm} computation for: {path}")

        async def log_and_compute():
            result = await self._evaluate(compute_digest_for_path, path, self._algorithm, self._chunk_size)
            logger.debug(f"Completed {self._algorithm} computation for: {path}")
            return result

        return log_and_compute()

    def _evaluate(self, func, *args):
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def resolve(v):
            if not future.done():
                future.set_result(v)

        def reject(e):
            if not future.done():
                future.set_exception(e)

        def notify(callback, value):
            # Runs in the pool's result handler thread. The loop may already be closed.
            try:
                loop.call_soon_threadsafe(callback, value)
            except RuntimeError:
                logger.debug(f"Dropped {func.__name__} result for a closed event loop")

        self._pool.apply_async(func, args=args,
                               callback=lambda v: notify(resolve, v),
                               error_callback=lambda e: notify(reject, e))

        return future
