import asyncio
import threading
from asyncio import TaskGroup, Semaphore
from typing import Any, Awaitable, Callable


class WorkerSlot:
    """Ownership of one of the throttler's permits by a single task.

    index identifies the permit (0..concurrency-1) and is stable for the lifetime
    of the task, so it can be used to address per-worker state such as a status
    line. The permit is returned exactly once, however often release() is called.
    """

    def __init__(self, index: int, release_callback: Callable[[int], None]):
        self._index = index
        self._lock = threading.Lock()
        self._released = False
        self._release_callback = release_callback

    @property
    def index(self) -> int:
        return self._index

    def release(self):
        """Give the permit back so another task may start."""
        with self._lock:
            if not self._released:
                self._release_callback(self._index)
                self._released = True


class Throttler:
    """Bounded worker pool on top of a TaskGroup.

    At most `concurrency` scheduled tasks run at once. schedule() waits for a free
    slot before it returns, which applies backpressure to whatever produces the
    work.
    """

    def __init__(self, task_group: TaskGroup, concurrency: int):
        """Initialize the throttler.

        Args:
            task_group: The TaskGroup to which tasks will be added
            concurrency: Maximum number of tasks that can run concurrently
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1: {concurrency}")

        self._task_group = task_group
        self._semaphore = Semaphore(concurrency)
        self._free_indices = list(range(concurrency - 1, -1, -1))

    async def schedule(self, work: Callable[[WorkerSlot], Awaitable[Any]], name=None) -> asyncio.Task:
        """Run work(slot) as a task once a slot is available.

        Args:
            work: Called with the WorkerSlot assigned to the task; returns the awaitable to run
            name: Optional name for the task

        Returns:
            The created asyncio.Task
        """
        await self._semaphore.acquire()
        slot = WorkerSlot(self._free_indices.pop(), self._return_slot)

        async def wrapper():
            try:
                return await work(slot)
            finally:
                slot.release()

        try:
            return self._task_group.create_task(wrapper(), name=name)
        except BaseException:
            slot.release()
            raise

    def _return_slot(self, index: int):
        self._free_indices.append(index)
        self._semaphore.release()
