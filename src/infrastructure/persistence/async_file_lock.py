"""Async-safe file lock wrapper.

filelock blocks while it waits, so acquire and release run in a worker
thread instead of on the event loop.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from filelock import FileLock


@asynccontextmanager
async def async_file_lock(lock_path: Path, timeout_s: float = -1) -> AsyncIterator[None]:
    """Hold an inter-process lock on lock_path for the body of the block.

    timeout_s < 0 waits forever; otherwise filelock.Timeout is raised.
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    # acquire and release may land on different worker threads
    lock = FileLock(lock_path, timeout=timeout_s, thread_local=False)

    await asyncio.to_thread(lock.acquire)
    try:
        yield
    finally:
        await asyncio.to_thread(lock.release)
