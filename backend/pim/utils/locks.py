import os
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from filelock import FileLock, Timeout

from pim.config import settings


class LockTimeout(Exception):
    pass


def _lock_path(product_id: int) -> str:
    os.makedirs(settings.STOCK_LOCK_DIR, exist_ok=True)
    return os.path.join(settings.STOCK_LOCK_DIR, f"stock_{product_id}.lock")


@contextmanager
def product_stock_locks(product_ids: Iterable[int], timeout: Optional[float] = None) -> Iterator[None]:
    """
    Hold one file lock per product id for the duration of the block.

    Ids are de-duplicated and acquired in ascending order so two callers
    locking overlapping sets (bundles sharing a component) cannot deadlock.
    """
    timeout = settings.STOCK_LOCK_TIMEOUT_SECONDS if timeout is None else timeout
    held = []
    try:
        for pid in sorted(set(product_ids)):
            lock = FileLock(_lock_path(pid))
            try:
                lock.acquire(timeout=timeout)
            except Timeout:
                raise LockTimeout(f"Could not acquire stock lock for product {pid}; try again")
            held.append(lock)
        yield
    finally:
        for lock in reversed(held):
            lock.release()
