"""
Keyed mutexes used to serialize writes per doctor timeline and per appointment.

Two registries are provided: an in-process one backed by ``threading.Lock``
(single worker, tests) and a Redis one that holds across processes.
"""
from contextlib import contextmanager
from typing import ContextManager, Dict, Iterator, Protocol
import logging
import threading

from redis.exceptions import LockError, RedisError

from .exceptions import InternalError

logger = logging.getLogger(__name__)


class LockRegistry(Protocol):
    def hold(self, key: str) -> ContextManager[None]:
        ...


class LocalLockRegistry:
    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._lock_for(key)
        if not lock.acquire(timeout=self.timeout):
            logger.error(f"Timed out waiting for lock {key}")
            raise InternalError(f"Timed out waiting for lock {key}")
        try:
            yield
        finally:
            lock.release()


class RedisLockRegistry:
    def __init__(self, redis_client, timeout: float = 10.0, prefix: str = "lock:"):
        self.redis = redis_client
        self.timeout = timeout
        self.prefix = prefix

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self.redis.lock(
            f"{self.prefix}{key}",
            timeout=self.timeout * 3,
            blocking_timeout=self.timeout,
        )
        try:
            acquired = lock.acquire()
        except RedisError as e:
            logger.error(f"Redis lock {key} unavailable: {str(e)}")
            raise InternalError("Lock service unavailable") from e
        if not acquired:
            logger.error(f"Timed out waiting for lock {key}")
            raise InternalError(f"Timed out waiting for lock {key}")
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                # Lock expired while held; the transaction already finished.
                logger.warning(f"Lock {key} expired before release")
