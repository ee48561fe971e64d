import threading

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, LockError

from app.core.exceptions import InternalError
from app.core.locks import LocalLockRegistry, RedisLockRegistry


class TestLocalLockRegistry:

    def test_same_key_is_exclusive(self):
        registry = LocalLockRegistry(timeout=0.1)
        with registry.hold("doctor:1"):
            outcome = []

            def contender():
                try:
                    with registry.hold("doctor:1"):
                        outcome.append("acquired")
                except InternalError:
                    outcome.append("timed out")

            thread = threading.Thread(target=contender)
            thread.start()
            thread.join()

        assert outcome == ["timed out"]

    def test_different_keys_do_not_block(self):
        registry = LocalLockRegistry(timeout=0.1)
        with registry.hold("doctor:1"):
            with registry.hold("doctor:2"):
                pass

    def test_released_after_error(self):
        registry = LocalLockRegistry(timeout=0.1)
        with pytest.raises(ValueError):
            with registry.hold("appointment:9"):
                raise ValueError("boom")
        with registry.hold("appointment:9"):
            pass


class FakeRedisLock:
    def __init__(self, client, name, acquire_result=True, release_error=None):
        self.client = client
        self.name = name
        self.acquire_result = acquire_result
        self.release_error = release_error

    def acquire(self):
        if isinstance(self.acquire_result, Exception):
            raise self.acquire_result
        self.client.calls.append(("acquire", self.name))
        return self.acquire_result

    def release(self):
        self.client.calls.append(("release", self.name))
        if self.release_error:
            raise self.release_error


class FakeRedis:
    """Records lock calls; only the surface RedisLockRegistry touches."""

    def __init__(self, **lock_options):
        self.calls = []
        self.lock_options = lock_options
        self.lock_kwargs = None

    def lock(self, name, **kwargs):
        self.lock_kwargs = kwargs
        return FakeRedisLock(self, name, **self.lock_options)


class TestRedisLockRegistry:

    def test_acquire_and_release(self):
        client = FakeRedis()
        with RedisLockRegistry(client, timeout=2).hold("doctor:3"):
            assert client.calls == [("acquire", "lock:doctor:3")]
        assert client.calls[-1] == ("release", "lock:doctor:3")
        assert client.lock_kwargs == {"timeout": 6, "blocking_timeout": 2}

    def test_timeout(self):
        client = FakeRedis(acquire_result=False)
        with pytest.raises(InternalError):
            with RedisLockRegistry(client).hold("doctor:3"):
                pass

    def test_redis_down(self):
        client = FakeRedis(acquire_result=RedisConnectionError("refused"))
        with pytest.raises(InternalError):
            with RedisLockRegistry(client).hold("doctor:3"):
                pass

    def test_expired_lock_on_release_is_tolerated(self):
        client = FakeRedis(release_error=LockError("not owned"))
        with RedisLockRegistry(client).hold("doctor:3"):
            pass
        assert client.calls[-1] == ("release", "lock:doctor:3")
