"""
Distributed locking for the payment matching engine.

Row locks (select_for_update) protect a record once it is chosen, but
the best-amount fallback chooses among *several* PENDING rows. Two
deliveries for different sessions with the same amount could both pick
the same stale row before either commits. Matching is therefore
serialized per (vertical, amount) bucket with a Redis lock:

    from payments.locks import DistributedLock, matching_lock_key

    with DistributedLock(matching_lock_key(vertical, amount), ttl=30):
        with transaction.atomic():
            record = match(...)
            apply(...)

Deliveries for different amounts or verticals do not contend.
"""

from __future__ import annotations

import time
import uuid as uuid_module
from decimal import Decimal
from typing import TYPE_CHECKING

from django_redis import get_redis_connection

from payments.exceptions import LockAcquisitionError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis


def matching_lock_key(vertical: str, amount: Decimal | None) -> str:
    """Lock key for the amount bucket a matching attempt may touch."""
    bucket = "none" if amount is None else f"{Decimal(amount):.2f}"
    return f"payments:match:{vertical}:{bucket}"


class DistributedLock:
    """
    Redis-based distributed lock with TTL.

    - The TTL releases the lock if the holder crashes
    - A random token ensures only the holder can release it
    - Blocking mode polls every 50ms until ``timeout``

    Args:
        key: Lock identifier (will be prefixed with "lock:")
        ttl: Lock TTL in seconds (auto-releases after this time)
        blocking: If True, acquire() waits until the lock is available
        timeout: Maximum wait time in seconds (only if blocking=True)

    Raises:
        LockAcquisitionError: From acquire() when the lock is not obtained
    """

    # Lua script for atomic check-and-delete (release)
    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        key: str,
        ttl: int = 30,
        blocking: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.key = f"lock:{key}"
        self.ttl = ttl
        self.blocking = blocking
        self.timeout = timeout
        self._token: str | None = None
        self._redis: Redis | None = None

    def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    def acquire(self) -> bool:
        """
        Attempt to acquire the lock.

        Returns:
            True if the lock was acquired

        Raises:
            LockAcquisitionError: If the lock couldn't be acquired
        """
        self._token = str(uuid_module.uuid4())
        redis = self._get_redis()

        if self.blocking:
            end_time = time.time() + self.timeout
            while time.time() < end_time:
                if self._try_acquire(redis):
                    return True
                time.sleep(0.05)

            self._token = None
            raise LockAcquisitionError(
                f"Failed to acquire lock '{self.key}' within {self.timeout}s",
                details={"key": self.key, "timeout": self.timeout},
            )

        if not self._try_acquire(redis):
            self._token = None
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )
        return True

    def _try_acquire(self, redis: Redis) -> bool:
        return bool(redis.set(self.key, self._token, nx=True, ex=self.ttl))

    def release(self) -> bool:
        """
        Release the lock if we hold it.

        Safe to call multiple times; only deletes the key when it still
        carries our token.
        """
        if self._token is None:
            return False

        redis = self._get_redis()
        result = redis.eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(result)

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> bool:
        self.release()
        return False


__all__ = [
    "DistributedLock",
    "matching_lock_key",
]
