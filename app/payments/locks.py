"""
Redis locks serializing settlement work across web and worker processes.

Lock keys in use:
    transaction:{id}   - release, refund and crediting of one transaction (ttl 30s)
    settlement:sweep   - the periodic settlement sweep (ttl 300s, non-blocking)

Row locks (select_for_update) still guard the balances themselves; the Redis
lock keeps two processes from both deciding to move the same money before
either has taken a row lock.

Usage:
    from payments.locks import DistributedLock

    with DistributedLock(f"transaction:{txn.id}", ttl=30):
        with transaction.atomic():
            txn = Transaction.objects.select_for_update().get(pk=txn.id)
            ...
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING

from django_redis import get_redis_connection

from payments.exceptions import LockAcquisitionError

if TYPE_CHECKING:
    from types import TracebackType

    from redis import Redis

KEY_PREFIX = "lock:"
POLL_INTERVAL_SECONDS = 0.05

# Delete the key only while it still carries our token
_COMPARE_AND_DELETE = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class DistributedLock:
    """
    Mutual exclusion on a Redis key with an expiry.

    The key is written with SET NX EX and a random owner token. The expiry
    frees the key if the holder dies; the token makes release a no-op for a
    holder whose key already expired and was taken by someone else.

    Args:
        key: Lock name, stored as "lock:<key>"
        ttl: Seconds before Redis drops the key on its own
        blocking: Poll until acquired (True) or fail at once (False)
        timeout: Longest time to poll when blocking
    """

    def __init__(
        self,
        key: str,
        ttl: int = 30,
        blocking: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.key = f"{KEY_PREFIX}{key}"
        self.ttl = ttl
        self.blocking = blocking
        self.timeout = timeout
        self._token: str | None = None
        self._connection: Redis | None = None

    @property
    def connection(self) -> Redis:
        if self._connection is None:
            self._connection = get_redis_connection("default")
        return self._connection

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def _claim(self, token: str) -> bool:
        return bool(self.connection.set(self.key, token, nx=True, ex=self.ttl))

    def acquire(self) -> bool:
        """
        Take the lock or raise.

        Raises:
            LockAcquisitionError: Held by someone else (non-blocking), or still
                held when the timeout ran out (blocking)
        """
        token = uuid.uuid4().hex

        if not self.blocking:
            if not self._claim(token):
                raise LockAcquisitionError(
                    f"Lock '{self.key}' is already held",
                    details={"key": self.key},
                )
            self._token = token
            return True

        deadline = time.monotonic() + self.timeout
        while time.monotonic() < deadline:
            if self._claim(token):
                self._token = token
                return True
            time.sleep(POLL_INTERVAL_SECONDS)

        raise LockAcquisitionError(
            f"Failed to acquire lock '{self.key}' within {self.timeout}s",
            details={"key": self.key, "timeout": self.timeout},
        )

    def release(self) -> bool:
        """Drop the lock; False if it was never taken or had already expired."""
        if self._token is None:
            return False
        token, self._token = self._token, None
        return bool(self.connection.eval(_COMPARE_AND_DELETE, 1, self.key, token))

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.release()


__all__ = ["DistributedLock"]
