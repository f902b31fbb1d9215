"""Challenge store: keyed storage of pending OTP challenges.

Two implementations share the :class:`ChallengeStore` interface:

* :class:`InMemoryChallengeStore` for single-process deployments and tests.
* :class:`RedisChallengeStore` for multi-instance deployments, where every
  worker must see the same challenges.

All mutation goes through :meth:`ChallengeStore.transact`, an atomic
read-modify-write on one identity.  Operations on different identities
never wait on each other.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol, TypeVar

import redis.asyncio as redis
from redis.exceptions import WatchError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Challenge:
    """One pending OTP issuance for one identity; updated only via ``replace()``."""

    identity: str
    code: str
    issued_at: datetime
    expires_at: datetime
    attempt_count: int = 0

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_json(self) -> str:
        return json.dumps(
            {
                "identity": self.identity,
                "code": self.code,
                "issued_at": self.issued_at.isoformat(),
                "expires_at": self.expires_at.isoformat(),
                "attempt_count": self.attempt_count,
            }
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> Challenge:
        data = json.loads(raw)
        return cls(
            identity=data["identity"],
            code=data["code"],
            issued_at=datetime.fromisoformat(data["issued_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            attempt_count=int(data["attempt_count"]),
        )


# fn(current) -> (replacement or None to delete, result)
Transaction = Callable[[Challenge | None], tuple[Challenge | None, T]]


class ChallengeStore(Protocol):
    """Storage capability owned by the OTP session manager."""

    async def get(self, identity: str) -> Challenge | None:
        ...

    async def put(self, challenge: Challenge) -> None:
        """Store *challenge*, replacing any existing one for its identity."""

    async def delete(self, identity: str) -> None:
        ...

    async def transact(self, identity: str, fn: Transaction[T]) -> T:
        """Atomically apply *fn* to the current challenge for *identity*.

        *fn* receives the stored challenge (or ``None``) and returns the
        replacement (``None`` deletes) together with a result, which is
        returned to the caller.  Returning the challenge it was given leaves
        the entry untouched.  *fn* must not block or await.
        """

    async def identities(self) -> list[str]:
        """Snapshot of identities currently holding a challenge."""


# ──────────────────────────────────────────────────────────────
# In-process store
# ──────────────────────────────────────────────────────────────


@dataclass
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class InMemoryChallengeStore:
    """Dict-backed store with one lock per identity.

    Locks are created on first use and discarded once no coroutine holds
    or waits on them, so the lock table never outgrows the set of
    identities currently being operated on.
    """

    def __init__(self) -> None:
        self._challenges: dict[str, Challenge] = {}
        self._locks: dict[str, _KeyLock] = {}

    @asynccontextmanager
    async def _locked(self, identity: str) -> AsyncIterator[None]:
        entry = self._locks.get(identity)
        if entry is None:
            entry = self._locks[identity] = _KeyLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._locks.pop(identity, None)

    async def get(self, identity: str) -> Challenge | None:
        async with self._locked(identity):
            return self._challenges.get(identity)

    async def put(self, challenge: Challenge) -> None:
        async with self._locked(challenge.identity):
            self._challenges[challenge.identity] = challenge

    async def delete(self, identity: str) -> None:
        async with self._locked(identity):
            self._challenges.pop(identity, None)

    async def transact(self, identity: str, fn: Transaction[T]) -> T:
        async with self._locked(identity):
            current = self._challenges.get(identity)
            replacement, result = fn(current)
            if replacement is current:
                return result
            if replacement is None:
                self._challenges.pop(identity, None)
            else:
                self._challenges[identity] = replacement
            return result

    async def identities(self) -> list[str]:
        return list(self._challenges)

    def __len__(self) -> int:
        return len(self._challenges)


# ──────────────────────────────────────────────────────────────
# Redis store
# ──────────────────────────────────────────────────────────────


class RedisChallengeStore:
    """Redis-backed store: one JSON value per identity with a native TTL.

    ``transact`` uses optimistic ``WATCH``/``MULTI`` and retries when another
    client touched the key between the read and the write.
    """

    def __init__(
        self,
        client: redis.Redis,
        key_prefix: str = "ceg:otp:",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._client = client
        self._prefix = key_prefix
        self._clock = clock or (lambda: datetime.now(UTC))

    @classmethod
    def from_url(
        cls,
        url: str,
        key_prefix: str = "ceg:otp:",
        clock: Callable[[], datetime] | None = None,
    ) -> RedisChallengeStore:
        return cls(redis.Redis.from_url(url), key_prefix=key_prefix, clock=clock)

    def _key(self, identity: str) -> str:
        return f"{self._prefix}{identity}"

    def _ttl_ms(self, challenge: Challenge) -> int:
        remaining = (challenge.expires_at - self._clock()).total_seconds()
        # Redis rejects non-positive expiries; expiry is re-checked on read anyway.
        return max(int(remaining * 1000), 1)

    async def get(self, identity: str) -> Challenge | None:
        raw = await self._client.get(self._key(identity))
        return Challenge.from_json(raw) if raw is not None else None

    async def put(self, challenge: Challenge) -> None:
        await self._client.set(
            self._key(challenge.identity),
            challenge.to_json(),
            px=self._ttl_ms(challenge),
        )

    async def delete(self, identity: str) -> None:
        await self._client.delete(self._key(identity))

    async def transact(self, identity: str, fn: Transaction[T]) -> T:
        key = self._key(identity)
        async with self._client.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    current = Challenge.from_json(raw) if raw is not None else None
                    replacement, result = fn(current)
                    if replacement is current:
                        await pipe.unwatch()
                        return result
                    pipe.multi()
                    if replacement is None:
                        pipe.delete(key)
                    else:
                        pipe.set(key, replacement.to_json(), px=self._ttl_ms(replacement))
                    await pipe.execute()
                    return result
                except WatchError:
                    logger.debug("Challenge for %s changed concurrently, retrying", identity)
                    continue

    async def identities(self) -> list[str]:
        found = []
        async for key in self._client.scan_iter(match=f"{self._prefix}*"):
            if isinstance(key, bytes):
                key = key.decode("utf-8")
            found.append(key[len(self._prefix):])
        return found

    async def close(self) -> None:
        await self._client.aclose()
