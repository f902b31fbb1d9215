"""Challenge sweeper: periodic purge of expired OTP challenges.

Verification re-checks expiry on its own, so the sweep only bounds memory;
it is never needed for correctness.  Each removal re-reads the entry under
that identity's lock, so a challenge re-issued between the scan and the
removal survives.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from ceg_connect.services.challenge_store import Challenge, ChallengeStore

logger = logging.getLogger(__name__)


class ChallengeSweeper:
    """Background task that removes expired challenges every *interval_seconds*."""

    def __init__(
        self,
        store: ChallengeStore,
        interval_seconds: float = 300.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._interval = interval_seconds
        self._clock = clock or (lambda: datetime.now(UTC))
        self._task: asyncio.Task | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """Run a single pass and return the number of challenges removed."""
        now = self._clock()

        def drop_if_expired(challenge: Challenge | None) -> tuple[Challenge | None, bool]:
            if challenge is not None and challenge.is_expired(now):
                return None, True
            return challenge, False

        removed = 0
        for identity in await self._store.identities():
            if await self._store.transact(identity, drop_if_expired):
                removed += 1
        if removed:
            logger.info("Swept %d expired OTP challenge(s)", removed)
        return removed

    def start(self) -> None:
        """Start the sweep loop on the running event loop (idempotent)."""
        if self.running:
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="otp-challenge-sweeper")
        logger.info("OTP sweeper started (every %ss)", self._interval)

    async def stop(self) -> None:
        """Signal the loop to exit and wait for it."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None
        logger.info("OTP sweeper stopped")

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self._interval)
                return
            except asyncio.TimeoutError:
                pass

            try:
                await self.run_once()
            except Exception:
                logger.exception("OTP sweep failed; retrying next interval")
