"""OTP session manager: issues and verifies one-time email codes.

Per-identity lifecycle::

    NONE ──request──▶ LIVE ──verify ok──────────▶ NONE  (consumed)
                      │  ├──verify, past expiry──▶ NONE  (expired)
                      │  └──3rd wrong code───────▶ NONE  (exhausted)
                      └──wrong code (1st, 2nd)──▶ LIVE  (attempt recorded)

A new request for the same identity replaces the live challenge.  Every
failure is raised as a distinct :class:`~ceg_connect.exceptions.OTPError`
subclass so the caller can choose between "try again" and "request a new
code".
"""

from __future__ import annotations

import asyncio
import logging
import re
import secrets
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta

from ceg_connect.config import OTPDeliveryMode
from ceg_connect.exceptions import (
    AttemptsExhausted,
    Expired,
    InvalidIdentity,
    IssuerFailure,
    Mismatch,
    MissingInput,
    NotFoundOrExpired,
    OTPError,
)
from ceg_connect.services.challenge_store import Challenge, ChallengeStore
from ceg_connect.services.email_service import Notifier
from ceg_connect.services.identity import IdentityIssuer

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ATTEMPTS = 3


def generate_code() -> str:
    """Uniformly random 6-digit code in [100000, 999999]."""
    return str(100000 + secrets.randbelow(900000))


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class IssuedChallenge:
    identity: str
    code: str
    expires_in: int
    delivery_mode: OTPDeliveryMode

    @property
    def disclosed_code(self) -> str | None:
        """The code, only when the delivery mode allows returning it to the client."""
        if self.delivery_mode is OTPDeliveryMode.DISCLOSE:
            return self.code
        return None


@dataclass(frozen=True)
class UserSummary:
    id: str
    email: str
    name: str


@dataclass(frozen=True)
class VerifiedSession:
    token: str
    user: UserSummary


class OTPSessionManager:
    """Owns the challenge store and the issue → verify → consume lifecycle."""

    def __init__(
        self,
        store: ChallengeStore,
        issuer: IdentityIssuer,
        notifier: Notifier,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        delivery_mode: OTPDeliveryMode = OTPDeliveryMode.SEND_ONLY,
        clock: Callable[[], datetime] = _utcnow,
        code_factory: Callable[[], str] = generate_code,
    ) -> None:
        self._store = store
        self._issuer = issuer
        self._notifier = notifier
        self._ttl = ttl_seconds
        self._max_attempts = max_attempts
        self._delivery_mode = delivery_mode
        self._clock = clock
        self._code_factory = code_factory
        self._deliveries: set[asyncio.Task] = set()

    @property
    def store(self) -> ChallengeStore:
        return self._store

    # ── Issuance ─────────────────────────────────────────

    async def request_challenge(self, identity: str | None) -> IssuedChallenge:
        """Issue a fresh code for *identity*, replacing any live one."""
        identity = (identity or "").strip()
        if not EMAIL_PATTERN.match(identity):
            raise InvalidIdentity()

        now = self._clock()
        challenge = Challenge(
            identity=identity,
            code=self._code_factory(),
            issued_at=now,
            expires_at=now + timedelta(seconds=self._ttl),
        )
        await self._store.put(challenge)
        logger.info("OTP issued for %s (expires in %ss)", identity, self._ttl)

        if self._delivery_mode is OTPDeliveryMode.DISCLOSE:
            logger.debug("OTP for %s: %s (disclose mode, email skipped)", identity, challenge.code)
        else:
            self._dispatch(identity, challenge.code)

        return IssuedChallenge(
            identity=identity,
            code=challenge.code,
            expires_in=self._ttl,
            delivery_mode=self._delivery_mode,
        )

    def _dispatch(self, identity: str, code: str) -> None:
        """Send the code in the background; a failed send never undoes issuance."""
        task = asyncio.create_task(self._notifier.send_otp(identity, code, self._ttl))
        self._deliveries.add(task)
        task.add_done_callback(self._delivery_done)

    def _delivery_done(self, task: asyncio.Task) -> None:
        self._deliveries.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("OTP delivery failed: %s", exc, exc_info=exc)

    async def wait_for_deliveries(self) -> None:
        """Wait for in-flight OTP emails (used on shutdown and in tests)."""
        if self._deliveries:
            await asyncio.gather(*self._deliveries, return_exceptions=True)

    # ── Verification ─────────────────────────────────────

    async def verify_challenge(
        self, identity: str | None, submitted_code: str | None
    ) -> VerifiedSession:
        """Check *submitted_code* against the live challenge and mint a credential.

        The challenge is removed before the identity issuer is called, so a
        matched code can never be replayed even when issuance then fails.
        """
        identity = (identity or "").strip()
        submitted = (submitted_code or "").strip()
        if not identity or not submitted:
            raise MissingInput()

        now = self._clock()

        def check(challenge: Challenge | None) -> tuple[Challenge | None, OTPError | None]:
            if challenge is None:
                return None, NotFoundOrExpired()
            if challenge.is_expired(now):
                return None, Expired()
            if challenge.attempt_count >= self._max_attempts:
                return None, AttemptsExhausted()
            if not secrets.compare_digest(submitted.encode(), challenge.code.encode()):
                attempts = challenge.attempt_count + 1
                if attempts >= self._max_attempts:
                    return None, AttemptsExhausted()
                return (
                    replace(challenge, attempt_count=attempts),
                    Mismatch(remaining_attempts=self._max_attempts - attempts),
                )
            return None, None

        failure = await self._store.transact(identity, check)
        if failure is not None:
            logger.info("OTP verification failed for %s: %s", identity, failure.code)
            raise failure

        logger.info("OTP verified for %s", identity)
        try:
            identity_id = await self._issuer.find_or_create_identity(identity)
            token = await self._issuer.issue_credential(
                identity_id, {"email": identity, "verified": True}
            )
        except Exception as exc:
            logger.exception("Credential issuance failed for %s", identity)
            raise IssuerFailure() from exc

        return VerifiedSession(
            token=token,
            user=UserSummary(id=identity_id, email=identity, name=identity.split("@")[0]),
        )
