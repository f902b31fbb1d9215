"""Identity issuer: finds or creates the account for an address and mints credentials.

Credentials are HS256 JWTs carrying ``sub`` (the user id), ``email`` and any
extra claims passed by the caller.  The same issuer decodes them for the
bearer-token guard in :mod:`ceg_connect.api.deps`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ceg_connect.database.repository import UserRepository
from ceg_connect.exceptions import InvalidCredential

logger = logging.getLogger(__name__)


class IdentityIssuer(Protocol):
    async def find_or_create_identity(self, address: str) -> str:
        """Return the identity id for *address*, creating a verified record if absent."""

    async def issue_credential(self, identity_id: str, claims: dict[str, Any]) -> str:
        ...


class LocalIdentityIssuer:
    """Identity issuer backed by the ``users`` table and a shared JWT secret."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        secret: str,
        *,
        algorithm: str = "HS256",
        ttl_seconds: int = 3600,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or (lambda: datetime.now(UTC))

    async def find_or_create_identity(self, address: str) -> str:
        async with self._session_factory() as session:
            repo = UserRepository(session)
            user = await repo.find_by_email(address)
            if user is not None:
                if not user.email_verified:
                    user.email_verified = True
                    await session.commit()
                return user.id

            try:
                user = await repo.create(
                    email=address, name=address.split("@")[0], email_verified=True
                )
                await session.commit()
                logger.info("Created user %s for %s", user.id, address)
                return user.id
            except IntegrityError:
                # Another request created the same address first.
                await session.rollback()
                user = await repo.find_by_email(address)
                if user is None:
                    raise
                return user.id

    async def issue_credential(self, identity_id: str, claims: dict[str, Any]) -> str:
        now = self._clock()
        payload = {
            **claims,
            "sub": identity_id,
            "iat": int(now.timestamp()),
            "exp": int((now + self._ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode_credential(self, token: str) -> dict[str, Any]:
        """Return the claims of *token*; raise ``InvalidCredential`` if it is bad or expired."""
        try:
            return jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.PyJWTError as exc:
            raise InvalidCredential(str(exc)) from exc
