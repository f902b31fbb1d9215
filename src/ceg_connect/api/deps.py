"""FastAPI dependencies: service wiring, DB sessions and the bearer-token guard."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ceg_connect.exceptions import InvalidCredential
from ceg_connect.services.identity import LocalIdentityIssuer
from ceg_connect.services.otp_manager import OTPSessionManager
from ceg_connect.services.sweeper import ChallengeSweeper


@dataclass
class AppServices:
    """Long-lived collaborators shared by every request."""

    session_factory: async_sessionmaker[AsyncSession]
    otp_manager: OTPSessionManager
    identity_issuer: LocalIdentityIssuer
    sweeper: ChallengeSweeper


@dataclass(frozen=True)
class CurrentUser:
    uid: str
    email: str

    @property
    def display_name(self) -> str:
        return self.email.split("@")[0] if self.email else "Anonymous"


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_otp_manager(request: Request) -> OTPSessionManager:
    return get_services(request).otp_manager


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session, committing on success and rolling back on error."""
    async with get_services(request).session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_current_user(
    request: Request,
    authorization: str | None = Header(None),
) -> CurrentUser:
    """Resolve the caller from ``Authorization: Bearer <token>``."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="No token provided")

    token = authorization.split("Bearer ", 1)[1].strip()
    try:
        claims = get_services(request).identity_issuer.decode_credential(token)
    except InvalidCredential:
        raise HTTPException(status_code=401, detail="Invalid token")

    return CurrentUser(uid=claims["sub"], email=claims.get("email", ""))
