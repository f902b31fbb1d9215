"""Tests for the LocalIdentityIssuer."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from ceg_connect.database.repository import UserRepository
from ceg_connect.exceptions import InvalidCredential
from ceg_connect.services.identity import LocalIdentityIssuer

TEST_SECRET = "test-secret-0123456789abcdef01234567"


@pytest.mark.asyncio
async def test_first_login_creates_verified_user(issuer, session_factory):
    uid = await issuer.find_or_create_identity("priya@ceg.edu")

    async with session_factory() as session:
        user = await UserRepository(session).get(uid)
    assert user.email == "priya@ceg.edu"
    assert user.email_verified is True
    assert user.name == "priya"


@pytest.mark.asyncio
async def test_repeat_login_reuses_user(issuer):
    first = await issuer.find_or_create_identity("priya@ceg.edu")
    second = await issuer.find_or_create_identity("priya@ceg.edu")
    assert first == second


@pytest.mark.asyncio
async def test_existing_unverified_user_becomes_verified(issuer, session_factory):
    async with session_factory() as session:
        user = await UserRepository(session).create(email="ravi@ceg.edu", name="Ravi")
        await session.commit()

    uid = await issuer.find_or_create_identity("ravi@ceg.edu")

    async with session_factory() as session:
        user = await UserRepository(session).get(uid)
    assert user.email_verified is True
    assert user.name == "Ravi"


@pytest.mark.asyncio
async def test_credential_round_trip(issuer):
    token = await issuer.issue_credential("uid-1", {"email": "a@b.edu", "verified": True})

    claims = issuer.decode_credential(token)
    assert claims["sub"] == "uid-1"
    assert claims["email"] == "a@b.edu"
    assert claims["verified"] is True
    assert claims["exp"] - claims["iat"] == 3600


@pytest.mark.asyncio
async def test_expired_credential_is_rejected(session_factory):
    past = datetime.now(UTC) - timedelta(hours=2)
    issuer = LocalIdentityIssuer(session_factory, TEST_SECRET, clock=lambda: past)
    token = await issuer.issue_credential("uid-1", {"email": "a@b.edu"})

    with pytest.raises(InvalidCredential):
        issuer.decode_credential(token)


@pytest.mark.asyncio
async def test_foreign_signature_is_rejected(issuer):
    forged = jwt.encode(
        {"sub": "uid-1", "email": "a@b.edu"}, "another-secret-0123456789abcdef0123", algorithm="HS256"
    )
    with pytest.raises(InvalidCredential):
        issuer.decode_credential(forged)


@pytest.mark.asyncio
async def test_garbage_token_is_rejected(issuer):
    with pytest.raises(InvalidCredential):
        issuer.decode_credential("not-a-jwt")
