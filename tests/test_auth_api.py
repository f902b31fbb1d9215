"""End-to-end tests for the OTP auth endpoints."""

from __future__ import annotations

import httpx
import pytest

from ceg_connect.config import OTPDeliveryMode


async def send_otp(client: httpx.AsyncClient, email: str) -> httpx.Response:
    return await client.post("/api/auth/send-otp", json={"email": email})


async def issued_code(services, email: str) -> str:
    challenge = await services.otp_manager.store.get(email)
    return challenge.code


# ── Health ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health_endpoints(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "OK"

    resp = await client.get("/")
    assert resp.json()["status"] == "running"

    resp = await client.get("/api/test")
    assert resp.status_code == 200


# ── send-otp ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_send_otp_emails_code_without_disclosing(client, services, email_service):
    resp = await send_otp(client, "priya@ceg.edu")
    await services.otp_manager.wait_for_deliveries()

    assert resp.status_code == 200
    body = resp.json()
    assert body == {
        "success": True,
        "message": "OTP sent successfully",
        "email": "priya@ceg.edu",
        "expiresIn": 300,
    }
    code = await issued_code(services, "priya@ceg.edu")
    email_service.send_otp.assert_awaited_once_with("priya@ceg.edu", code, 300)


@pytest.mark.asyncio
@pytest.mark.parametrize("delivery_mode", [OTPDeliveryMode.DISCLOSE])
async def test_send_otp_disclose_mode_returns_code(client, services, email_service):
    resp = await send_otp(client, "priya@ceg.edu")

    assert resp.status_code == 200
    otp = resp.json()["otp"]
    assert otp == await issued_code(services, "priya@ceg.edu")
    email_service.send_otp.assert_not_called()


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"email": ""}, {"email": "not-an-email"}])
async def test_send_otp_rejects_invalid_email(client, payload):
    resp = await client.post("/api/auth/send-otp", json=payload)
    assert resp.status_code == 400
    assert resp.json() == {
        "message": "Please use a valid email address",
        "code": "invalid_identity",
    }


# ── verify-otp ───────────────────────────────────────────


@pytest.mark.asyncio
async def test_verify_otp_returns_session(client, services):
    await send_otp(client, "priya@ceg.edu")
    code = await issued_code(services, "priya@ceg.edu")

    resp = await client.post("/api/auth/verify-otp", json={"email": "priya@ceg.edu", "otp": code})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["user"]["email"] == "priya@ceg.edu"
    assert body["user"]["name"] == "priya"

    claims = services.identity_issuer.decode_credential(body["token"])
    assert claims["sub"] == body["user"]["id"]

    # The token opens the protected API
    resp = await client.get(
        "/api/users/profile", headers={"Authorization": f"Bearer {body['token']}"}
    )
    assert resp.status_code == 200
    assert resp.json()["emailVerified"] is True


@pytest.mark.asyncio
async def test_verify_otp_accepts_numeric_code(client, services):
    await send_otp(client, "priya@ceg.edu")
    code = await issued_code(services, "priya@ceg.edu")

    resp = await client.post(
        "/api/auth/verify-otp", json={"email": "priya@ceg.edu", "otp": int(code)}
    )
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_verify_otp_replay_is_rejected(client, services):
    await send_otp(client, "priya@ceg.edu")
    code = await issued_code(services, "priya@ceg.edu")
    payload = {"email": "priya@ceg.edu", "otp": code}

    assert (await client.post("/api/auth/verify-otp", json=payload)).status_code == 200

    resp = await client.post("/api/auth/verify-otp", json=payload)
    assert resp.status_code == 400
    assert resp.json()["code"] == "not_found_or_expired"


@pytest.mark.asyncio
async def test_verify_otp_wrong_code_reports_remaining_attempts(client, services):
    await send_otp(client, "priya@ceg.edu")
    code = await issued_code(services, "priya@ceg.edu")
    wrong = "000000" if code != "000000" else "111111"

    resp = await client.post("/api/auth/verify-otp", json={"email": "priya@ceg.edu", "otp": wrong})
    assert resp.status_code == 400
    assert resp.json() == {"message": "Invalid OTP", "code": "mismatch", "remainingAttempts": 2}

    await client.post("/api/auth/verify-otp", json={"email": "priya@ceg.edu", "otp": wrong})
    resp = await client.post("/api/auth/verify-otp", json={"email": "priya@ceg.edu", "otp": wrong})
    assert resp.status_code == 400
    assert resp.json()["code"] == "attempts_exhausted"


@pytest.mark.asyncio
async def test_verify_otp_expired(client, services, clock):
    await send_otp(client, "priya@ceg.edu")
    code = await issued_code(services, "priya@ceg.edu")
    clock.advance(301)

    resp = await client.post("/api/auth/verify-otp", json={"email": "priya@ceg.edu", "otp": code})
    assert resp.status_code == 400
    assert resp.json()["code"] == "expired"


@pytest.mark.asyncio
async def test_verify_otp_missing_fields(client):
    resp = await client.post("/api/auth/verify-otp", json={"email": "priya@ceg.edu"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "missing_input"


# ── Bearer guard ─────────────────────────────────────────


@pytest.mark.asyncio
async def test_protected_route_requires_token(client):
    resp = await client.get("/api/users/profile")
    assert resp.status_code == 401
    assert resp.json() == {"message": "No token provided"}

    resp = await client.get("/api/users/profile", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.json() == {"message": "Invalid token"}
