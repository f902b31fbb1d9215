"""Auth router: OTP issuance and verification.

Endpoints
---------
POST /api/auth/send-otp     → issue a challenge for ``email``
POST /api/auth/verify-otp   → verify ``otp`` and return a session token

OTP failures propagate as :class:`~ceg_connect.exceptions.OTPError` and are
rendered by the handler registered in :mod:`ceg_connect.main`.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ceg_connect.api.deps import get_otp_manager
from ceg_connect.api.schemas import SendOTPRequest, VerifyOTPRequest
from ceg_connect.services.otp_manager import OTPSessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/send-otp")
async def send_otp(
    body: SendOTPRequest,
    manager: OTPSessionManager = Depends(get_otp_manager),
) -> dict:
    """Issue a one-time code for the given email address."""
    issued = await manager.request_challenge(body.email)

    response = {
        "success": True,
        "message": "OTP sent successfully",
        "email": issued.identity,
        "expiresIn": issued.expires_in,
    }
    if issued.disclosed_code is not None:
        response["otp"] = issued.disclosed_code
    return response


@router.post("/verify-otp")
async def verify_otp(
    body: VerifyOTPRequest,
    manager: OTPSessionManager = Depends(get_otp_manager),
) -> dict:
    """Verify a one-time code and exchange it for a session token."""
    otp = str(body.otp) if body.otp is not None else None
    session = await manager.verify_challenge(body.email, otp)

    return {
        "success": True,
        "message": "OTP verified successfully",
        "token": session.token,
        "user": {
            "id": session.user.id,
            "email": session.user.email,
            "name": session.user.name,
        },
    }
