"""Error kinds raised by the OTP session manager and the identity issuer.

Every OTP failure carries a stable ``code`` (machine readable, used by
clients to pick between a "try again" and a "request a new code"
affordance) and a user-facing ``message``.
"""

from __future__ import annotations


class OTPError(Exception):
    """Base class for all OTP verification and issuance failures."""

    code: str = "otp_error"
    message: str = "OTP request failed"
    status_code: int = 400

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidIdentity(OTPError):
    """The address given to ``request_challenge`` is malformed."""

    code = "invalid_identity"
    message = "Please use a valid email address"


class MissingInput(OTPError):
    code = "missing_input"
    message = "Email and OTP are required"


class NotFoundOrExpired(OTPError):
    """No challenge on record for the identity."""

    code = "not_found_or_expired"
    message = "OTP not found or expired"


class Expired(OTPError):
    code = "expired"
    message = "OTP has expired"


class AttemptsExhausted(OTPError):
    code = "attempts_exhausted"
    message = "Too many failed attempts. Please request a new OTP."


class Mismatch(OTPError):
    """Wrong code; the attempt was recorded and a retry is still possible."""

    code = "mismatch"
    message = "Invalid OTP"

    def __init__(self, remaining_attempts: int) -> None:
        super().__init__()
        self.remaining_attempts = remaining_attempts


class IssuerFailure(OTPError):
    """Credential minting failed after the code was consumed.

    The challenge is already gone; the caller must request a new code.
    """

    code = "issuer_failure"
    message = "Failed to create authentication token"
    status_code = 500


class InvalidCredential(Exception):
    """A session credential could not be decoded or has expired."""
