"""Verification request response schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from santa.models.verification_request import VerificationState
from santa.services.verification import VerificationStatus


class VerificationCreatedResponse(BaseModel):
    """Returned by request and resend. The code itself is only emailed.

    Attributes:
        id: Verification request id (needed for verify and resend).
        expires_at: Expiry of the code just sent.
    """

    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID
    expires_at: datetime


class VerificationStatusResponse(BaseModel):
    """Current state of a verification request."""

    model_config = ConfigDict(extra="forbid")

    state: VerificationState
    expires_at: datetime
    attempts_remaining: int
    resend_available_in: int

    @classmethod
    def from_status(cls, status: VerificationStatus) -> "VerificationStatusResponse":
        """Build from the service's VerificationStatus."""
        return cls(
            state=status.state,
            expires_at=status.expires_at,
            attempts_remaining=status.attempts_remaining,
            resend_available_in=status.resend_available_in,
        )
