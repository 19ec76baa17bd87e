"""Pydantic response schemas for API endpoints."""

from santa.schemas.games import (
    DeliveryReportResponse,
    GameCreatedResponse,
    GameStatusResponse,
    GameSummaryResponse,
    ParticipantResponse,
    RevealResponse,
)
from santa.schemas.verification import (
    VerificationCreatedResponse,
    VerificationStatusResponse,
)

__all__ = [
    # Games
    "DeliveryReportResponse",
    "GameCreatedResponse",
    "GameStatusResponse",
    "GameSummaryResponse",
    "ParticipantResponse",
    "RevealResponse",
    # Verification
    "VerificationCreatedResponse",
    "VerificationStatusResponse",
]
