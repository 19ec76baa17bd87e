"""Organizer endpoints for a game.

Every endpoint requires the game's admin token in the X-Admin-Token header.

Endpoints:
- GET /games/{id} - game status with participants
- DELETE /games/{id} - delete the game
- POST /games/{id}/participants - add a participant
- PATCH /games/{id}/participants/{pid} - edit name or email
- POST /games/{id}/draw - run the draw and email everyone
- POST /games/{id}/participants/{pid}/resend - resend one reveal email
- POST /games/{id}/resend-all - resend every reveal email
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, ConfigDict, EmailStr, StringConstraints

from santa.api.deps import AdminToken, GameServiceDep
from santa.core.responses import DataResponse
from santa.schemas.games import (
    DeliveryReportResponse,
    GameStatusResponse,
    ParticipantResponse,
)

router = APIRouter()

ParticipantName = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)
]


# ===================================================================
# Request models
# ===================================================================


class ParticipantCreateRequest(BaseModel):
    """Request body for POST /games/{id}/participants."""

    model_config = ConfigDict(extra="forbid")

    name: ParticipantName
    email: EmailStr


class ParticipantUpdateRequest(BaseModel):
    """Request body for PATCH /games/{id}/participants/{pid}."""

    model_config = ConfigDict(extra="forbid")

    name: ParticipantName | None = None
    email: EmailStr | None = None


# ===================================================================
# Game
# ===================================================================


@router.get("/{game_id}")
async def get_game(
    game_id: uuid.UUID,
    games: GameServiceDep,
    admin_token: AdminToken = "",
) -> DataResponse[GameStatusResponse]:
    """Game details and who has opened their reveal link."""
    game_status = await games.get_status(game_id, admin_token)
    return DataResponse(data=GameStatusResponse.from_status(game_status))


@router.delete("/{game_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_game(
    game_id: uuid.UUID,
    games: GameServiceDep,
    admin_token: AdminToken = "",
) -> Response:
    """Delete the game, its participants and resend history."""
    await games.delete_game(game_id, admin_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ===================================================================
# Participants
# ===================================================================


@router.post("/{game_id}/participants", status_code=status.HTTP_201_CREATED)
async def add_participant(
    game_id: uuid.UUID,
    body: ParticipantCreateRequest,
    games: GameServiceDep,
    admin_token: AdminToken = "",
) -> DataResponse[ParticipantResponse]:
    """Add a participant. Refused after the draw or once the game is full."""
    participant = await games.add_participant(
        game_id, admin_token, name=body.name, email=body.email
    )
    return DataResponse(data=ParticipantResponse.from_model(participant))


@router.patch("/{game_id}/participants/{participant_id}")
async def update_participant(
    game_id: uuid.UUID,
    participant_id: uuid.UUID,
    body: ParticipantUpdateRequest,
    games: GameServiceDep,
    admin_token: AdminToken = "",
) -> DataResponse[ParticipantResponse]:
    """Fix a participant's name or email."""
    participant = await games.update_participant(
        game_id,
        admin_token,
        participant_id,
        name=body.name,
        email=body.email,
    )
    return DataResponse(data=ParticipantResponse.from_model(participant))


# ===================================================================
# Draw and reveal emails
# ===================================================================


@router.post("/{game_id}/draw")
async def draw(
    game_id: uuid.UUID,
    games: GameServiceDep,
    admin_token: AdminToken = "",
) -> DataResponse[DeliveryReportResponse]:
    """Match everyone and email each participant their reveal link.

    The draw happens at most once. Email failures are reported in the
    counts and can be retried with the resend endpoints.
    """
    report = await games.draw(game_id, admin_token)
    return DataResponse(data=DeliveryReportResponse.from_report(report))


@router.post("/{game_id}/participants/{participant_id}/resend")
async def resend_participant_email(
    game_id: uuid.UUID,
    participant_id: uuid.UUID,
    games: GameServiceDep,
    admin_token: AdminToken = "",
) -> DataResponse[ParticipantResponse]:
    """Resend one reveal email (once per hour, three times in total)."""
    participant = await games.resend_participant_email(
        game_id, admin_token, participant_id
    )
    return DataResponse(data=ParticipantResponse.from_model(participant))


@router.post("/{game_id}/resend-all")
async def resend_all(
    game_id: uuid.UUID,
    games: GameServiceDep,
    admin_token: AdminToken = "",
) -> DataResponse[DeliveryReportResponse]:
    """Resend every reveal email (once per hour, three times in total)."""
    report = await games.resend_all(game_id, admin_token)
    return DataResponse(data=DeliveryReportResponse.from_report(report))
