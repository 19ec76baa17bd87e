"""Game, participant and reveal response schemas.

Access tokens never appear in these models except where a response exists
to hand one over (game creation). Participant view tokens are never
returned by the API; they travel only in the reveal emails.
"""

import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict

from santa.models.game import Game, Participant
from santa.services.game_service import DeliveryReport, GameStatus, RevealResult

# =============================================================================
# Participants
# =============================================================================


class ParticipantResponse(BaseModel):
    """One participant as the organizer sees them.

    Attributes:
        id: Participant id.
        name: Display name.
        email: Email the reveal link is sent to.
        has_viewed: Whether the reveal link has been opened.
        viewed_at: First reveal time.
    """

    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID
    name: str
    email: str
    has_viewed: bool
    viewed_at: datetime | None

    @classmethod
    def from_model(cls, participant: Participant) -> "ParticipantResponse":
        """Build from the ORM row."""
        return cls(
            id=participant.id,
            name=participant.name,
            email=participant.email,
            has_viewed=participant.has_viewed,
            viewed_at=participant.viewed_at,
        )


# =============================================================================
# Games
# =============================================================================


class GameSummaryResponse(BaseModel):
    """Game row in the site admin search results."""

    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID
    name: str
    event_date: date
    organizer_email: str
    drawn: bool
    participant_count: int
    created_at: datetime

    @classmethod
    def from_model(cls, game: Game, participant_count: int) -> "GameSummaryResponse":
        """Build from the ORM row and its participant count."""
        return cls(
            id=game.id,
            name=game.name,
            event_date=game.event_date,
            organizer_email=game.organizer_email,
            drawn=game.drawn,
            participant_count=participant_count,
            created_at=game.created_at,
        )


class GameStatusResponse(BaseModel):
    """Organizer (and site admin) view of a game with its participants."""

    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID
    name: str
    event_date: date
    organizer_email: str
    drawn: bool
    drawn_at: datetime | None
    created_at: datetime
    participants: list[ParticipantResponse]

    @classmethod
    def from_status(cls, status: GameStatus) -> "GameStatusResponse":
        """Build from the service's GameStatus."""
        game = status.game
        return cls(
            id=game.id,
            name=game.name,
            event_date=game.event_date,
            organizer_email=game.organizer_email,
            drawn=game.drawn,
            drawn_at=game.drawn_at,
            created_at=game.created_at,
            participants=[
                ParticipantResponse.from_model(p) for p in status.participants
            ],
        )


class GameCreatedResponse(BaseModel):
    """Returned once, when verification creates the game.

    Attributes:
        game_id: New game id.
        admin_token: Bearer token for every organizer operation.
    """

    model_config = ConfigDict(extra="forbid")

    game_id: uuid.UUID
    admin_token: str


class DeliveryReportResponse(BaseModel):
    """Outcome of a batch of reveal emails (draw or bulk resend)."""

    model_config = ConfigDict(extra="forbid")

    emails_sent: int
    emails_failed: int

    @classmethod
    def from_report(cls, report: DeliveryReport) -> "DeliveryReportResponse":
        """Build from the service's DeliveryReport."""
        return cls(emails_sent=report.sent, emails_failed=report.failed)


# =============================================================================
# Reveal
# =============================================================================


class RevealResponse(BaseModel):
    """What a participant sees when opening their reveal link."""

    model_config = ConfigDict(extra="forbid")

    game_name: str
    event_date: date
    participant_name: str
    recipient_name: str

    @classmethod
    def from_result(cls, result: RevealResult) -> "RevealResponse":
        """Build from the service's RevealResult."""
        return cls(
            game_name=result.game_name,
            event_date=result.event_date,
            participant_name=result.participant_name,
            recipient_name=result.recipient_name,
        )
