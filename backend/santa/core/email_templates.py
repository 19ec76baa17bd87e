"""Plain-text email bodies.

One builder per message the service sends. Links are built from
``settings.frontend_url``; tokens appear only in the link, never in the
subject.
"""

import uuid
from datetime import date
from urllib.parse import quote

from santa.core.config import settings
from santa.core.email import EmailMessage


def _admin_url(game_id: uuid.UUID, admin_token: str) -> str:
    return f"{settings.frontend_url}/games/{game_id}/admin?token={quote(admin_token)}"


def _reveal_url(view_token: str) -> str:
    return f"{settings.frontend_url}/reveal/{quote(view_token)}"


def verification_code_email(
    *, to_email: str, game_name: str, code: str, ttl_minutes: int
) -> EmailMessage:
    """Message carrying a 6-digit verification code."""
    return EmailMessage(
        to=to_email,
        subject=f"Your verification code for {game_name}",
        text=(
            f"Your verification code is: {code}\n\n"
            f"Enter it to finish creating the Secret Santa game \"{game_name}\".\n"
            f"The code expires in {ttl_minutes} minutes. "
            "If you didn't request this, you can safely ignore this email."
        ),
    )


def admin_welcome_email(
    *,
    to_email: str,
    game_id: uuid.UUID,
    game_name: str,
    event_date: date,
    admin_token: str,
) -> EmailMessage:
    """Message sent to the organizer right after the game is created."""
    return EmailMessage(
        to=to_email,
        subject=f"Your Secret Santa game \"{game_name}\" is ready",
        text=(
            f"Your game \"{game_name}\" on {event_date.isoformat()} was created.\n\n"
            "Manage participants and run the draw from your admin panel:\n\n"
            f"{_admin_url(game_id, admin_token)}\n\n"
            "Keep this link private: anyone with it can manage the game."
        ),
    )


def participant_notification_email(
    *,
    to_email: str,
    participant_name: str,
    game_name: str,
    event_date: date,
    view_token: str,
) -> EmailMessage:
    """Message with a participant's private reveal link."""
    return EmailMessage(
        to=to_email,
        subject=f"Secret Santa: {game_name}",
        text=(
            f"Hi {participant_name},\n\n"
            f"The draw for \"{game_name}\" ({event_date.isoformat()}) is done.\n"
            "Open your private link to see who you are giving a gift to:\n\n"
            f"{_reveal_url(view_token)}\n\n"
            "Don't share this link: it reveals your match."
        ),
    )


def organizer_confirmation_email(
    *,
    to_email: str,
    game_id: uuid.UUID,
    game_name: str,
    event_date: date,
    admin_token: str,
    participant_count: int,
) -> EmailMessage:
    """Message telling the organizer the draw ran."""
    return EmailMessage(
        to=to_email,
        subject=f"Draw completed for \"{game_name}\"",
        text=(
            f"The draw for \"{game_name}\" ({event_date.isoformat()}) is complete.\n"
            f"{participant_count} participants were notified by email.\n\n"
            "Track who has opened their link in your admin panel:\n\n"
            f"{_admin_url(game_id, admin_token)}"
        ),
    )
