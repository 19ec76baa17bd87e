"""SQLAlchemy ORM models.

All models are exported from this module for convenient imports:
    from santa.models import Game, Participant, VerificationRequest, ...

- game.py: Game, Participant
- verification_request.py: VerificationRequest, VerificationState
- email_resend.py: EmailResend, ResendKind
- site_admin.py: SiteAdminCredential, SiteAdminSession
"""

from santa.models.base import Base
from santa.models.email_resend import EmailResend, ResendKind
from santa.models.game import Game, Participant
from santa.models.site_admin import SiteAdminCredential, SiteAdminSession
from santa.models.verification_request import VerificationRequest, VerificationState

__all__ = [
    "Base",
    "EmailResend",
    "Game",
    "Participant",
    "ResendKind",
    "SiteAdminCredential",
    "SiteAdminSession",
    "VerificationRequest",
    "VerificationState",
]
