"""API v1 router aggregator.

All v1 endpoint routers are included here and mounted at /api/v1.
"""

from fastapi import APIRouter

from santa.api.v1 import games, reveal, site_admin, verifications

router = APIRouter()

# =============================================================================
# Organizer flow
# =============================================================================

router.include_router(
    verifications.router, prefix="/verifications", tags=["verifications"]
)
router.include_router(games.router, prefix="/games", tags=["games"])

# =============================================================================
# Participants
# =============================================================================

router.include_router(reveal.router, prefix="/reveal", tags=["reveal"])

# =============================================================================
# Site administration
# =============================================================================

router.include_router(site_admin.router, prefix="/site-admin", tags=["site-admin"])
