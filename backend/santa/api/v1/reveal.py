"""Participant reveal endpoint.

The view token in the URL is the participant's only credential. The first
successful call marks the participant as having viewed their match; later
calls return the same answer.
"""

from typing import Annotated

from fastapi import APIRouter, Path, Request

from santa.api.deps import GameServiceDep
from santa.core.rate_limiting import limiter
from santa.core.responses import DataResponse
from santa.schemas.games import RevealResponse

router = APIRouter()

ViewToken = Annotated[str, Path(min_length=1, max_length=64)]


@router.get("/{view_token}")
@limiter.limit("30/minute")
async def reveal(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    view_token: ViewToken,
    games: GameServiceDep,
) -> DataResponse[RevealResponse]:
    """Show the participant who they are giving a gift to.

    Rate limit: 30 per minute per IP (slows token guessing).
    """
    result = await games.reveal(view_token)
    return DataResponse(data=RevealResponse.from_result(result))
