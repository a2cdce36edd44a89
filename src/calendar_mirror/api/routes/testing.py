"""Routes for exercising the token refresh path by hand.

Only mounted when ENABLE_TEST_ROUTES is true.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends

from calendar_mirror.api.dependencies import CamelModel, get_calendar_service
from calendar_mirror.auth.dependencies import get_current_user
from calendar_mirror.calendar.service import CalendarService
from calendar_mirror.database.models import User

router = APIRouter()


class ForceExpiryResponse(CamelModel):
    success: bool = True
    message: str
    expired_at: datetime


@router.api_route(
    "/force-token-expiry",
    methods=["GET", "POST"],
    response_model=ForceExpiryResponse,
)
async def force_token_expiry(
    user: User = Depends(get_current_user),
    calendar: CalendarService = Depends(get_calendar_service),
) -> ForceExpiryResponse:
    """Backdate the stored access token so the next call refreshes it."""
    expired_at = await calendar.force_token_expiry(user)
    return ForceExpiryResponse(
        message="Token expiry forced - token is now expired",
        expired_at=expired_at,
    )
