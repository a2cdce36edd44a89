"""FastAPI dependencies for authentication.

## Usage

```python
from fastapi import Depends
from calendar_mirror.auth import get_current_user
from calendar_mirror.database import User

@app.get("/profile")
async def get_profile(user: User = Depends(get_current_user)):
    return {"email": user.email}
```
"""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from calendar_mirror.auth.session import SessionData, verify_session_token
from calendar_mirror.config import get_settings
from calendar_mirror.database.connection import get_db_session
from calendar_mirror.database.models import User

logger = logging.getLogger(__name__)


async def get_session_data(request: Request) -> SessionData | None:
    """Extract and verify session data from the session cookie.

    Returns None if no session or invalid session.
    """
    settings = get_settings()
    session_cookie = request.cookies.get(settings.session_cookie_name)
    if not session_cookie:
        return None

    return verify_session_token(session_cookie)


async def get_current_user_optional(
    session: SessionData | None = Depends(get_session_data),
    db: AsyncSession = Depends(get_db_session),
) -> User | None:
    """Get the current user if logged in, or None."""
    if session is None:
        return None

    result = await db.execute(select(User).where(User.id == session.user_id))
    user = result.scalar_one_or_none()

    if user is None:
        logger.warning(f"Session for non-existent user: {session.user_id}")
        return None

    return user


async def get_current_user(
    user: User | None = Depends(get_current_user_optional),
) -> User:
    """Get the current authenticated user.

    Raises 401 if not authenticated.
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No session found",
        )

    return user
