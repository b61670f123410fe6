# session_auth/deps.py
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from session_auth.services import session_service
from session_auth.services.session_service import SessionData
from session_auth.utils.database import get_db


async def get_optional_session(request: Request, db: AsyncSession = Depends(get_db)) -> Optional[SessionData]:
    """
    Reads the session cookie.
    Returns SessionData, or None when there is no valid session.
    """
    return await session_service.verify(request, db)
