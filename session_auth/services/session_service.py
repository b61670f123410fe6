"""Session tokens: issuance, verification and revocation.

A session is a signed HS256 JWT stored in an HTTP-only cookie. Each token
carries a random session id (``sid``) that is also the primary key of a
``SessionRecord`` row, so logout and password reset can revoke sessions
server-side. Verification is stateless unless ``SESSION_VERIFY_RECORD`` is on.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Request, Response
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from session_auth import config
from session_auth.models.session import SessionRecord
from session_auth.models.user import User  # noqa: F401  (relationship target)
from session_auth.utils.database import AsyncSessionLocal

logger = logging.getLogger("session_auth.session")


@dataclass(frozen=True)
class SessionData:
    user_id: str
    email: str
    session_id: str
    expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def cookie_settings() -> dict:
    return {
        "httponly": True,
        "samesite": "lax",
        "secure": config.is_production(),
        "path": "/",
    }


# ---------------- TOKEN ENCODING ----------------

def create_session_token(user_id: str, email: str, session_id: str, expires_at: datetime,
                         secret: Optional[str] = None) -> str:
    """Sign a session token for a user."""
    payload = {"sub": str(user_id), "email": email, "sid": session_id, "exp": expires_at}
    return jwt.encode(payload, secret or config.SESSION_SECRET, algorithm=config.SESSION_ALGORITHM)


def decode_session_token(token: str, verify_exp: bool = True) -> Optional[SessionData]:
    """Return the session carried by ``token``, or None if it is not valid.

    ``verify_exp=False`` still checks the signature; revocation uses it so an
    expired cookie can still have its record removed.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(
            token,
            config.SESSION_SECRET,
            algorithms=[config.SESSION_ALGORITHM],
            options={"require": ["exp", "sub", "sid"], "verify_exp": verify_exp},
        )
    except jwt.PyJWTError as e:
        logger.debug(f"Rejected session token: {e}")
        return None

    email = payload.get("email")
    if not isinstance(email, str) or not email:
        return None
    return SessionData(
        user_id=str(payload["sub"]),
        email=email,
        session_id=str(payload["sid"]),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


# ---------------- SESSION RECORDS ----------------

async def _record_is_live(db: AsyncSession, session_id: str) -> bool:
    record = await db.get(SessionRecord, session_id)
    if record is None:
        return False
    expires_at = record.expires_at
    # SQLite hands back naive datetimes
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at > _utcnow()


async def issue(db: AsyncSession, response: Response, user_id, email: str) -> str:
    """Create a session for the user and set it as the session cookie.

    The record is committed before the cookie is written; a store failure
    propagates and leaves the response without a cookie.
    """
    expires_at = _utcnow() + timedelta(days=config.SESSION_TTL_DAYS)
    session_id = new_session_id()
    token = create_session_token(str(user_id), email, session_id, expires_at)

    db.add(SessionRecord(id=session_id, user_id=user_id, expires_at=expires_at))
    await db.commit()

    response.set_cookie(
        config.SESSION_COOKIE_NAME,
        token,
        expires=expires_at,
        **cookie_settings(),
    )
    logger.info(f"Session issued for user {user_id}")
    return token


async def verify_token(token: str, db: Optional[AsyncSession] = None) -> Optional[SessionData]:
    session = decode_session_token(token)
    if session is None or not config.SESSION_VERIFY_RECORD:
        return session

    if db is None:
        async with AsyncSessionLocal() as own_db:
            live = await _record_is_live(own_db, session.session_id)
    else:
        live = await _record_is_live(db, session.session_id)
    return session if live else None


async def verify(request: Request, db: Optional[AsyncSession] = None) -> Optional[SessionData]:
    """Verify the session cookie on ``request``; None if absent or invalid."""
    token = request.cookies.get(config.SESSION_COOKIE_NAME)
    if not token:
        return None
    return await verify_token(token, db)


async def revoke(request: Request, response: Response, db: AsyncSession) -> None:
    """Delete the record behind the session cookie and clear the cookie."""
    token = request.cookies.get(config.SESSION_COOKIE_NAME)
    try:
        if token:
            session = decode_session_token(token, verify_exp=False)
            if session is not None:
                result = await db.execute(delete(SessionRecord).where(SessionRecord.id == session.session_id))
                await db.commit()
                if result.rowcount == 0:
                    logger.info("Session record already gone; clearing cookie only")
    finally:
        response.delete_cookie(config.SESSION_COOKIE_NAME, **cookie_settings())


async def revoke_all(db: AsyncSession, user_id) -> int:
    """Delete every session record owned by ``user_id``. Caller commits."""
    result = await db.execute(delete(SessionRecord).where(SessionRecord.user_id == user_id))
    logger.info(f"Revoked {result.rowcount} session(s) for user {user_id}")
    return result.rowcount
