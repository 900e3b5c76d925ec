"""Session handling and the logged-in user.

Sessions live in the `sessions` collection; the browser only holds a
`sessionId` cookie containing the session id signed as a JWT. The
middleware loads the session before the request is handled, exposes it
as a plain dict on `request.state.session` and stores it back (with a
refreshed expiry) once the response is ready.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Request
from starlette.concurrency import run_in_threadpool

from . import database, repositories
from .config import settings

SESSION_ALGORITHM = "HS256"
# Paths served without touching the session store.
SESSIONLESS_PREFIXES = ("/assets", "/health")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def encode_session_id(sid: str) -> str:
    """Sign a session id for use as the cookie value."""
    return jwt.encode({"sid": sid}, settings.session_secret, algorithm=SESSION_ALGORITHM)


def decode_session_cookie(token: str) -> Optional[str]:
    """Return the session id from a cookie value, or None if it was tampered with."""
    try:
        payload = jwt.decode(token, settings.session_secret, algorithms=[SESSION_ALGORITHM])
    except jwt.InvalidTokenError:
        return None
    sid = payload.get("sid")
    return sid if isinstance(sid, str) and sid else None


def _load_session(sid: Optional[str]):
    repo = repositories.SessionRepository(database.get_db())
    if sid:
        data = repo.load(sid, _utcnow())
        if data is not None:
            return sid, data
    return secrets.token_urlsafe(32), {}


def _save_session(sid: str, data: dict):
    expires_at = _utcnow() + timedelta(seconds=settings.SESSION_TTL_SECONDS)
    repositories.SessionRepository(database.get_db()).save(sid, data, expires_at)


async def session_middleware(request: Request, call_next):
    """Load the request's session, run the handler, then persist the session.

    New sessions are stored even when nothing was written to them, and the
    cookie is re-issued on every response so its lifetime rolls forward.
    """
    if request.url.path.startswith(SESSIONLESS_PREFIXES):
        return await call_next(request)
    cookie = request.cookies.get(settings.SESSION_COOKIE_NAME)
    sid = decode_session_cookie(cookie) if cookie else None
    sid, data = await run_in_threadpool(_load_session, sid)
    request.state.session = data
    response = await call_next(request)
    await run_in_threadpool(_save_session, sid, request.state.session)
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        encode_session_id(sid),
        max_age=settings.SESSION_TTL_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
    return response


def get_session(request: Request) -> dict:
    """FastAPI dependency returning the mutable session dict."""
    return request.state.session


def current_user(request: Request) -> Optional[dict]:
    """Return the logged-in user stored in the session, or None."""
    session = getattr(request.state, "session", None) or {}
    return session.get("user")
