"""
In-memory storage for import sessions.
Sessions expire after a period of inactivity; an expired session is simply
abandoned (anything it already committed stays in the catalog).
Single-process only.
"""
from datetime import datetime, timedelta
from typing import Optional

from config import settings
from models.import_session import ImportSession

_sessions: dict[str, tuple[datetime, ImportSession]] = {}


def save_session(session: ImportSession, ttl_minutes: Optional[int] = None) -> None:
    """Store or refresh a session; every save restarts its TTL."""
    ttl = ttl_minutes or settings.session_ttl_minutes
    expires_at = datetime.now() + timedelta(minutes=ttl)
    _sessions[session.id] = (expires_at, session)
    _cleanup_expired()


def get_session(session_id: str) -> Optional[ImportSession]:
    """Retrieve a session. Returns None if expired/not found."""
    entry = _sessions.get(session_id)
    if entry is None:
        return None
    expires_at, session = entry
    if datetime.now() > expires_at:
        del _sessions[session_id]
        return None
    return session


def delete_session(session_id: str) -> bool:
    """Remove a session. Returns False if it was not there."""
    return _sessions.pop(session_id, None) is not None


def clear_sessions() -> None:
    """Drop every session."""
    _sessions.clear()


def _cleanup_expired() -> None:
    """Remove all expired entries."""
    now = datetime.now()
    expired = [k for k, (exp, _) in _sessions.items() if now > exp]
    for k in expired:
        del _sessions[k]
