# Overview: Service-layer operations for staff sessions; bearer tokens with timeouts.

"""
Staff Session Service

A POS terminal logs in once per shift and sends the returned token as
"Authorization: Bearer <token>" on every call. Only the SHA-256 digest of the
token is stored.

A session stops working when any of these holds:
- it is older than SESSION_ABSOLUTE_HOURS (default 24)
- it was unused for SESSION_IDLE_MINUTES (default 120); it is revoked then
- it was revoked at logout
- its user was deactivated; it is revoked then
"""

import hashlib
import secrets
from datetime import timedelta

from flask import current_app, has_app_context

from ..extensions import db
from ..models import SessionToken, User
from posboard.time_utils import utcnow


DEFAULT_ABSOLUTE_HOURS = 24
DEFAULT_IDLE_MINUTES = 120

REASON_LOGOUT = "User logout"
REASON_IDLE = "Idle timeout"
REASON_DEACTIVATED = "User account deactivated"


def _timeouts() -> tuple[timedelta, timedelta]:
    absolute_hours, idle_minutes = DEFAULT_ABSOLUTE_HOURS, DEFAULT_IDLE_MINUTES
    if has_app_context():
        absolute_hours = current_app.config.get("SESSION_ABSOLUTE_HOURS", absolute_hours)
        idle_minutes = current_app.config.get("SESSION_IDLE_MINUTES", idle_minutes)
    return timedelta(hours=int(absolute_hours)), timedelta(minutes=int(idle_minutes))


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # Tokens carry 256 bits of entropy; a plain digest is enough at rest
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _live_session(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter_by(token_hash=hash_token(token), is_revoked=False)
        .first()
    )


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Open a session for user_id.

    Returns (session_row, token). The token is only ever seen here; callers
    hand it to the client and forget it.
    """
    if db.session.get(User, user_id) is None:
        raise ValueError("User not found")

    absolute, _ = _timeouts()
    token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        expires_at=now + absolute,
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> User | None:
    """The session's user, or None. A successful check refreshes last_used_at."""
    session = _live_session(token)
    if session is None:
        return None

    now = utcnow()
    _, idle = _timeouts()

    if session.expires_at < now:
        return None
    if now - session.last_used_at > idle:
        _revoke(session, REASON_IDLE)
        return None

    user = session.user
    if user is None or not user.is_active:
        _revoke(session, REASON_DEACTIVATED)
        return None

    session.last_used_at = now
    db.session.commit()
    return user


def revoke_session(token: str, reason: str = REASON_LOGOUT) -> bool:
    """False when the token is unknown or already revoked."""
    session = _live_session(token)
    if session is None:
        return False
    _revoke(session, reason)
    return True
