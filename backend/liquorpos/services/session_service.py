# Overview: Service-layer operations for session tokens (issue, validate, revoke).

"""
Session tokens

- 32 random bytes, hex encoded, handed to the client once
- only the SHA-256 hash is stored
- 24-hour absolute timeout, 2-hour idle timeout
- revoked on logout
"""

import hashlib
import secrets
from datetime import timedelta

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow

SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 is enough here: tokens are high-entropy, unlike passwords."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(user_id: int, user_agent: str | None = None, ip_address: str | None = None) -> tuple[SessionToken, str]:
    """Returns (session_record, plaintext_token)."""
    plaintext_token = generate_token()
    now = utcnow()
    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> User | None:
    """
    The signed-in user for a bearer token, or None when the token is
    unknown, revoked, expired, idle too long, or its user lost approval.
    Touches last_used_at on success.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if session is None:
        return None

    now = utcnow()
    if session.expires_at < now:
        return None
    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout")
        return None

    user = session.user
    if user is None or not user.is_approved:
        _revoke(session, "User not approved")
        return None

    session.last_used_at = now
    db.session.commit()
    return user


def revoke_session(token: str, reason: str = "User logout") -> bool:
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if session is None:
        return False
    _revoke(session, reason)
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    now = utcnow()
    sessions = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason
    db.session.commit()
    return len(sessions)
