"""Registration, login, sessions and approval."""

from datetime import timedelta

import pytest

from liquorpos.errors import AuthenticationError, PermissionDeniedError, ValidationError
from liquorpos.extensions import db
from liquorpos.models import SessionToken
from liquorpos.services import auth_service, session_service


def test_first_registration_becomes_admin(db_session):
    first = auth_service.register_user("owner@lastkings.test", "Kings2026")
    second = auth_service.register_user("clerk@lastkings.test", "Kings2026")

    assert (first.role, first.is_approved) == ("admin", True)
    assert (second.role, second.is_approved) == ("staff", False)


def test_weak_password_rejected(db_session):
    with pytest.raises(ValidationError):
        auth_service.register_user("owner@lastkings.test", "short1")
    with pytest.raises(ValidationError):
        auth_service.register_user("owner@lastkings.test", "lettersonly")


def test_login_checks_password_and_approval(db_session):
    auth_service.register_user("owner@lastkings.test", "Kings2026")
    auth_service.register_user("clerk@lastkings.test", "Kings2026")

    assert auth_service.authenticate("OWNER@lastkings.test", "Kings2026").role == "admin"
    with pytest.raises(AuthenticationError):
        auth_service.authenticate("owner@lastkings.test", "wrong-pass1")
    with pytest.raises(PermissionDeniedError):
        auth_service.authenticate("clerk@lastkings.test", "Kings2026")


def test_session_roundtrip_and_revoke(staff_user):
    _session, token = session_service.create_session(staff_user.id)

    assert session_service.validate_session(token).id == staff_user.id
    assert session_service.revoke_session(token) is True
    assert session_service.validate_session(token) is None


def test_idle_session_expires(staff_user):
    session, token = session_service.create_session(staff_user.id)
    session.last_used_at = session.last_used_at - timedelta(hours=3)
    db.session.commit()

    assert session_service.validate_session(token) is None
    assert db.session.get(SessionToken, session.id).is_revoked is True


def test_only_hash_is_stored(staff_user):
    session, token = session_service.create_session(staff_user.id)
    assert session.token_hash != token
    assert session.token_hash == session_service.hash_token(token)


def test_admin_cannot_demote_self(admin_user):
    with pytest.raises(ValidationError):
        auth_service.update_user(admin_user.id, role="staff", acting_user_id=admin_user.id)
