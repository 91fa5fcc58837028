from datetime import timedelta

import pytest

from app.errors import NotFound, ValidationError
from app.models import PasswordResetToken, UserSession
from app.services import auth_service
from app.services.user_service import deactivate_user, set_user_status
from app.timeutil import utcnow


def test_password_round_trip(app):
    hashed = auth_service.hash_password('s3cret-pass')
    assert hashed != 's3cret-pass'
    assert auth_service.verify_password('s3cret-pass', hashed)
    assert not auth_service.verify_password('other-pass', hashed)


def test_hashes_are_salted(app):
    assert auth_service.hash_password('same-pass') != auth_service.hash_password('same-pass')


def test_verify_rejects_empty_input(app):
    assert not auth_service.verify_password('', auth_service.hash_password('x' * 8))
    assert not auth_service.verify_password('something', None)


@pytest.mark.parametrize('password, confirm, field', [
    ('', '', 'password'),
    ('short', 'short', 'password'),
    ('long-enough', 'different', 'confirm_password'),
])
def test_validate_new_password_names_the_field(app, password, confirm, field):
    with pytest.raises(ValidationError) as excinfo:
        auth_service.validate_new_password(password, confirm)
    assert excinfo.value.field == field


def test_authenticate_user_success_records_last_login(make_user):
    user = make_user('alice')
    assert user.last_login is None

    authed = auth_service.authenticate_user('alice', 'correct-horse')

    assert authed.id == user.id
    assert authed.role == 'member'
    assert not hasattr(authed, 'password_hash')
    assert authed.last_login is not None


def test_authentication_failures_are_indistinguishable(make_user):
    alice = make_user('alice')
    dave = make_user('dave')
    deactivate_user(dave.id, acting_user_id=alice.id)

    assert auth_service.authenticate_user('nobody', 'correct-horse') is None
    assert auth_service.authenticate_user('alice', 'wrong-password') is None
    assert auth_service.authenticate_user('dave', 'correct-horse') is None
    assert auth_service.authenticate_user('', '') is None


def test_session_expires_exactly_after_lifetime(make_user):
    user = make_user('alice')
    created = utcnow()
    session_id = auth_service.create_session(user.id, now=created)

    almost = created + timedelta(hours=23, minutes=59)
    after = created + timedelta(hours=24, seconds=1)
    assert auth_service.get_user_by_session(session_id, now=almost).id == user.id
    assert auth_service.get_user_by_session(session_id, now=after) is None


def test_session_ids_are_unique_and_opaque(make_user):
    user = make_user('alice')
    first = auth_service.create_session(user.id)
    second = auth_service.create_session(user.id)
    assert first != second
    assert len(first) >= 32


def test_unknown_or_empty_session(app):
    assert auth_service.get_user_by_session(None) is None
    assert auth_service.get_user_by_session('') is None
    assert auth_service.get_user_by_session('does-not-exist') is None


def test_inactive_user_session_is_rejected(make_user):
    admin = make_user('root', role='super_admin')
    user = make_user('alice')
    session_id = auth_service.create_session(user.id)

    set_user_status(user.id, 'suspended', admin.id)

    assert auth_service.get_user_by_session(session_id) is None


def test_delete_session_logs_out(make_user):
    user = make_user('alice')
    session_id = auth_service.create_session(user.id)
    auth_service.delete_session(session_id)
    assert auth_service.get_user_by_session(session_id) is None


def test_cleanup_expired_sessions_is_idempotent(make_user):
    user = make_user('alice')
    old = utcnow() - timedelta(days=2)
    auth_service.create_session(user.id, now=old)
    live = auth_service.create_session(user.id)

    assert auth_service.cleanup_expired_sessions() == 1
    assert auth_service.cleanup_expired_sessions() == 0
    assert [s.id for s in UserSession.query.all()] == [live]


def test_reset_token_is_single_use(make_user):
    user = make_user('alice', email='alice@example.org')
    session_id = auth_service.create_session(user.id)
    token = auth_service.request_password_reset('alice@example.org')

    assert len(token) == 32
    assert token.isalnum()

    auth_service.reset_password(token, 'brand-new-pass', 'brand-new-pass')

    assert auth_service.authenticate_user('alice', 'brand-new-pass') is not None
    assert auth_service.get_user_by_session(session_id) is None
    with pytest.raises(NotFound):
        auth_service.reset_password(token, 'another-pass', 'another-pass')


def test_reset_token_expires(make_user):
    user = make_user('alice')
    issued = utcnow() - timedelta(hours=2)
    token = auth_service.create_password_reset_token(user.id, now=issued)

    with pytest.raises(NotFound):
        auth_service.reset_password(token, 'brand-new-pass', 'brand-new-pass')


def test_new_reset_token_replaces_old_one(make_user):
    user = make_user('alice')
    first = auth_service.create_password_reset_token(user.id)
    second = auth_service.create_password_reset_token(user.id)

    assert PasswordResetToken.query.filter_by(user_id=user.id).count() == 1
    with pytest.raises(NotFound):
        auth_service.reset_password(first, 'brand-new-pass', 'brand-new-pass')
    auth_service.reset_password(second, 'brand-new-pass', 'brand-new-pass')


def test_reset_validation_happens_before_token_lookup(make_user):
    user = make_user('alice')
    token = auth_service.create_password_reset_token(user.id)
    with pytest.raises(ValidationError):
        auth_service.reset_password(token, 'short', 'short')
    # The token was not consumed.
    auth_service.reset_password(token, 'long-enough', 'long-enough')


def test_reset_for_unknown_identifier_returns_none(app):
    assert auth_service.request_password_reset('ghost') is None


def test_purge_expired_reset_tokens(make_user):
    user = make_user('alice')
    auth_service.create_password_reset_token(user.id, now=utcnow() - timedelta(hours=3))
    assert auth_service.purge_expired_reset_tokens() == 1
    assert auth_service.purge_expired_reset_tokens() == 0
