"""Auth core: password hashing, sessions, reset tokens and permission queries."""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy import or_
from werkzeug.security import check_password_hash, generate_password_hash

from app.errors import NotFound, ValidationError
from app.models import (
    db, User, UserSession, PasswordResetToken, Permission, RolePermission,
    ADMIN_ROLES, ROLE_HIERARCHY, role_rank,
)
from app.services import commit
from app.timeutil import utcnow

logger = logging.getLogger(__name__)

# Permission catalogue and the role that is granted each one directly.
DEFAULT_PERMISSIONS = {
    'create_prayer': ('member', 'Submit prayer requests'),
    'suggest_updates': ('member', 'Suggest updates to prayer requests'),
    'approve_updates': ('moderator', 'Approve or reject suggested updates'),
    'view_admin_dashboard': ('moderator', 'Open the admin dashboard'),
    'manage_prayers': ('admin', 'Edit, archive and delete prayer requests'),
    'import_prayers': ('admin', 'Bulk import prayer requests'),
    'export_prayers': ('admin', 'Export prayer requests'),
    'view_reports': ('admin', 'View prayer statistics'),
    'manage_users': ('super_admin', 'Create users and change roles'),
}


@dataclass(frozen=True)
class AuthenticatedUser:
    """A user record without its password hash."""

    id: int
    username: str
    role: str
    status: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def is_admin(self):
        return self.role in ADMIN_ROLES

    @property
    def display_name(self):
        return self.full_name or self.username

    @classmethod
    def from_model(cls, user):
        return cls(
            id=user.id,
            username=user.username,
            role=user.role,
            status=user.status,
            email=user.email,
            full_name=user.full_name,
            last_login=user.last_login,
            created_at=user.created_at,
        )


# ==================== Passwords ====================

def hash_password(plaintext):
    return generate_password_hash(plaintext, method=current_app.config['PASSWORD_HASH_METHOD'])


def verify_password(plaintext, password_hash):
    if not plaintext or not password_hash:
        return False
    return check_password_hash(password_hash, plaintext)


def validate_new_password(password, confirm_password):
    """Raise ValidationError unless the new password is acceptable."""
    min_length = current_app.config['PASSWORD_MIN_LENGTH']
    if not password:
        raise ValidationError('Password is required.', field='password')
    if len(password) < min_length:
        raise ValidationError(f'Password must be at least {min_length} characters.', field='password')
    if password != confirm_password:
        raise ValidationError('Passwords do not match.', field='confirm_password')


def authenticate_user(username, password):
    """
    Check credentials for an active user.

    Returns an AuthenticatedUser, or None for every kind of failure. The
    reason is only logged, so callers cannot tell an unknown username from a
    wrong password.
    """
    if not username or not password:
        return None

    user = User.query.filter_by(username=username).first()
    if user is None:
        logger.info('Login failed: unknown user %r', username)
        return None
    if not user.is_active:
        logger.warning('Login failed: account %r is %s', username, user.status)
        return None
    if not verify_password(password, user.password_hash):
        logger.info('Login failed: wrong password for %r', username)
        return None

    user.last_login = utcnow()
    commit('record last login')
    return AuthenticatedUser.from_model(user)


# ==================== Sessions ====================

def create_session(user_id, now=None):
    """Persist a new session for ``user_id`` and return its opaque id."""
    now = now or utcnow()
    session_id = secrets.token_urlsafe(32)
    db.session.add(UserSession(
        id=session_id,
        user_id=user_id,
        created_at=now,
        expires_at=now + current_app.config['SESSION_LIFETIME'],
    ))
    commit('create session')
    return session_id


def get_user_by_session(session_id, now=None):
    """Resolve a session id to its active owner, or None."""
    if not session_id:
        return None
    now = now or utcnow()
    user = (
        User.query
        .join(UserSession, UserSession.user_id == User.id)
        .filter(
            UserSession.id == session_id,
            UserSession.expires_at > now,
            User.status == 'active',
        )
        .first()
    )
    return AuthenticatedUser.from_model(user) if user else None


def delete_session(session_id):
    if not session_id:
        return
    UserSession.query.filter_by(id=session_id).delete(synchronize_session=False)
    commit('delete session')


def delete_user_sessions(user_id):
    """Queue deletion of every session of ``user_id``. The caller commits."""
    return UserSession.query.filter_by(user_id=user_id).delete(synchronize_session=False)


def cleanup_expired_sessions(now=None):
    """Delete expired sessions. Safe to run repeatedly and concurrently."""
    now = now or utcnow()
    deleted = UserSession.query.filter(UserSession.expires_at <= now).delete(synchronize_session=False)
    commit('clean up expired sessions')
    if deleted:
        logger.info('Removed %d expired sessions', deleted)
    return deleted


# ==================== Password reset ====================

def generate_reset_token():
    alphabet = current_app.config['RESET_TOKEN_ALPHABET']
    length = current_app.config['RESET_TOKEN_LENGTH']
    return ''.join(secrets.choice(alphabet) for _ in range(length))


def create_password_reset_token(user_id, now=None):
    """Issue a fresh token for ``user_id``, deleting any earlier ones."""
    now = now or utcnow()
    PasswordResetToken.query.filter_by(user_id=user_id).delete(synchronize_session=False)
    token = generate_reset_token()
    db.session.add(PasswordResetToken(
        user_id=user_id,
        token=token,
        created_at=now,
        expires_at=now + current_app.config['PASSWORD_RESET_LIFETIME'],
    ))
    commit('create password reset token')
    return token


def request_password_reset(identifier, now=None):
    """
    Look up an active user by username or email and issue a reset token.

    Returns None when there is no such user; the caller must answer the same
    way in both cases.
    """
    if not identifier:
        return None
    user = (
        User.query
        .filter(or_(User.username == identifier, User.email == identifier))
        .filter(User.status == 'active')
        .first()
    )
    if user is None:
        logger.info('Password reset requested for unknown identifier %r', identifier)
        return None
    return create_password_reset_token(user.id, now=now)


def reset_password(token, new_password, confirm_password, now=None):
    """Redeem ``token`` once and set a new password for its owner."""
    validate_new_password(new_password, confirm_password)
    now = now or utcnow()

    row = PasswordResetToken.query.filter(
        PasswordResetToken.token == token,
        PasswordResetToken.used.is_(False),
        PasswordResetToken.expires_at > now,
    ).first() if token else None
    if row is None:
        raise NotFound('This reset link is invalid or has expired.')

    claimed = (
        PasswordResetToken.query
        .filter_by(id=row.id, used=False)
        .update({'used': True}, synchronize_session=False)
    )
    if not claimed:
        raise NotFound('This reset link is invalid or has expired.')

    user = db.session.get(User, row.user_id)
    if user is None:
        db.session.rollback()
        raise NotFound('This reset link is invalid or has expired.')
    user.password_hash = hash_password(new_password)
    delete_user_sessions(user.id)
    commit('reset password')
    logger.info('Password reset for user %d', user.id)
    return user.id


def purge_expired_reset_tokens(now=None):
    now = now or utcnow()
    deleted = PasswordResetToken.query.filter(
        PasswordResetToken.expires_at <= now
    ).delete(synchronize_session=False)
    commit('purge expired reset tokens')
    return deleted


# ==================== Permissions ====================

def role_permissions(role):
    """Effective permission names for ``role``, inherited grants included."""
    rank = role_rank(role)
    if rank < 0:
        return set()
    roles = ROLE_HIERARCHY[:rank + 1]
    rows = RolePermission.query.filter(RolePermission.role.in_(roles)).all()
    return {row.permission_name for row in rows}


def role_has_permission(role, permission_name):
    return permission_name in role_permissions(role)


def user_has_permission(user_id, permission_name):
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return False
    return role_has_permission(user.role, permission_name)


def get_all_permissions():
    return Permission.query.order_by(Permission.name).all()


def seed_permissions():
    """Create the default catalogue and grants. Idempotent."""
    existing = {p.name for p in Permission.query.all()}
    grants = {(rp.role, rp.permission_name) for rp in RolePermission.query.all()}
    for name, (role, description) in DEFAULT_PERMISSIONS.items():
        if name not in existing:
            db.session.add(Permission(name=name, description=description))
        if (role, name) not in grants:
            db.session.add(RolePermission(role=role, permission_name=name))
    commit('seed permissions')
