"""User administration: registration, provisioning, roles and account status."""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from app.errors import Conflict, Forbidden, NotFound, StoreError, ValidationError
from app.models import db, User, ROLE_HIERARCHY, VALID_STATUSES
from app.services import commit
from app.services.auth_service import (
    delete_user_sessions, hash_password, validate_new_password, verify_password,
)

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r'^[A-Za-z0-9_.-]{1,80}$')
EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


@dataclass
class UserStats:
    total: int
    by_role: Dict[str, int] = field(default_factory=dict)


def is_valid_email(email):
    return bool(EMAIL_RE.match(email))


def _clean(value):
    value = (value or '').strip()
    return value or None


def _validate_identity_fields(username, email):
    if not username or not USERNAME_RE.match(username):
        raise ValidationError(
            'Username may only contain letters, digits, dots, dashes or underscores.',
            field='username',
        )
    if email and not is_valid_email(email):
        raise ValidationError('Invalid email address.', field='email')
    if User.query.filter_by(username=username).first() is not None:
        raise Conflict(f'The username {username} is already taken.')


def _insert_user(user):
    db.session.add(user)
    try:
        commit('create user')
    except StoreError as exc:
        # A concurrent insert can still hit the unique index.
        if isinstance(exc.__cause__, IntegrityError):
            raise Conflict(f'The username {user.username} is already taken.') from exc
        raise
    return user


def register_user(username, password, confirm_password, email=None, full_name=None):
    """Self-registration. The role is always ``member``."""
    username = _clean(username)
    email = _clean(email)
    _validate_identity_fields(username, email)
    validate_new_password(password, confirm_password)

    user = _insert_user(User(
        username=username,
        email=email,
        full_name=_clean(full_name),
        password_hash=hash_password(password),
        role='member',
        status='active',
    ))
    logger.info('Registered member %r (id %d)', user.username, user.id)
    return user


def create_user(form, created_by):
    """Provision an account on behalf of a super admin, with any valid role."""
    username = _clean(form.get('username'))
    email = _clean(form.get('email'))
    role = form.get('role') or 'member'
    if role not in ROLE_HIERARCHY:
        raise ValidationError('Invalid role.', field='role')
    _validate_identity_fields(username, email)
    password = form.get('password')
    validate_new_password(password, form.get('confirm_password', password))

    user = _insert_user(User(
        username=username,
        email=email,
        full_name=_clean(form.get('full_name')),
        password_hash=hash_password(password),
        role=role,
        status='active',
        created_by=created_by,
    ))
    logger.info('User %s created %r with role %s', created_by, user.username, role)
    return user


def get_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound('User not found.')
    return user


def list_users(limit=50, offset=0):
    return User.query.order_by(User.created_at.desc()).limit(limit).offset(offset).all()


def update_profile(user_id, email=None, full_name=None,
                   current_password=None, new_password=None, confirm_password=None):
    """
    Update profile fields and, when ``new_password`` is given, the password.

    Everything is validated before anything is written, and all changes are
    committed together. ``None`` leaves a profile field untouched.
    """
    user = get_user(user_id)
    if email is not None:
        email = _clean(email)
        if email and not is_valid_email(email):
            raise ValidationError('Invalid email address.', field='email')
    if new_password:
        if not verify_password(current_password, user.password_hash):
            raise ValidationError('Current password is incorrect.', field='current_password')
        validate_new_password(new_password, confirm_password)

    if email is not None:
        user.email = email
    if full_name is not None:
        user.full_name = _clean(full_name)
    if new_password:
        user.password_hash = hash_password(new_password)
    commit('update profile')
    return user


def update_user(user_id, email=None, full_name=None):
    return update_profile(user_id, email=email, full_name=full_name)


def change_password(user_id, current_password, new_password, confirm_password):
    validate_new_password(new_password, confirm_password)
    update_profile(user_id, current_password=current_password,
                   new_password=new_password, confirm_password=confirm_password)


def change_user_role(user_id, new_role, acting_user_id):
    if new_role not in ROLE_HIERARCHY:
        raise ValidationError('Invalid role.', field='role')
    if user_id == acting_user_id:
        raise Forbidden('You cannot change your own role.')
    updated = User.query.filter_by(id=user_id).update({'role': new_role}, synchronize_session=False)
    if not updated:
        raise NotFound('User not found.')
    commit('change user role')
    logger.info('User %d set role of user %d to %s', acting_user_id, user_id, new_role)


def set_user_status(user_id, status, acting_user_id):
    """Soft delete, suspend or reactivate an account. Idempotent."""
    if status not in VALID_STATUSES:
        raise ValidationError('Invalid status.', field='status')
    if user_id == acting_user_id and status != 'active':
        raise Forbidden('You cannot deactivate your own account.')
    updated = User.query.filter_by(id=user_id).update({'status': status}, synchronize_session=False)
    if not updated:
        raise NotFound('User not found.')
    if status != 'active':
        delete_user_sessions(user_id)
    commit('change user status')
    logger.info('User %d set status of user %d to %s', acting_user_id, user_id, status)


def deactivate_user(user_id, acting_user_id):
    set_user_status(user_id, 'inactive', acting_user_id)


def reactivate_user(user_id, acting_user_id):
    set_user_status(user_id, 'active', acting_user_id)


def get_user_stats():
    rows = (
        db.session.query(User.role, func.count(User.id))
        .filter(User.status == 'active')
        .group_by(User.role)
        .all()
    )
    by_role = {role: count for role, count in rows}
    return UserStats(total=sum(by_role.values()), by_role=by_role)
