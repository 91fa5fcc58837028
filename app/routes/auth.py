"""Authentication routes and access-control decorators."""
from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import Blueprint, redirect, url_for, request, render_template, flash, current_app
from flask_babel import gettext as _

from app.errors import Conflict, Unauthorized, ValidationError, access_denied
from app.models import role_at_least
from app.services import auth_service, user_service
from app.services.auth_service import AuthenticatedUser

auth_bp = Blueprint('auth', __name__)


@dataclass(frozen=True)
class RequestIdentity:
    """Who is making the current request. Passed to views as ``identity``."""

    user: AuthenticatedUser
    session_id: Optional[str] = None

    @property
    def id(self):
        return self.user.id

    @property
    def role(self):
        return self.user.role

    @property
    def is_admin(self):
        return self.user.is_admin

    @property
    def is_super_admin(self):
        return self.user.role == 'super_admin'

    @property
    def display_name(self):
        return self.user.display_name

    def can(self, permission_name):
        return auth_service.role_has_permission(self.user.role, permission_name)


def resolve_identity():
    session_id = request.cookies.get(current_app.config['AUTH_COOKIE_NAME'])
    user = auth_service.get_user_by_session(session_id)
    if user is None:
        return None
    return RequestIdentity(user=user, session_id=session_id)


# ==================== RBAC Decorators (MUST be defined before routes that use them) ====================

def require_auth(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        identity = resolve_identity()
        if identity is None:
            raise Unauthorized('Please log in.')
        kwargs['identity'] = identity
        return f(*args, **kwargs)
    return decorated_function


def optional_identity(f):
    """Resolve the identity when there is one; never denies."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        kwargs['identity'] = resolve_identity()
        return f(*args, **kwargs)
    return decorated_function


def role_required(minimum):
    """Deny unless require_auth ran first and the role ranks at least ``minimum``."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            identity = kwargs.get('identity')
            if identity is None or not role_at_least(identity.role, minimum):
                return access_denied()
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def require_permission(permission_name):
    """Deny unless the identity's role, or a role below it, is granted ``permission_name``."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            identity = kwargs.get('identity')
            if identity is None or not identity.can(permission_name):
                return access_denied()
            return f(*args, **kwargs)
        return decorated_function
    return decorator


require_admin = role_required('admin')
require_super_admin = role_required('super_admin')


# ==================== Routes ====================

@auth_bp.route('/register', methods=['GET', 'POST'])
def register():
    if request.method == 'POST':
        try:
            user_service.register_user(
                username=request.form.get('username'),
                password=request.form.get('password'),
                confirm_password=request.form.get('confirm_password'),
                email=request.form.get('email'),
                full_name=request.form.get('full_name'),
            )
        except (ValidationError, Conflict) as error:
            flash(error.message, 'error')
            return render_template('auth/register.html'), error.status_code

        flash(_('Account created. Please log in.'), 'success')
        return redirect(url_for('auth.login'))

    return render_template('auth/register.html')


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        user = auth_service.authenticate_user(
            request.form.get('username', '').strip(),
            request.form.get('password', ''),
        )
        if user is None:
            flash(_('Invalid username or password.'), 'error')
            return render_template('auth/login.html'), 401

        session_id = auth_service.create_session(user.id)
        next_url = request.args.get('next') or ''
        if not next_url.startswith('/') or next_url.startswith('//'):
            next_url = url_for('main.index')
        resp = redirect(next_url)
        resp.set_cookie(
            current_app.config['AUTH_COOKIE_NAME'],
            session_id,
            max_age=int(current_app.config['SESSION_LIFETIME'].total_seconds()),
            httponly=True,
            secure=current_app.config['AUTH_COOKIE_SECURE'],
            samesite='Strict',
        )
        return resp

    return render_template('auth/login.html')


@auth_bp.route('/logout')
def logout():
    cookie_name = current_app.config['AUTH_COOKIE_NAME']
    auth_service.delete_session(request.cookies.get(cookie_name))
    resp = redirect(url_for('auth.login'))
    resp.delete_cookie(cookie_name)
    return resp


@auth_bp.route('/forgot-password', methods=['GET', 'POST'])
def forgot_password():
    if request.method == 'POST':
        token = auth_service.request_password_reset(request.form.get('identifier', '').strip())
        if token is not None and current_app.debug:
            current_app.logger.info('Password reset link: %s',
                                    url_for('auth.reset_password', token=token, _external=True))
        # Same answer whether or not the account exists.
        flash(_('If that account exists, a reset link has been issued.'), 'info')
        return redirect(url_for('auth.login'))

    return render_template('auth/forgot_password.html')


@auth_bp.route('/reset-password/<token>', methods=['GET', 'POST'])
def reset_password(token):
    if request.method == 'POST':
        try:
            auth_service.reset_password(
                token,
                request.form.get('password'),
                request.form.get('confirm_password'),
            )
        except ValidationError as error:
            flash(error.message, 'error')
            return render_template('auth/reset_password.html', token=token), 400

        flash(_('Password updated. Please log in.'), 'success')
        return redirect(url_for('auth.login'))

    return render_template('auth/reset_password.html', token=token)


@auth_bp.route('/profile', methods=['GET', 'POST'])
@require_auth
def profile(identity):
    user = user_service.get_user(identity.id)

    if request.method == 'POST':
        try:
            user_service.update_profile(
                identity.id,
                email=request.form.get('email', ''),
                full_name=request.form.get('full_name', ''),
                current_password=request.form.get('current_password'),
                new_password=request.form.get('new_password'),
                confirm_password=request.form.get('confirm_password'),
            )
        except ValidationError as error:
            flash(error.message, 'error')
            return render_template('auth/profile.html', user=user, identity=identity), 400

        flash(_('Profile updated.'), 'success')
        return redirect(url_for('auth.profile'))

    return render_template('auth/profile.html', user=user, identity=identity)
