"""User, session, password reset and permission models."""
from app.extensions import db
from app.timeutil import utcnow

# Lowest to highest. A role holds every grant of the roles ranked below it.
ROLE_HIERARCHY = ('member', 'moderator', 'admin', 'super_admin')
ADMIN_ROLES = ('admin', 'super_admin')
VALID_STATUSES = ('active', 'inactive', 'suspended')


def role_rank(role):
    """Position of ``role`` in the hierarchy, -1 for unknown roles."""
    try:
        return ROLE_HIERARCHY.index(role)
    except ValueError:
        return -1


def role_at_least(role, minimum):
    return role_rank(role) >= role_rank(minimum) >= 0


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120))
    full_name = db.Column(db.String(200))
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='member')  # see ROLE_HIERARCHY
    status = db.Column(db.String(20), nullable=False, default='active')  # active, inactive, suspended
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    last_login = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow)

    @property
    def is_admin(self):
        return self.role in ADMIN_ROLES

    @property
    def is_active(self):
        return self.status == 'active'

    @property
    def display_name(self):
        return self.full_name or self.username


class UserSession(db.Model):
    __tablename__ = 'sessions'

    id = db.Column(db.String(64), primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow)


class PasswordResetToken(db.Model):
    __tablename__ = 'password_reset_tokens'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    used = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)


class Permission(db.Model):
    __tablename__ = 'permissions'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), unique=True, nullable=False)
    description = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=utcnow)


class RolePermission(db.Model):
    __tablename__ = 'role_permissions'
    __table_args__ = (db.UniqueConstraint('role', 'permission_name'),)

    id = db.Column(db.Integer, primary_key=True)
    role = db.Column(db.String(20), nullable=False, index=True)
    permission_name = db.Column(db.String(80), db.ForeignKey('permissions.name'), nullable=False)
