"""Models package - Re-exports all models for convenient importing."""
from app.extensions import db
from app.models.user import (
    User, UserSession, PasswordResetToken, Permission, RolePermission,
    ROLE_HIERARCHY, ADMIN_ROLES, VALID_STATUSES, role_rank, role_at_least,
)
from app.models.prayer import (
    PrayerRequest, SuggestedUpdate, ImportLog, PRAYER_STATUSES, UPDATE_STATUSES,
)

__all__ = [
    'db', 'User', 'UserSession', 'PasswordResetToken', 'Permission', 'RolePermission',
    'PrayerRequest', 'SuggestedUpdate', 'ImportLog',
    'ROLE_HIERARCHY', 'ADMIN_ROLES', 'VALID_STATUSES', 'PRAYER_STATUSES', 'UPDATE_STATUSES',
    'role_rank', 'role_at_least',
]
