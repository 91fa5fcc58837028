"""
Prayer moderation engine.

Owns the lifecycle of prayer requests and their suggested updates. A
suggestion starts ``pending`` and is resolved exactly once, to ``approved``
(overwriting the parent's content) or ``rejected``.
"""
import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app.errors import Conflict, NotFound, StoreError, ValidationError
from app.models import db, PrayerRequest, SuggestedUpdate, User, PRAYER_STATUSES
from app.services import commit
from app.timeutil import utcnow

logger = logging.getLogger(__name__)

REQUIRED_PRAYER_FIELDS = (
    ('title', 'Title'),
    ('content', 'Content'),
    ('requester_name', 'Requester name'),
    ('category', 'Category'),
)

TRUTHY = ('1', 'true', 'yes', 'on')


def categories():
    """Configured categories, highest listing priority first."""
    return list(current_app.config['PRAYER_CATEGORIES'])


def category_rank(category):
    ordered = current_app.config['PRAYER_CATEGORIES']
    try:
        return ordered.index(category)
    except ValueError:
        return len(ordered)


def category_style(category):
    """Colour and icon for ``category``; unknown categories get the default."""
    styles = current_app.config['CATEGORY_STYLES']
    return styles.get(category, current_app.config['DEFAULT_CATEGORY_STYLE'])


def sort_for_listing(prayers):
    """Category priority first, then most recent activity first."""
    by_activity = sorted(prayers, key=lambda p: p.last_activity, reverse=True)
    return sorted(by_activity, key=lambda p: category_rank(p.category))


def _flag(value):
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in TRUTHY


def _field(form, name):
    return (form.get(name) or '').strip()


# ==================== Prayer requests ====================

def create_prayer_request(form, submitter_id=None):
    """
    Validate and store a new prayer request.

    Args:
        form: mapping with title, content, requester_name, category and the
            optional requester_email and is_private
        submitter_id: id of the member submitting, None for guests

    Returns:
        id of the new request
    """
    for name, label in REQUIRED_PRAYER_FIELDS:
        if not _field(form, name):
            raise ValidationError(f'{label} is required.', field=name)

    category = _field(form, 'category')
    if category not in current_app.config['PRAYER_CATEGORIES']:
        raise ValidationError('Unknown category.', field='category')

    # Guest submissions are always public, whatever the form says.
    is_private = _flag(form.get('is_private')) if submitter_id is not None else False

    now = utcnow()
    prayer = PrayerRequest(
        title=_field(form, 'title'),
        content=_field(form, 'content'),
        requester_name=_field(form, 'requester_name'),
        requester_email=_field(form, 'requester_email') or None,
        submitted_by=submitter_id,
        category=category,
        status='active',
        is_private=is_private,
        created_at=now,
        updated_at=now,
    )
    db.session.add(prayer)
    commit('create prayer request')
    logger.info('Prayer request %d created by %s', prayer.id,
                f'user {submitter_id}' if submitter_id is not None else 'a guest')
    return prayer.id


def list_prayer_requests(viewer_is_authenticated, category=None):
    """Non-archived requests visible to the viewer, in listing order."""
    clauses = [PrayerRequest.status != 'archived']
    if not viewer_is_authenticated:
        clauses.append(PrayerRequest.is_private.is_(False))
    if category and category != 'all':
        clauses.append(PrayerRequest.category == category)
    return sort_for_listing(PrayerRequest.query.filter(*clauses).all())


def get_prayer_request_by_id(prayer_id, viewer_is_authenticated=True):
    prayer = db.session.get(PrayerRequest, prayer_id)
    if prayer is None or (prayer.is_private and not viewer_is_authenticated):
        raise NotFound('Prayer request not found.')
    return prayer


def update_prayer_request(prayer_id, form):
    """Direct admin edit of a request's fields."""
    prayer = get_prayer_request_by_id(prayer_id)
    for name, label in REQUIRED_PRAYER_FIELDS:
        if name in form and not _field(form, name):
            raise ValidationError(f'{label} cannot be empty.', field=name)
    if 'category' in form and _field(form, 'category') not in current_app.config['PRAYER_CATEGORIES']:
        raise ValidationError('Unknown category.', field='category')

    for name in ('title', 'content', 'requester_name', 'category'):
        if name in form:
            setattr(prayer, name, _field(form, name))
    if 'requester_email' in form:
        prayer.requester_email = _field(form, 'requester_email') or None
    if 'is_private' in form:
        prayer.is_private = _flag(form.get('is_private'))
    prayer.updated_at = utcnow()
    commit('update prayer request')
    return prayer


def update_prayer_status(prayer_id, status):
    if status not in PRAYER_STATUSES:
        raise ValidationError('Invalid status.', field='status')
    prayer = get_prayer_request_by_id(prayer_id)
    prayer.status = status
    prayer.updated_at = utcnow()
    commit('update prayer status')
    return prayer


def delete_prayer_request(prayer_id):
    """Hard delete a request, its suggestions first."""
    if db.session.get(PrayerRequest, prayer_id) is None:
        raise NotFound('Prayer request not found.')
    SuggestedUpdate.query.filter_by(prayer_request_id=prayer_id).delete(synchronize_session=False)
    PrayerRequest.query.filter_by(id=prayer_id).delete(synchronize_session=False)
    commit('delete prayer request')
    logger.info('Prayer request %d deleted', prayer_id)


# ==================== Suggested updates ====================

def create_suggested_update(prayer_id, content, suggesting_user_id):
    prayer = db.session.get(PrayerRequest, prayer_id)
    if prayer is None or prayer.status == 'archived':
        raise NotFound('Prayer request not found.')
    content = (content or '').strip()
    if not content:
        raise ValidationError('Suggested content is required.', field='suggested_content')

    update = SuggestedUpdate(
        prayer_request_id=prayer_id,
        suggested_by=suggesting_user_id,
        suggested_content=content,
        status='pending',
        created_at=utcnow(),
    )
    db.session.add(update)
    commit('create suggested update')
    return update.id


def get_suggested_update(update_id):
    update = db.session.get(SuggestedUpdate, update_id)
    if update is None:
        raise NotFound('Suggested update not found.')
    return update


def _resolve(update_id, status, admin_id, notes, now):
    """Move a pending suggestion to ``status``. Raises if it is not pending."""
    resolved = (
        SuggestedUpdate.query
        .filter_by(id=update_id, status='pending')
        .update({
            'status': status,
            'reviewed_by': admin_id,
            'reviewed_at': now,
            'admin_notes': notes or '',
        }, synchronize_session=False)
    )
    if resolved:
        return
    db.session.rollback()
    current = db.session.get(SuggestedUpdate, update_id)
    if current is None:
        raise NotFound('Suggested update not found.')
    raise Conflict(f'This suggestion was already {current.status}.')


def approve_suggested_update(update_id, admin_id, notes=None):
    """
    Approve a pending suggestion and apply it to its prayer request.

    The status change and the content overwrite commit together. If the
    store fails part way, the transaction is rolled back and StoreError
    propagates; this is never treated as best effort.
    """
    now = utcnow()
    try:
        _resolve(update_id, 'approved', admin_id, notes, now)
        update = db.session.get(SuggestedUpdate, update_id)
        applied = (
            PrayerRequest.query
            .filter_by(id=update.prayer_request_id)
            .update({'content': update.suggested_content, 'updated_at': now},
                    synchronize_session=False)
        )
        if not applied:
            raise StoreError(f'Prayer request {update.prayer_request_id} vanished during approval.')
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.critical('Approval of suggestion %d failed mid-write: %s', update_id, exc)
        raise StoreError('Could not approve the suggested update.') from exc
    except StoreError:
        db.session.rollback()
        logger.critical('Approval of suggestion %d left no prayer to update', update_id)
        raise
    # Objects loaded before the bulk update may be stale.
    db.session.expire_all()
    logger.info('Suggestion %d approved by user %d', update_id, admin_id)


def reject_suggested_update(update_id, admin_id, notes=None):
    try:
        _resolve(update_id, 'rejected', admin_id, notes, utcnow())
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError('Could not reject the suggested update.') from exc
    db.session.expire_all()
    logger.info('Suggestion %d rejected by user %d', update_id, admin_id)


def get_suggested_updates_for_prayer(prayer_id):
    return (
        SuggestedUpdate.query
        .filter_by(prayer_request_id=prayer_id)
        .order_by(SuggestedUpdate.created_at.desc(), SuggestedUpdate.id.desc())
        .all()
    )


def get_approved_updates_for_prayer(prayer_id):
    return (
        SuggestedUpdate.query
        .filter_by(prayer_request_id=prayer_id, status='approved')
        .order_by(SuggestedUpdate.reviewed_at.desc(), SuggestedUpdate.id.desc())
        .all()
    )


def get_pending_suggested_updates():
    """Pending suggestions, oldest first, with their prayer and suggester loaded."""
    return (
        SuggestedUpdate.query
        .join(PrayerRequest, SuggestedUpdate.prayer_request_id == PrayerRequest.id)
        .join(User, SuggestedUpdate.suggested_by == User.id)
        .filter(SuggestedUpdate.status == 'pending')
        .order_by(SuggestedUpdate.created_at.asc(), SuggestedUpdate.id.asc())
        .all()
    )
