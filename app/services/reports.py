"""Read-side aggregations for the admin reports page."""
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func

from app.models import db, PrayerRequest, SuggestedUpdate
from app.services.prayer_service import category_rank
from app.timeutil import utcnow


@dataclass
class CategoryCount:
    category: str
    count: int


@dataclass
class ActivityItem:
    prayer: PrayerRequest
    last_activity: datetime
    pending_count: int
    approved_count: int


def category_counts(include_archived=False):
    query = db.session.query(PrayerRequest.category, func.count(PrayerRequest.id))
    if not include_archived:
        query = query.filter(PrayerRequest.status != 'archived')
    rows = query.group_by(PrayerRequest.category).all()
    counts = [CategoryCount(category=category, count=count) for category, count in rows]
    return sorted(counts, key=lambda c: (category_rank(c.category), c.category))


def _suggestion_counts(status):
    rows = (
        db.session.query(SuggestedUpdate.prayer_request_id, func.count(SuggestedUpdate.id))
        .filter(SuggestedUpdate.status == status)
        .group_by(SuggestedUpdate.prayer_request_id)
        .all()
    )
    return dict(rows)


def recent_activity(limit=10):
    """Non-archived requests by latest activity, with suggestion counts."""
    prayers = PrayerRequest.query.filter(PrayerRequest.status != 'archived').all()
    prayers.sort(key=lambda p: p.last_activity, reverse=True)
    pending = _suggestion_counts('pending')
    approved = _suggestion_counts('approved')
    return [
        ActivityItem(
            prayer=p,
            last_activity=p.last_activity,
            pending_count=pending.get(p.id, 0),
            approved_count=approved.get(p.id, 0),
        )
        for p in prayers[:limit]
    ]


def stale_requests(days=None, now=None):
    """Active requests not updated within ``days`` (STALE_AFTER_DAYS by default)."""
    if days is None:
        days = current_app.config['STALE_AFTER_DAYS']
    cutoff = (now or utcnow()) - timedelta(days=days)
    return (
        PrayerRequest.query
        .filter(PrayerRequest.status == 'active', PrayerRequest.updated_at < cutoff)
        .order_by(PrayerRequest.updated_at.asc())
        .all()
    )
