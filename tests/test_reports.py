from datetime import timedelta

from app.models import db, PrayerRequest
from app.services import prayer_service, reports, user_service
from app.timeutil import utcnow


def test_category_counts_in_listing_order(make_prayer):
    make_prayer(category='General')
    make_prayer(category='Healing')
    make_prayer(category='Healing')
    archived = make_prayer(category='Family')
    prayer_service.update_prayer_status(archived, 'archived')

    counts = [(c.category, c.count) for c in reports.category_counts()]
    assert counts == [('Healing', 2), ('General', 1)]
    with_archived = [c.category for c in reports.category_counts(include_archived=True)]
    assert with_archived == ['Healing', 'Family', 'General']


def test_recent_activity_counts_suggestions(make_user, make_prayer):
    bob = make_user('bob')
    carol = make_user('carol', role='admin')
    quiet = make_prayer(title='Quiet')
    busy = make_prayer(title='Busy')
    prayer_service.create_suggested_update(busy, 'Pending one', bob.id)
    approved = prayer_service.create_suggested_update(busy, 'Approved one', bob.id)
    prayer_service.approve_suggested_update(approved, carol.id)

    items = reports.recent_activity()

    assert [i.prayer.id for i in items] == [busy, quiet]
    assert (items[0].pending_count, items[0].approved_count) == (1, 1)
    assert (items[1].pending_count, items[1].approved_count) == (0, 0)


def test_stale_requests(make_prayer):
    fresh = make_prayer(title='Fresh')
    stale = make_prayer(title='Stale')
    answered = make_prayer(title='Answered')
    db.session.get(PrayerRequest, stale).updated_at = utcnow() - timedelta(days=45)
    db.session.commit()
    prayer_service.update_prayer_status(answered, 'answered')
    db.session.get(PrayerRequest, answered).updated_at = utcnow() - timedelta(days=45)
    db.session.commit()

    assert [p.id for p in reports.stale_requests()] == [stale]
    assert reports.stale_requests(days=60) == []
    later = utcnow() + timedelta(days=31)
    assert {p.id for p in reports.stale_requests(now=later)} == {fresh, stale}


def test_user_stats_count_active_users_by_role(make_user):
    root = make_user('root', role='super_admin')
    make_user('alice')
    bob = make_user('bob')
    make_user('carol', role='admin')
    user_service.deactivate_user(bob.id, root.id)

    stats = user_service.get_user_stats()

    assert stats.total == 3
    assert stats.by_role == {'super_admin': 1, 'member': 1, 'admin': 1}
