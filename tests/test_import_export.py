import csv
import io

from app.models import ImportLog, PrayerRequest
from app.services import export, import_service, prayer_service

CSV_TEXT = """title,content,requester_name,category,is_private
Job search,Needs work,Ann,Provision,
Surgery,Knee surgery Friday,Ben,Healing,yes
Trip,Mission trip,Cal,,
Exams,Finals week,Dee,Family,
New baby,Thankful,Eve,Praise Report,
Missing content,,Fay,General,
Also missing,,Gus,General,
"""


def test_bulk_import_partial_success(make_user):
    admin = make_user('carol', role='admin')

    result = import_service.import_csv(CSV_TEXT, admin.id, filename='batch.csv')

    assert (result.success_count, result.failed_count) == (5, 2)
    assert result.errors == ['Row 6: missing content', 'Row 7: missing content']
    assert PrayerRequest.query.count() == 5
    log = ImportLog.query.one()
    assert log.filename == 'batch.csv'
    assert (log.success_count, log.failed_count) == (5, 2)
    assert log.errors == result.errors
    assert log.imported_by == admin.id


def test_import_defaults_and_private_flag(make_user):
    admin = make_user('carol', role='admin')
    import_service.import_csv(CSV_TEXT, admin.id)

    trip = PrayerRequest.query.filter_by(title='Trip').one()
    surgery = PrayerRequest.query.filter_by(title='Surgery').one()
    assert trip.category == 'General'
    assert trip.status == 'active'
    assert surgery.is_private is True
    assert trip.is_private is False


def test_legacy_name_header_is_accepted(make_user):
    admin = make_user('carol', role='admin')
    text = '\ufeffName,Content,Requester,Email\nRoof repair,Storm damage,Hal,hal@example.org\n'

    result = import_service.import_csv(text.encode('utf-8'), admin.id)

    assert result.success_count == 1
    prayer = PrayerRequest.query.one()
    assert prayer.title == 'Roof repair'
    assert prayer.requester_name == 'Hal'
    assert prayer.requester_email == 'hal@example.org'


def test_explicit_title_wins_over_name():
    row = import_service.normalize_import_row({'name': 'Old', 'Title': 'New', ' Content ': ' x '})
    assert row == {'title': 'New', 'content': 'x'}


def test_import_error_log_is_capped(app, make_user):
    admin = make_user('carol', role='admin')
    rows = [{'title': f'Row {n}'} for n in range(15)]

    result = import_service.bulk_import(rows, admin.id)

    assert result.failed_count == 15
    assert len(result.errors) == 15
    assert len(ImportLog.query.one().errors) == app.config['IMPORT_ERROR_LOG_LIMIT']


def test_export_lists_active_prayers_with_approved_updates(make_user, make_prayer):
    bob = make_user('bob')
    carol = make_user('carol', role='admin')
    healing = make_prayer(title='Healing')
    answered = make_prayer(title='Answered', category='Family')
    prayer_service.update_prayer_status(answered, 'answered')
    first = prayer_service.create_suggested_update(healing, 'Out of surgery', bob.id)
    prayer_service.approve_suggested_update(first, carol.id)
    rejected = prayer_service.create_suggested_update(healing, 'Ignore me', bob.id)
    prayer_service.reject_suggested_update(rejected, carol.id)

    rows = export.export_prayers()

    assert [row.prayer.id for row in rows] == [healing]
    assert rows[0].approved_updates == ['Out of surgery']


def test_export_to_csv(make_user, make_prayer):
    make_prayer(title='Healing', requester_email='a@example.org')
    make_prayer(title='Praise', category='Praise Report')

    reader = csv.reader(io.StringIO(export.export_to_csv()))
    header, *rows = list(reader)

    assert header[:2] == ['ID', 'Title']
    assert header[-1] == 'Approved Updates'
    assert [row[1] for row in rows] == ['Praise', 'Healing']
    assert rows[1][4] == 'a@example.org'
    assert rows[1][6] == 'no'
