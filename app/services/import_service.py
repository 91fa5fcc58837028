"""Bulk import of prayer requests from CSV exports or spreadsheets."""
import csv
import io
import logging
from dataclasses import dataclass, field
from typing import List

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app.models import db, PrayerRequest, ImportLog
from app.services import commit
from app.timeutil import utcnow

logger = logging.getLogger(__name__)

# Older exports call the title column "name".
HEADER_ALIASES = {
    'name': 'title',
    'requester': 'requester_name',
    'email': 'requester_email',
    'private': 'is_private',
}

REQUIRED_COLUMNS = ('title', 'content', 'requester_name')


@dataclass
class ImportResult:
    success_count: int = 0
    failed_count: int = 0
    errors: List[str] = field(default_factory=list)


def normalize_import_row(raw):
    """
    Normalize header names and strip values.

    Headers are lower-cased, spaces become underscores and aliases are
    applied; an explicit ``title`` column wins over ``name``.
    """
    row = {}
    aliased = {}
    for key, value in raw.items():
        if key is None:
            continue
        name = key.strip().lower().replace(' ', '_')
        value = (value or '').strip() if isinstance(value, str) else value
        if name in HEADER_ALIASES:
            aliased[HEADER_ALIASES[name]] = value
        else:
            row[name] = value
    for name, value in aliased.items():
        if not row.get(name):
            row[name] = value
    return row


def parse_prayer_csv(text):
    """Parse CSV text into a list of raw row dicts."""
    if isinstance(text, bytes):
        text = text.decode('utf-8-sig')
    return list(csv.DictReader(io.StringIO(text.lstrip('\ufeff'))))


def _is_private(value):
    return str(value or '').strip().lower() in ('1', 'true', 'yes', 'on')


def bulk_import(rows, importer_id, filename=None):
    """
    Import rows as new prayer requests, skipping invalid ones.

    Every valid row is committed on its own, so one bad row never aborts the
    batch. The outcome is recorded in an ImportLog.

    Args:
        rows: iterable of mappings (raw CSV rows or already normalized)
        importer_id: id of the user running the import
        filename: optional source name for the log

    Returns:
        ImportResult
    """
    result = ImportResult()
    default_category = current_app.config['DEFAULT_CATEGORY']

    for index, raw in enumerate(rows, start=1):
        row = normalize_import_row(raw)
        missing = [name for name in REQUIRED_COLUMNS if not row.get(name)]
        if missing:
            result.failed_count += 1
            result.errors.append(f"Row {index}: missing {', '.join(missing)}")
            continue

        now = utcnow()
        db.session.add(PrayerRequest(
            title=row['title'],
            content=row['content'],
            requester_name=row['requester_name'],
            requester_email=row.get('requester_email') or None,
            category=row.get('category') or default_category,
            status='active',
            is_private=_is_private(row.get('is_private')),
            created_at=now,
            updated_at=now,
        ))
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.warning('Import row %d failed: %s', index, exc)
            result.failed_count += 1
            result.errors.append(f'Row {index}: could not be saved')
            continue
        result.success_count += 1

    limit = current_app.config['IMPORT_ERROR_LOG_LIMIT']
    db.session.add(ImportLog(
        imported_by=importer_id,
        filename=filename,
        success_count=result.success_count,
        failed_count=result.failed_count,
        errors=result.errors[:limit],
    ))
    commit('record import log')
    logger.info('Import by user %d: %d imported, %d failed',
                importer_id, result.success_count, result.failed_count)
    return result


def import_csv(text, importer_id, filename=None):
    return bulk_import(parse_prayer_csv(text), importer_id, filename=filename)


def get_import_logs(limit=20):
    return ImportLog.query.order_by(ImportLog.created_at.desc(), ImportLog.id.desc()).limit(limit).all()
