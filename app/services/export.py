"""Export service - Active prayers with their approved updates, and CSV output."""
import csv
import io
from dataclasses import dataclass, field
from typing import List

from app.models import PrayerRequest, SuggestedUpdate
from app.services.prayer_service import sort_for_listing


@dataclass
class ExportRow:
    prayer: PrayerRequest
    approved_updates: List[str] = field(default_factory=list)


def export_prayers():
    """Active prayer requests in listing order, each with its approved update texts."""
    prayers = sort_for_listing(PrayerRequest.query.filter_by(status='active').all())
    if not prayers:
        return []

    updates = (
        SuggestedUpdate.query
        .filter(SuggestedUpdate.prayer_request_id.in_([p.id for p in prayers]))
        .filter_by(status='approved')
        .order_by(SuggestedUpdate.reviewed_at.asc(), SuggestedUpdate.id.asc())
        .all()
    )
    by_prayer = {}
    for update in updates:
        by_prayer.setdefault(update.prayer_request_id, []).append(update.suggested_content)

    return [ExportRow(prayer=p, approved_updates=by_prayer.get(p.id, [])) for p in prayers]


def export_to_csv():
    """Export active prayer requests to CSV format."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(['ID', 'Title', 'Content', 'Requester', 'Email', 'Category',
                     'Private', 'Created', 'Updated', 'Approved Updates'])

    for row in export_prayers():
        prayer = row.prayer
        writer.writerow([
            prayer.id,
            prayer.title,
            prayer.content,
            prayer.requester_name,
            prayer.requester_email or '',
            prayer.category,
            'yes' if prayer.is_private else 'no',
            prayer.created_at.strftime('%Y-%m-%d %H:%M') if prayer.created_at else '',
            prayer.updated_at.strftime('%Y-%m-%d %H:%M') if prayer.updated_at else '',
            ' | '.join(row.approved_updates),
        ])

    return output.getvalue()
