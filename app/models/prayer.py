"""PrayerRequest, SuggestedUpdate and ImportLog models."""
from app.extensions import db
from app.timeutil import utcnow

PRAYER_STATUSES = ('active', 'answered', 'archived')
UPDATE_STATUSES = ('pending', 'approved', 'rejected')


class PrayerRequest(db.Model):
    __tablename__ = 'prayer_requests'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=False)
    requester_name = db.Column(db.String(200), nullable=False)
    requester_email = db.Column(db.String(120))
    submitted_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)  # Null for guests
    category = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='active')  # active, answered, archived
    is_private = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)

    submitter = db.relationship('User', foreign_keys=[submitted_by])

    @property
    def last_activity(self):
        return max(self.created_at, self.updated_at or self.created_at)


class SuggestedUpdate(db.Model):
    __tablename__ = 'suggested_updates'

    id = db.Column(db.Integer, primary_key=True)
    prayer_request_id = db.Column(db.Integer, db.ForeignKey('prayer_requests.id'), nullable=False, index=True)
    suggested_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    suggested_content = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='pending')  # pending, approved, rejected
    admin_notes = db.Column(db.Text)
    reviewed_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    reviewed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow)

    prayer_request = db.relationship('PrayerRequest')
    suggester = db.relationship('User', foreign_keys=[suggested_by])
    reviewer = db.relationship('User', foreign_keys=[reviewed_by])


class ImportLog(db.Model):
    __tablename__ = 'import_logs'

    id = db.Column(db.Integer, primary_key=True)
    imported_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    filename = db.Column(db.String(255))
    success_count = db.Column(db.Integer, nullable=False, default=0)
    failed_count = db.Column(db.Integer, nullable=False, default=0)
    errors = db.Column(db.JSON)  # First IMPORT_ERROR_LOG_LIMIT messages
    created_at = db.Column(db.DateTime, default=utcnow)

    importer = db.relationship('User')
