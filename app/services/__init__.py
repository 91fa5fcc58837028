"""Service layer shared helpers."""
import logging

from sqlalchemy.exc import SQLAlchemyError

from app.errors import StoreError
from app.extensions import db

logger = logging.getLogger(__name__)


def commit(action):
    """Commit the session, turning store failures into StoreError."""
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error('Store failure while trying to %s: %s', action, exc)
        raise StoreError(f'Could not {action}.') from exc
