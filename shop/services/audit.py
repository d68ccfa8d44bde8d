import json
import logging

from shop.extensions import db
from shop.models.user import ApiLog

logger = logging.getLogger(__name__)


def log_event(event_type, status, details, user_id=None, ip_address=None):
    """Write an audit row; a failure here never breaks the request."""
    try:
        log_entry = ApiLog(
            event_type=event_type,
            status=status,
            details=json.dumps(details, ensure_ascii=False, default=str),
            user_id=user_id,
            ip_address=ip_address
        )
        db.session.add(log_entry)
        db.session.commit()
    except Exception as e:
        logger.error('Could not save audit event %r: %s', event_type, e)
        db.session.rollback()
