import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shop.errors import ConflictError, StoreUnavailableError
from shop.extensions import db

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(operation):
    """Commit everything done in the block, or roll all of it back.

    Store errors are rolled back and re-raised as shop errors: an integrity
    violation means another writer took the same calendar day first.
    """
    try:
        yield db.session
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.warning('%s rejected by the store: %s', operation, e.orig)
        raise ConflictError('The product is no longer available for these dates.') from e
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('%s failed: %s', operation, e)
        raise StoreUnavailableError(f'{operation} could not be saved, please try again.') from e
    except Exception:
        db.session.rollback()
        raise


@contextmanager
def store_read(operation):
    """Map store errors on a read to StoreUnavailableError, leaving a clean session."""
    try:
        yield db.session
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('%s failed: %s', operation, e)
        raise StoreUnavailableError(f'{operation} could not be loaded, please try again.') from e
