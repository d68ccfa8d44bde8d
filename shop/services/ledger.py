"""Reservation ledger: one mark per product per rented day."""
import logging

from shop.extensions import db
from shop.models.rental import ReservationMark, MARK_RESERVED, MARK_AVAILABLE
from shop.services.dates import as_day

logger = logging.getLogger(__name__)


def reserve(product_id, rental_id, dates):
    """Hold each of ``dates`` for the rental.

    Callers check availability first; the partial unique index on reserved
    marks rejects the flush if another rental holds one of the days.
    """
    days = sorted({as_day(d) for d in dates})
    marks = [
        ReservationMark(product_id=product_id, rental_id=rental_id,
                        reserved_date=day, status=MARK_RESERVED)
        for day in days
    ]
    db.session.add_all(marks)
    db.session.flush()
    logger.debug('Reserved %d day(s) of product %s for rental %s', len(marks), product_id, rental_id)
    return marks


def release(rental_id):
    """Free every day still held by the rental. Returns how many marks changed."""
    released = (ReservationMark.query
                .filter_by(rental_id=rental_id, status=MARK_RESERVED)
                .update({ReservationMark.status: MARK_AVAILABLE}, synchronize_session='fetch'))
    logger.debug('Released %d day(s) of rental %s', released, rental_id)
    return released


def reserved_days(product_id, start, end):
    """Days in [start, end] on which the product is held, sorted and unique."""
    rows = (db.session.query(ReservationMark.reserved_date)
            .filter(ReservationMark.product_id == product_id,
                    ReservationMark.status == MARK_RESERVED,
                    ReservationMark.reserved_date >= as_day(start),
                    ReservationMark.reserved_date <= as_day(end))
            .distinct()
            .order_by(ReservationMark.reserved_date)
            .all())
    return [row[0] for row in rows]
