import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List

from sqlalchemy.exc import SQLAlchemyError

from shop.errors import StoreUnavailableError, ValidationError
from shop.extensions import db
from shop.services import ledger
from shop.services.dates import as_day, day_range, month_bounds

logger = logging.getLogger(__name__)


@dataclass
class MonthlyAvailability:
    product_id: int
    month: date
    available_dates: List[date] = field(default_factory=list)
    reserved_dates: List[date] = field(default_factory=list)

    @property
    def is_available(self):
        return len(self.available_dates) > 0

    def to_dict(self):
        return {
            'product_id': self.product_id,
            'month': self.month.strftime('%Y-%m'),
            'available_dates': [d.isoformat() for d in self.available_dates],
            'reserved_dates': [d.isoformat() for d in self.reserved_dates],
            'is_available': self.is_available,
        }


def is_range_available(product_id, start_date, end_date):
    """True when no day of [start_date, end_date] is held for the product.

    Fails closed: if the store cannot answer, the range is reported as taken.
    """
    start, end = as_day(start_date), as_day(end_date)
    if end < start:
        raise ValidationError('The end date cannot be before the start date.')
    try:
        taken = ledger.reserved_days(product_id, start, end)
    except SQLAlchemyError as e:
        logger.error('Availability check for product %s (%s..%s) failed: %s', product_id, start, end, e)
        db.session.rollback()
        return False
    return not taken


def monthly_availability(product_id, month):
    """Split every day of the month containing ``month`` into reserved and available."""
    first, last = month_bounds(month)
    try:
        reserved = set(ledger.reserved_days(product_id, first, last))
    except SQLAlchemyError as e:
        logger.error('Calendar lookup for product %s in %s failed: %s', product_id, first.strftime('%Y-%m'), e)
        raise StoreUnavailableError('Availability could not be loaded, please try again.') from e

    result = MonthlyAvailability(product_id=product_id, month=first)
    for day in day_range(first, last):
        if day in reserved:
            result.reserved_dates.append(day)
        else:
            result.available_dates.append(day)
    return result
