from datetime import date, datetime

import pytest
from sqlalchemy.exc import OperationalError

from shop.errors import ConflictError, NotFoundError, StoreUnavailableError, ValidationError
from shop.extensions import db as _db
from shop.models import Customer, Payment, Product, Rental, ReservationMark, Transaction
from shop.services import rentals
from shop.services.availability import is_range_available


def _rental(rental_id):
    return _db.session.get(Rental, rental_id)


# --- Booking ---
def test_booking_creates_rental_transaction_and_calendar_days(product, agent, book):
    rental_id = book(product, date(2025, 1, 10), 2, agent=agent, customer_email='lina@mail.dz')
    rental = _rental(rental_id)

    assert rental.rental_end_date == date(2025, 1, 12)
    assert rental.rental_days == 2
    assert rental.daily_rate == 1000
    assert rental.total_amount == 2000
    assert rental.paid_amount == 2000
    assert rental.remaining_amount == 0
    assert rental.status == 'active'
    assert rental.agent_name == 'Amina'

    transaction = rental.transaction
    assert transaction.type == 'rental'
    assert transaction.total_amount == 2000
    assert transaction.status == 'completed'

    days = sorted(m.reserved_date for m in rental.marks)
    assert days == [date(2025, 1, 10), date(2025, 1, 11), date(2025, 1, 12)]
    assert Payment.query.filter_by(rental_id=rental_id).count() == 1


def test_booking_does_not_touch_stock(product, book):
    book(product, date(2025, 1, 10), 2)
    assert product.stock == 3


def test_non_overlapping_bookings_both_succeed(product, book):
    first = book(product, date(2025, 1, 1), 2)
    second = book(product, date(2025, 1, 4), 2)
    assert first != second


@pytest.mark.parametrize('start, days', [
    (date(2025, 1, 10), 2),   # same range
    (date(2025, 1, 8), 2),    # ends on the first held day
    (date(2025, 1, 11), 5),   # starts in the middle
])
def test_overlapping_booking_is_rejected(product, book, start, days):
    book(product, date(2025, 1, 10), 2)
    with pytest.raises(ConflictError):
        book(product, start, days, phone='0666000000', customer_name='Sara')


def test_last_day_of_a_rental_is_held(product, book):
    # A rental from the 10th to the 12th holds the 10th, 11th and 12th
    book(product, date(2025, 1, 10), 2)

    with pytest.raises(ConflictError):
        book(product, date(2025, 1, 12), 1)
    assert book(product, date(2025, 1, 13), 1)


def test_rejected_booking_leaves_nothing_behind(product, book):
    book(product, date(2025, 1, 10), 2)
    with pytest.raises(ConflictError):
        book(product, date(2025, 1, 11), 1, phone='0777000000', customer_name='Nour')

    assert Rental.query.count() == 1
    assert Transaction.query.count() == 1
    assert ReservationMark.query.count() == 3
    assert Customer.query.filter_by(phone='0777000000').first() is None


def test_race_on_the_same_day_is_caught_by_the_store(product, book, monkeypatch):
    book(product, date(2025, 1, 10), 2)
    # Simulate a second terminal that checked before the first one saved
    monkeypatch.setattr(rentals.ledger, 'reserved_days', lambda *args: [])

    with pytest.raises(ConflictError):
        book(product, date(2025, 1, 12), 1, phone='0666000000', customer_name='Sara')
    assert Rental.query.count() == 1
    assert Transaction.query.count() == 1


def test_booking_while_store_is_down_is_not_a_conflict(product, book, monkeypatch):
    def store_down(*args):
        raise OperationalError('SELECT reserved_date FROM rental_calendar', {}, Exception('connection lost'))
    monkeypatch.setattr(rentals.ledger, 'reserved_days', store_down)

    with pytest.raises(StoreUnavailableError):
        book(product, date(2025, 1, 10), 2)

    monkeypatch.undo()
    assert Rental.query.count() == 0
    assert Customer.query.count() == 0
    assert book(product, date(2025, 1, 10), 2)


def test_other_products_are_independent(product, other_product, book):
    book(product, date(2025, 1, 10), 2)
    assert book(other_product, date(2025, 1, 10), 2)


def test_discount_is_applied_to_the_total(product, book):
    rental = _rental(book(product, date(2025, 1, 10), 4, discount=10))
    assert rental.discount == 10
    assert rental.discount_amount == 400
    assert rental.total_amount == 3600
    assert rental.transaction.unit_price == 4000


def test_partial_payment_at_booking(product, book):
    rental = _rental(book(product, date(2025, 1, 10), 3, paid_amount=1000))
    assert rental.status == 'partial'
    assert rental.remaining_amount == 2000
    assert rental.transaction.status == 'partial'


def test_booking_with_nothing_paid_records_no_payment(product, book):
    rental_id = book(product, date(2025, 1, 10), 3, paid_amount=0)
    assert _rental(rental_id).remaining_amount == 3000
    assert Payment.query.filter_by(rental_id=rental_id).count() == 0


def test_end_date_can_replace_rental_days(product):
    rental_id = rentals.book_rental(product_id=product.id, customer_name='Lina', customer_phone='0555123456',
                                    start_date=date(2025, 1, 10), end_date=date(2025, 1, 13))
    rental = _rental(rental_id)
    assert rental.rental_days == 3
    assert rental.total_amount == 3000


def test_customer_is_reused_by_phone(product, book):
    book(product, date(2025, 1, 1), 1, phone='0555 12-34-56')
    book(product, date(2025, 1, 5), 1, phone='0555123456')
    assert Customer.query.count() == 1
    assert {r.customer_phone for r in Rental.query.all()} == {'0555123456'}


def test_daily_rate_is_a_snapshot(db, product, book):
    rental_id = book(product, date(2025, 1, 10), 2)
    product.rental_price_per_day = 5000
    db.session.commit()
    assert _rental(rental_id).daily_rate == 1000


@pytest.mark.parametrize('kwargs', [
    {'rental_days': 0},
    {'rental_days': None, 'end_date': date(2025, 1, 9)},
    {'rental_days': None, 'end_date': date(2025, 1, 10)},
    {'rental_days': 2, 'end_date': date(2025, 1, 15)},
    {'customer_name': ' '},
    {'customer_phone': ''},
    {'discount': 120},
    {'paid_amount': 999999},
    {'paid_amount': -5},
    {'payment_method': 'cheque'},
])
def test_invalid_bookings_are_rejected(product, kwargs):
    params = dict(product_id=product.id, customer_name='Lina', customer_phone='0555123456',
                  start_date=date(2025, 1, 10), rental_days=2)
    params.update(kwargs)
    with pytest.raises(ValidationError):
        rentals.book_rental(**params)
    assert Rental.query.count() == 0


def test_unknown_product(app):
    with pytest.raises(NotFoundError):
        rentals.book_rental(product_id=999, customer_name='Lina', customer_phone='0555123456',
                            start_date=date(2025, 1, 10), rental_days=1)


def test_product_not_offered_for_rental(db, product, book):
    product.is_available_for_rental = False
    db.session.commit()
    with pytest.raises(ValidationError):
        book(product, date(2025, 1, 10), 1)


# --- Status transitions ---
def test_returning_frees_the_dates(product, book):
    rental_id = book(product, date(2025, 1, 10), 2)
    rental = rentals.update_status(rental_id, 'returned', returned_at=datetime(2025, 1, 12, 18, 0))

    assert rental.status == 'returned'
    assert rental.returned_at == datetime(2025, 1, 12, 18, 0)
    assert rental.transaction.status == 'returned'
    assert is_range_available(product.id, date(2025, 1, 10), date(2025, 1, 12)) is True
    assert ReservationMark.query.filter_by(rental_id=rental_id).count() == 3


def test_returned_at_defaults_to_now(product, book):
    rental = rentals.update_status(book(product, date(2025, 1, 10), 2), 'returned')
    assert rental.returned_at is not None


def test_cancelling_keeps_the_dates_held(product, book):
    rental_id = book(product, date(2025, 1, 10), 2)
    rental = rentals.update_status(rental_id, 'cancelled')

    assert rental.status == 'cancelled'
    assert rental.transaction.status == 'cancelled'
    assert is_range_available(product.id, date(2025, 1, 10), date(2025, 1, 12)) is False


def test_cancelling_can_release_when_asked(product, book):
    rental_id = book(product, date(2025, 1, 10), 2)
    rentals.update_status(rental_id, 'cancelled', release_on_cancel=True)
    assert is_range_available(product.id, date(2025, 1, 10), date(2025, 1, 12)) is True


def test_cancel_release_follows_configuration(app, product, book):
    app.config['RELEASE_ON_CANCEL'] = True
    rental_id = book(product, date(2025, 1, 10), 2)
    rentals.update_status(rental_id, 'cancelled')
    assert is_range_available(product.id, date(2025, 1, 10), date(2025, 1, 12)) is True


def test_returning_twice_is_a_no_op(product, book, monkeypatch):
    rental_id = book(product, date(2025, 1, 10), 2)
    rentals.update_status(rental_id, 'returned', returned_at=datetime(2025, 1, 12, 18, 0))

    calls = []
    monkeypatch.setattr(rentals.ledger, 'release', lambda rid: calls.append(rid) or 0)
    rental = rentals.update_status(rental_id, 'returned')

    assert rental.status == 'returned'
    assert rental.returned_at == datetime(2025, 1, 12, 18, 0)
    assert calls == []


def test_rebooking_after_return(product, book):
    rental_id = book(product, date(2025, 1, 10), 2)
    rentals.update_status(rental_id, 'returned')
    assert book(product, date(2025, 1, 11), 1, phone='0666000000', customer_name='Sara')


@pytest.mark.parametrize('first, second', [
    ('cancelled', 'returned'),
    ('returned', 'cancelled'),
])
def test_terminal_statuses_are_final(product, book, first, second):
    rental_id = book(product, date(2025, 1, 10), 2)
    rentals.update_status(rental_id, first)
    with pytest.raises(ValidationError):
        rentals.update_status(rental_id, second)


@pytest.mark.parametrize('status', ['overdue', 'partial', 'lost'])
def test_statuses_that_cannot_be_set(product, book, status):
    rental_id = book(product, date(2025, 1, 10), 2)
    with pytest.raises(ValidationError):
        rentals.update_status(rental_id, status)


def test_status_of_unknown_rental(app):
    with pytest.raises(NotFoundError):
        rentals.update_status(12345, 'returned')


# --- Payments ---
def test_installments_settle_a_partial_rental(product, agent, book):
    rental_id = book(product, date(2025, 1, 10), 3, paid_amount=0)

    for _ in range(3):
        rentals.record_payment(rental_id, 1000, method='card', agent=agent)
        rental = _rental(rental_id)
        assert rental.remaining_amount >= 0

    rental = _rental(rental_id)
    assert rental.paid_amount == 3000
    assert rental.remaining_amount == 0
    assert rental.status == 'active'
    assert rental.transaction.status == 'completed'
    assert Payment.query.filter_by(rental_id=rental_id).count() == 3


def test_overpayment_never_makes_remaining_negative(product, book):
    rental_id = book(product, date(2025, 1, 10), 1, paid_amount=500)
    rentals.record_payment(rental_id, 900)
    rental = _rental(rental_id)
    assert rental.paid_amount == 1400
    assert rental.remaining_amount == 0
    assert rental.status == 'active'


def test_cents_add_up_exactly(db, product, book):
    product.rental_price_per_day = 0.3
    db.session.commit()
    rental_id = book(product, date(2025, 1, 10), 1, paid_amount=0)
    rentals.record_payment(rental_id, 0.1)
    rentals.record_payment(rental_id, 0.1)
    rentals.record_payment(rental_id, 0.1)
    rental = _rental(rental_id)
    assert rental.remaining_amount == 0
    assert rental.status == 'active'


def test_payment_keeps_terminal_status(product, book):
    rental_id = book(product, date(2025, 1, 10), 2, paid_amount=0)
    rentals.update_status(rental_id, 'returned')
    rentals.record_payment(rental_id, 500)
    rental = _rental(rental_id)
    assert rental.status == 'returned'
    assert rental.remaining_amount == 1500


def test_payment_is_linked_to_the_customer(product, book):
    rental_id = book(product, date(2025, 1, 10), 2, paid_amount=0)
    payment = rentals.record_payment(rental_id, 500, notes='first installment')
    customer = Customer.query.filter_by(phone='0555123456').one()
    assert payment.customer_id == customer.id
    assert payment.transaction_id == _rental(rental_id).transaction_id


@pytest.mark.parametrize('amount, method', [(0, 'cash'), (-10, 'cash'), (100, 'bitcoin')])
def test_invalid_payments(product, book, amount, method):
    rental_id = book(product, date(2025, 1, 10), 2, paid_amount=0)
    with pytest.raises(ValidationError):
        rentals.record_payment(rental_id, amount, method=method)


# --- Derived overdue ---
def test_open_rental_past_its_end_is_overdue(product, book):
    rental = _rental(book(product, date(2025, 1, 10), 2))
    assert rentals.display_status(rental, today=date(2025, 1, 12)) == 'active'
    assert rentals.display_status(rental, today=date(2025, 1, 13)) == 'overdue'
    assert rental.status == 'active'


def test_partial_rental_can_be_overdue(product, book):
    rental = _rental(book(product, date(2025, 1, 10), 2, paid_amount=0))
    assert rentals.display_status(rental, today=date(2025, 2, 1)) == 'overdue'


def test_closed_rentals_are_never_overdue(product, book):
    rental = rentals.update_status(book(product, date(2025, 1, 10), 2), 'returned')
    assert rentals.display_status(rental, today=date(2025, 3, 1)) == 'returned'


def test_list_rentals_by_derived_overdue(product, other_product, book):
    late = book(product, date(2025, 1, 1), 2)
    book(other_product, date(2025, 1, 20), 5)
    returned = book(product, date(2025, 1, 5), 1)
    rentals.update_status(returned, 'returned')

    overdue = rentals.list_rentals('overdue', today=date(2025, 1, 10))
    assert [r.id for r in overdue] == [late]
    assert len(rentals.list_rentals()) == 3
    assert [r.id for r in rentals.list_rentals('returned')] == [returned]


# --- Store failures on lookups ---
def test_booking_reports_store_errors_on_product_lookup(product, book, store_down):
    store_down(Product)
    with pytest.raises(StoreUnavailableError):
        book(product, date(2025, 1, 10), 2)


@pytest.mark.parametrize('operation', [
    lambda rental_id: rentals.get_rental(rental_id),
    lambda rental_id: rentals.update_status(rental_id, 'returned'),
    lambda rental_id: rentals.record_payment(rental_id, 500),
])
def test_rental_lookups_report_store_errors(product, book, store_down, monkeypatch, operation):
    rental_id = book(product, date(2025, 1, 10), 2, paid_amount=0)
    store_down(Rental)

    with pytest.raises(StoreUnavailableError):
        operation(rental_id)

    monkeypatch.undo()
    rental = _rental(rental_id)
    assert rental.status == 'partial'
    assert rental.paid_amount == 0
    assert Payment.query.filter_by(rental_id=rental_id).count() == 0
