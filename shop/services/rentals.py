"""Rental lifecycle: booking, status transitions and installment payments.

Each public operation runs in a single unit of work, so the rental, its
paired transaction, its calendar days and its payments are saved together
or not at all.
"""
import logging
from datetime import date, datetime, time, timedelta

from flask import current_app

from shop.errors import ConflictError, NotFoundError, ValidationError
from shop.extensions import db
from shop.models.catalog import Product
from shop.models.rental import (
    Rental, Transaction, Payment, PAYMENT_METHODS,
    RENTAL_ACTIVE, RENTAL_PARTIAL, RENTAL_RETURNED, RENTAL_CANCELLED, RENTAL_OVERDUE,
    RENTAL_OPEN_STATUSES, RENTAL_TERMINAL_STATUSES,
    TX_RENTAL, TX_COMPLETED, TX_PARTIAL, TX_PENDING, TX_RETURNED, TX_CANCELLED,
)
from shop.services import ledger
from shop.services.customers import find_or_create_customer
from shop.services.dates import as_day, day_range, utcnow
from shop.services.money import cents, check_amount, price_with_discount, remaining
from shop.services.session import store_read, unit_of_work

logger = logging.getLogger(__name__)

SETTABLE_STATUSES = (RENTAL_ACTIVE, RENTAL_PARTIAL, RENTAL_RETURNED, RENTAL_CANCELLED)


def _rental_period(start_date, rental_days, end_date):
    """Resolve (start, days, end) from a start date plus a day count and/or an end date."""
    start = as_day(start_date)
    if rental_days is None and end_date is None:
        raise ValidationError('Either the number of rental days or the end date is required.')
    if end_date is not None:
        end = as_day(end_date)
        if end < start:
            raise ValidationError('The end date cannot be before the start date.')
        if rental_days is None:
            rental_days = (end - start).days
    try:
        rental_days = int(rental_days)
    except (TypeError, ValueError):
        raise ValidationError('The number of rental days must be a whole number.')
    if rental_days < 1:
        raise ValidationError('A rental lasts at least one day.')
    computed_end = start + timedelta(days=rental_days)
    if end_date is not None and as_day(end_date) != computed_end:
        raise ValidationError('The end date does not match the number of rental days.')
    return start, rental_days, computed_end


def _check_method(method):
    if method not in PAYMENT_METHODS:
        raise ValidationError(f'Unknown payment method {method!r}.')
    return method


def get_rental(rental_id):
    with store_read(f'Rental {rental_id}'):
        rental = db.session.get(Rental, rental_id)
    if rental is None:
        raise NotFoundError(f'Rental {rental_id} not found.')
    return rental


def book_rental(product_id, customer_name, customer_phone, start_date, rental_days=None,
                end_date=None, customer_email=None, discount=0, paid_amount=None,
                deposit_amount=0, payment_method='cash', agent=None, notes=None):
    """Book a product for a date range and return the new rental id.

    The rental ends ``rental_days`` after it starts and holds every day of
    that range, both ends included. ``paid_amount`` defaults to the full
    price; a smaller amount leaves the rental ``partial``.
    """
    if not customer_name or not customer_name.strip() or not customer_phone or not customer_phone.strip():
        raise ValidationError('Customer name and phone are required.')
    start, rental_days, end = _rental_period(start_date, rental_days, end_date)
    _check_method(payment_method)
    deposit = check_amount(deposit_amount, 'The deposit')

    with unit_of_work('Rental booking'):
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f'Product {product_id} not found.')
        if not product.is_available_for_rental:
            raise ValidationError(f'{product.name} is not available for rental.')

        daily_rate = cents(product.rental_price_per_day)
        gross = cents(daily_rate * rental_days)
        discount_amount, total = price_with_discount(gross, discount)
        paid = total if paid_amount is None else check_amount(paid_amount, 'The paid amount')
        if paid > total:
            raise ValidationError('The paid amount cannot exceed the total.')
        balance = remaining(total, paid)

        # Unlike is_range_available, a store error here propagates
        if ledger.reserved_days(product.id, start, end):
            raise ConflictError(f'{product.name} is not available from {start:%d/%m/%Y} to {end:%d/%m/%Y}.',
                                product_id=product.id, start=start.isoformat(), end=end.isoformat())

        customer = find_or_create_customer(customer_name, customer_phone, customer_email)
        transaction = Transaction(
            type=TX_RENTAL,
            product_id=product.id,
            product_name=product.name,
            quantity=1,
            unit_price=gross,
            total_amount=total,
            discount=float(discount or 0),
            discount_amount=discount_amount,
            paid_amount=paid,
            remaining_amount=balance,
            customer_name=customer_name.strip(),
            customer_phone=customer.phone,
            customer_email=customer_email,
            status=TX_PARTIAL if balance > 0 else TX_COMPLETED,
            agent_id=agent.id if agent else None,
            agent_name=agent.name if agent else None,
            notes=notes,
        )
        db.session.add(transaction)
        db.session.flush()

        rental = Rental(
            transaction_id=transaction.id,
            product_id=product.id,
            customer_name=customer_name.strip(),
            customer_phone=customer.phone,
            customer_email=customer_email,
            rental_start_date=start,
            rental_end_date=end,
            rental_days=rental_days,
            daily_rate=daily_rate,
            total_amount=total,
            discount=float(discount or 0),
            discount_amount=discount_amount,
            paid_amount=paid,
            remaining_amount=balance,
            deposit_amount=deposit,
            status=RENTAL_PARTIAL if balance > 0 else RENTAL_ACTIVE,
            agent_id=agent.id if agent else None,
            agent_name=agent.name if agent else None,
            notes=notes,
        )
        db.session.add(rental)
        db.session.flush()

        ledger.reserve(product.id, rental.id, day_range(start, end))

        if paid > 0:
            db.session.add(Payment(
                transaction_id=transaction.id,
                rental_id=rental.id,
                customer_id=customer.id,
                amount=paid,
                payment_method=payment_method,
                notes='Paid at booking' if balance == 0 else f'Deposit at booking, {balance:.2f} due',
                agent_id=agent.id if agent else None,
                agent_name=agent.name if agent else None,
            ))

    logger.info('Rental %s booked: product %s from %s to %s (%d days, total %.2f, status %s)',
                rental.id, product.id, start, end, rental_days, total, rental.status)
    return rental.id


def update_status(rental_id, new_status, returned_at=None, release_on_cancel=None):
    """Move a rental to ``new_status``.

    Returning frees the calendar days; cancelling keeps them held unless
    ``release_on_cancel`` (default: the RELEASE_ON_CANCEL setting) is on.
    Setting a terminal status the rental already has changes nothing.
    """
    if new_status == RENTAL_OVERDUE:
        raise ValidationError('Overdue is computed from the end date and cannot be set.')
    if new_status not in SETTABLE_STATUSES:
        raise ValidationError(f'Unknown rental status {new_status!r}.')
    if release_on_cancel is None:
        release_on_cancel = current_app.config.get('RELEASE_ON_CANCEL', False)

    with unit_of_work('Rental status update'):
        rental = get_rental(rental_id)
        if rental.status == new_status:
            logger.info('Rental %s is already %s', rental.id, new_status)
            return rental
        if rental.status in RENTAL_TERMINAL_STATUSES:
            raise ValidationError(f'Rental {rental.id} is already {rental.status}.')
        if new_status in RENTAL_OPEN_STATUSES:
            raise ValidationError('Active and partial follow the payment balance; record a payment instead.')

        rental.status = new_status
        released = 0
        if new_status == RENTAL_RETURNED:
            if returned_at is None:
                returned_at = utcnow()
            elif isinstance(returned_at, date) and not isinstance(returned_at, datetime):
                returned_at = datetime.combine(returned_at, time())
            rental.returned_at = returned_at
            released = ledger.release(rental.id)
        elif release_on_cancel:
            released = ledger.release(rental.id)
        if rental.transaction is not None:
            rental.transaction.status = TX_RETURNED if new_status == RENTAL_RETURNED else TX_CANCELLED

    logger.info('Rental %s is now %s (%d day(s) released)', rental.id, new_status, released)
    return rental


def record_payment(rental_id, amount, method='cash', agent=None, notes=None):
    """Add an installment to a rental and its transaction; returns the Payment."""
    amount = cents(amount)
    if amount <= 0:
        raise ValidationError('The payment amount must be positive.')
    _check_method(method)

    with unit_of_work('Rental payment'):
        rental = get_rental(rental_id)
        customer = find_or_create_customer(rental.customer_name, rental.customer_phone, rental.customer_email)
        rental.paid_amount = cents(cents(rental.paid_amount) + amount)
        rental.remaining_amount = remaining(rental.total_amount, rental.paid_amount)
        if rental.status in RENTAL_OPEN_STATUSES:
            rental.status = RENTAL_PARTIAL if rental.remaining_amount > 0 else RENTAL_ACTIVE

        transaction = rental.transaction
        if transaction is not None:
            transaction.paid_amount = cents(cents(transaction.paid_amount) + amount)
            transaction.remaining_amount = remaining(transaction.total_amount, transaction.paid_amount)
            if transaction.status in (TX_PARTIAL, TX_PENDING, TX_COMPLETED):
                transaction.status = TX_PARTIAL if transaction.remaining_amount > 0 else TX_COMPLETED

        payment = Payment(
            transaction_id=rental.transaction_id,
            rental_id=rental.id,
            customer_id=customer.id,
            amount=amount,
            payment_method=method,
            notes=notes,
            agent_id=agent.id if agent else None,
            agent_name=agent.name if agent else None,
        )
        db.session.add(payment)

    logger.info('Payment of %.2f on rental %s, %.2f remaining', amount, rental.id, rental.remaining_amount)
    return payment


def display_status(rental, today=None):
    """Status shown to the user: an open rental past its end date is overdue."""
    today = as_day(today) if today is not None else date.today()
    if rental.status in RENTAL_OPEN_STATUSES and rental.rental_end_date < today:
        return RENTAL_OVERDUE
    return rental.status


def overdue_rentals(today=None):
    today = as_day(today) if today is not None else date.today()
    with store_read('Overdue rentals'):
        return (Rental.query
                .filter(Rental.status.in_(RENTAL_OPEN_STATUSES), Rental.rental_end_date < today)
                .order_by(Rental.rental_end_date)
                .all())


def list_rentals(status=None, today=None):
    """Rentals newest first, filtered by stored status or by the derived overdue."""
    if status == RENTAL_OVERDUE:
        return overdue_rentals(today)
    query = Rental.query
    if status:
        query = query.filter_by(status=status)
    with store_read('Rental list'):
        return query.order_by(Rental.created_at.desc(), Rental.id.desc()).all()
