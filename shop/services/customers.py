import re

from shop.errors import NotFoundError, ValidationError
from shop.extensions import db
from shop.models.catalog import Customer
from shop.models.rental import Transaction, Rental, Payment
from shop.services.session import store_read

_PHONE_SEPARATORS = re.compile(r'[\s\-.()/]')


def normalize_phone(phone):
    """Strip spaces and separators so '0555 12-34-56' and '0555123456' match."""
    if not phone:
        return ''
    return _PHONE_SEPARATORS.sub('', phone.strip())


def find_customer_by_phone(phone):
    phone = normalize_phone(phone)
    if not phone:
        return None
    return Customer.query.filter_by(phone=phone).first()


def find_or_create_customer(name, phone, email=None):
    """Return the customer owning ``phone``, creating it on first contact.

    Runs inside the caller's unit of work; nothing is committed here.
    """
    normalized = normalize_phone(phone)
    if not name or not name.strip() or not normalized:
        raise ValidationError('Customer name and phone are required.')
    customer = Customer.query.filter_by(phone=normalized).first()
    if customer is None:
        customer = Customer(name=name.strip(), phone=normalized, email=email or None)
        db.session.add(customer)
        db.session.flush()
    return customer


def customer_history(customer_id):
    with store_read('Customer history'):
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError(f'Customer {customer_id} not found.')
        transactions = (Transaction.query.filter_by(customer_phone=customer.phone)
                        .order_by(Transaction.created_at.desc()).all())
        rentals = (Rental.query.filter_by(customer_phone=customer.phone)
                   .order_by(Rental.created_at.desc()).all())
        payments = customer.payments.order_by(Payment.payment_date.desc()).all()
    return {'customer': customer, 'transactions': transactions, 'rentals': rentals, 'payments': payments}
