"""Sales: stock leaves the shop, money may come in over several payments."""
import logging

from shop.errors import NotFoundError, ValidationError
from shop.extensions import db
from shop.models.catalog import Product
from shop.models.rental import (
    Transaction, Payment, PAYMENT_METHODS, TX_SALE, TX_COMPLETED, TX_PARTIAL, TX_PENDING,
)
from shop.services.customers import find_or_create_customer
from shop.services.money import cents, check_amount, price_with_discount, remaining
from shop.services.session import unit_of_work

logger = logging.getLogger(__name__)


def record_sale(product_id, quantity, customer_name, customer_phone, customer_email=None,
                discount=0, paid_amount=None, payment_method='cash', agent=None, notes=None):
    """Sell ``quantity`` units of a product and return the transaction id."""
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError('The quantity must be a whole number.')
    if quantity < 1:
        raise ValidationError('The quantity must be at least 1.')
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f'Unknown payment method {payment_method!r}.')

    with unit_of_work('Sale'):
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f'Product {product_id} not found.')
        if product.stock < quantity:
            raise ValidationError(f'Only {product.stock} unit(s) of {product.name} in stock.')

        unit_price = cents(product.sale_price)
        discount_amount, total = price_with_discount(cents(unit_price * quantity), discount)
        paid = total if paid_amount is None else check_amount(paid_amount, 'The paid amount')
        if paid > total:
            raise ValidationError('The paid amount cannot exceed the total.')
        balance = remaining(total, paid)

        customer = find_or_create_customer(customer_name, customer_phone, customer_email)
        transaction = Transaction(
            type=TX_SALE,
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            unit_price=unit_price,
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
        product.stock = max(0, product.stock - quantity)
        db.session.flush()
        if paid > 0:
            db.session.add(Payment(
                transaction_id=transaction.id,
                customer_id=customer.id,
                amount=paid,
                payment_method=payment_method,
                agent_id=agent.id if agent else None,
                agent_name=agent.name if agent else None,
            ))

    logger.info('Sale %s: %d x product %s, total %.2f, status %s',
                transaction.id, quantity, product.id, total, transaction.status)
    return transaction.id


def record_transaction_payment(transaction_id, amount, method='cash', agent=None, notes=None):
    amount = cents(amount)
    if amount <= 0:
        raise ValidationError('The payment amount must be positive.')
    if method not in PAYMENT_METHODS:
        raise ValidationError(f'Unknown payment method {method!r}.')

    with unit_of_work('Transaction payment'):
        transaction = db.session.get(Transaction, transaction_id)
        if transaction is None:
            raise NotFoundError(f'Transaction {transaction_id} not found.')
        if transaction.rental is not None:
            raise ValidationError('Rental payments are recorded on the rental.')

        customer = find_or_create_customer(transaction.customer_name, transaction.customer_phone,
                                           transaction.customer_email)
        transaction.paid_amount = cents(cents(transaction.paid_amount) + amount)
        transaction.remaining_amount = remaining(transaction.total_amount, transaction.paid_amount)
        if transaction.status in (TX_PARTIAL, TX_PENDING, TX_COMPLETED):
            transaction.status = TX_PARTIAL if transaction.remaining_amount > 0 else TX_COMPLETED
        payment = Payment(
            transaction_id=transaction.id,
            customer_id=customer.id,
            amount=amount,
            payment_method=method,
            notes=notes,
            agent_id=agent.id if agent else None,
            agent_name=agent.name if agent else None,
        )
        db.session.add(payment)

    logger.info('Payment of %.2f on transaction %s, %.2f remaining',
                amount, transaction.id, transaction.remaining_amount)
    return payment
