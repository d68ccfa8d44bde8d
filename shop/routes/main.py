from datetime import date

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from shop.errors import NotFoundError, ValidationError
from shop.extensions import db
from shop.forms.forms import RentalForm, RentalStatusForm, PaymentForm, SaleForm
from shop.models.catalog import Product
from shop.routes import json_formdata
from shop.services import availability, rentals, sales
from shop.services.audit import log_event
from shop.services.customers import customer_history
from shop.services.dates import parse_day, parse_month
from shop.services.session import store_read

main = Blueprint('main', __name__)


# --- Serializers ---
def _iso(value):
    return value.isoformat() if value else None


def rental_to_dict(rental, today=None):
    return {
        'id': rental.id,
        'transaction_id': rental.transaction_id,
        'product_id': rental.product_id,
        'product_name': rental.product.name if rental.product else None,
        'customer_name': rental.customer_name,
        'customer_phone': rental.customer_phone,
        'customer_email': rental.customer_email,
        'rental_start_date': _iso(rental.rental_start_date),
        'rental_end_date': _iso(rental.rental_end_date),
        'rental_days': rental.rental_days,
        'daily_rate': rental.daily_rate,
        'total_amount': rental.total_amount,
        'discount': rental.discount,
        'discount_amount': rental.discount_amount,
        'paid_amount': rental.paid_amount,
        'remaining_amount': rental.remaining_amount,
        'deposit_amount': rental.deposit_amount,
        'status': rental.status,
        'display_status': rentals.display_status(rental, today),
        'agent_name': rental.agent_name,
        'notes': rental.notes,
        'created_at': _iso(rental.created_at),
        'returned_at': _iso(rental.returned_at),
    }


def transaction_to_dict(tx):
    return {
        'id': tx.id,
        'type': tx.type,
        'product_id': tx.product_id,
        'product_name': tx.product_name,
        'quantity': tx.quantity,
        'unit_price': tx.unit_price,
        'total_amount': tx.total_amount,
        'discount': tx.discount,
        'discount_amount': tx.discount_amount,
        'paid_amount': tx.paid_amount,
        'remaining_amount': tx.remaining_amount,
        'customer_name': tx.customer_name,
        'customer_phone': tx.customer_phone,
        'customer_email': tx.customer_email,
        'status': tx.status,
        'agent_name': tx.agent_name,
        'created_at': _iso(tx.created_at),
    }


def payment_to_dict(payment):
    return {
        'id': payment.id,
        'transaction_id': payment.transaction_id,
        'rental_id': payment.rental_id,
        'customer_id': payment.customer_id,
        'amount': payment.amount,
        'payment_method': payment.payment_method,
        'payment_date': _iso(payment.payment_date),
        'notes': payment.notes,
        'agent_name': payment.agent_name,
    }


def _get_product(product_id):
    with store_read('Product lookup'):
        product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f'Product {product_id} not found.')
    return product


def _require_valid(form):
    if not form.validate():
        raise ValidationError(form.first_error())


# --- Availability ---
@main.route('/products/<int:product_id>/availability')
@login_required
def check_product_availability(product_id):
    _get_product(product_id)
    start_str, end_str = request.args.get('start'), request.args.get('end')
    if not start_str or not end_str:
        raise ValidationError('Both start and end dates are required.')
    start, end = parse_day(start_str), parse_day(end_str)
    return jsonify({
        'product_id': product_id,
        'start': start.isoformat(),
        'end': end.isoformat(),
        'available': availability.is_range_available(product_id, start, end),
    })


@main.route('/products/<int:product_id>/calendar')
@login_required
def get_product_availability(product_id):
    _get_product(product_id)
    month_str = request.args.get('month')
    month = parse_month(month_str) if month_str else date.today()
    return jsonify(availability.monthly_availability(product_id, month).to_dict())


# --- Rentals ---
@main.route('/rentals', methods=['GET'])
@login_required
def list_rentals():
    status = request.args.get('status') or None
    today = date.today()
    return jsonify([rental_to_dict(r, today) for r in rentals.list_rentals(status, today)])


@main.route('/rentals/<int:rental_id>', methods=['GET'])
@login_required
def get_rental(rental_id):
    return jsonify(rental_to_dict(rentals.get_rental(rental_id)))


@main.route('/rentals', methods=['POST'])
@login_required
def add_rental():
    form = RentalForm(formdata=json_formdata())
    _require_valid(form)
    try:
        rental_id = rentals.book_rental(
            product_id=form.product_id.data,
            customer_name=form.customer_name.data,
            customer_phone=form.customer_phone.data,
            customer_email=form.customer_email.data or None,
            start_date=form.start_date.data,
            rental_days=form.rental_days.data,
            end_date=form.end_date.data,
            discount=form.discount.data or 0,
            paid_amount=form.paid_amount.data,
            deposit_amount=form.deposit_amount.data or 0,
            payment_method=form.payment_method.data,
            agent=current_user,
            notes=form.notes.data or None,
        )
    except Exception as e:
        log_event('Rental booking', 'FAILURE',
                  {'product_id': form.product_id.data, 'start_date': form.start_date.data, 'error': str(e)},
                  user_id=current_user.id, ip_address=request.remote_addr)
        raise

    log_event('Rental booking', 'SUCCESS',
              {'rental_id': rental_id, 'product_id': form.product_id.data, 'start_date': form.start_date.data},
              user_id=current_user.id, ip_address=request.remote_addr)
    return jsonify({'success': True, 'rental_id': rental_id,
                    'rental': rental_to_dict(rentals.get_rental(rental_id))}), 201


@main.route('/rentals/<int:rental_id>/status', methods=['POST'])
@login_required
def update_rental_status(rental_id):
    form = RentalStatusForm(formdata=json_formdata())
    _require_valid(form)
    release = form.release_dates.data if form.release_dates.raw_data else None
    rental = rentals.update_status(rental_id, form.status.data, returned_at=form.returned_at.data,
                                   release_on_cancel=release)
    log_event('Rental status', 'SUCCESS', {'rental_id': rental_id, 'status': form.status.data},
              user_id=current_user.id, ip_address=request.remote_addr)
    return jsonify({'success': True, 'rental': rental_to_dict(rental)})


@main.route('/rentals/<int:rental_id>/payments', methods=['POST'])
@login_required
def add_rental_payment(rental_id):
    form = PaymentForm(formdata=json_formdata())
    _require_valid(form)
    payment = rentals.record_payment(rental_id, form.amount.data, method=form.payment_method.data,
                                     agent=current_user, notes=form.notes.data or None)
    log_event('Rental payment', 'SUCCESS', {'rental_id': rental_id, 'amount': form.amount.data},
              user_id=current_user.id, ip_address=request.remote_addr)
    return jsonify({'success': True, 'payment': payment_to_dict(payment),
                    'rental': rental_to_dict(rentals.get_rental(rental_id))}), 201


# --- Sales ---
@main.route('/sales', methods=['POST'])
@login_required
def add_sale():
    form = SaleForm(formdata=json_formdata())
    _require_valid(form)
    transaction_id = sales.record_sale(
        product_id=form.product_id.data,
        quantity=form.quantity.data or 1,
        customer_name=form.customer_name.data,
        customer_phone=form.customer_phone.data,
        customer_email=form.customer_email.data or None,
        discount=form.discount.data or 0,
        paid_amount=form.paid_amount.data,
        payment_method=form.payment_method.data,
        agent=current_user,
        notes=form.notes.data or None,
    )
    log_event('Sale', 'SUCCESS', {'transaction_id': transaction_id, 'product_id': form.product_id.data},
              user_id=current_user.id, ip_address=request.remote_addr)
    return jsonify({'success': True, 'transaction_id': transaction_id}), 201


@main.route('/transactions/<int:transaction_id>/payments', methods=['POST'])
@login_required
def add_transaction_payment(transaction_id):
    form = PaymentForm(formdata=json_formdata())
    _require_valid(form)
    payment = sales.record_transaction_payment(transaction_id, form.amount.data, method=form.payment_method.data,
                                               agent=current_user, notes=form.notes.data or None)
    log_event('Transaction payment', 'SUCCESS', {'transaction_id': transaction_id, 'amount': form.amount.data},
              user_id=current_user.id, ip_address=request.remote_addr)
    return jsonify({'success': True, 'payment': payment_to_dict(payment)}), 201


# --- Customers ---
@main.route('/customers/<int:customer_id>/history')
@login_required
def get_customer_history(customer_id):
    history = customer_history(customer_id)
    customer = history['customer']
    today = date.today()
    return jsonify({
        'customer': {'id': customer.id, 'name': customer.name, 'phone': customer.phone, 'email': customer.email},
        'transactions': [transaction_to_dict(t) for t in history['transactions']],
        'rentals': [rental_to_dict(r, today) for r in history['rentals']],
        'payments': [payment_to_dict(p) for p in history['payments']],
    })
