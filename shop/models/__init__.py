# shop/models/__init__.py
from shop.models.user import User, ApiLog
from shop.models.catalog import Product, Customer
from shop.models.rental import Transaction, Rental, ReservationMark, Payment
