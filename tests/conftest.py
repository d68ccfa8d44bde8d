from datetime import date, timedelta

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from config import TestConfig
from shop import create_app
from shop.extensions import db as _db
from shop.models import User, Product, Rental


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def agent(db):
    user = User(name='Amina', email='amina@boutique.dz', role='agent')
    user.set_password('secret123')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def product(db):
    item = Product(name='Caftan brodé', category='Caftan', size='M', sale_price=20000,
                   rental_price_per_day=1000, stock=3)
    db.session.add(item)
    db.session.commit()
    return item


@pytest.fixture
def other_product(db):
    item = Product(name='Karakou velours', sale_price=30000, rental_price_per_day=1500, stock=1)
    db.session.add(item)
    db.session.commit()
    return item


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def logged_client(client, agent):
    response = client.post('/login', json={'email': 'amina@boutique.dz', 'password': 'secret123'})
    assert response.status_code == 200
    return client


@pytest.fixture
def bare_rental(db):
    """Insert a rental row without calendar days, for ledger-level tests."""
    def _make(product, start=date(2025, 1, 10), days=2):
        rental = Rental(product_id=product.id, customer_name='Test', customer_phone='0555000000',
                        rental_start_date=start, rental_end_date=start + timedelta(days=days),
                        rental_days=days, daily_rate=product.rental_price_per_day,
                        total_amount=product.rental_price_per_day * days)
        db.session.add(rental)
        db.session.commit()
        return rental
    return _make


@pytest.fixture
def book(app):
    """Book a rental with a default customer."""
    from shop.services.rentals import book_rental

    def _book(product, start, days, phone='0555123456', **kwargs):
        kwargs.setdefault('customer_name', 'Lina')
        return book_rental(product_id=product.id, customer_phone=phone, start_date=start,
                           rental_days=days, **kwargs)
    return _book


@pytest.fixture
def store_down(monkeypatch):
    """Make primary-key lookups of the given models fail as if the connection dropped."""
    def _down(*models):
        original = Session.get

        def get(self, entity, ident, *args, **kwargs):
            if entity in models:
                raise OperationalError('SELECT', {}, Exception('connection lost'))
            return original(self, entity, ident, *args, **kwargs)
        monkeypatch.setattr(Session, 'get', get)
    return _down
