from shop.extensions import db
from shop.services.dates import utcnow


class Product(db.Model):
    __tablename__ = 'products'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    category = db.Column(db.String(100))
    size = db.Column(db.String(20))
    color = db.Column(db.String(50))
    brand = db.Column(db.String(100))
    purchase_price = db.Column(db.Float, default=0.0)
    sale_price = db.Column(db.Float, nullable=False, default=0.0)
    rental_price_per_day = db.Column(db.Float, nullable=False, default=0.0)
    stock = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.Text)
    barcode = db.Column(db.String(64), unique=True)
    is_available_for_rental = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    rentals = db.relationship('Rental', backref='product', lazy='dynamic')

    def __repr__(self):
        return f"Product('{self.name}', stock={self.stock})"


class Customer(db.Model):
    """Customers are matched by phone; their details are copied onto each sale or rental."""
    __tablename__ = 'customers'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    phone = db.Column(db.String(30), unique=True, nullable=False, index=True)
    email = db.Column(db.String(150))
    address = db.Column(db.Text)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    payments = db.relationship('Payment', backref='customer', lazy='dynamic')

    def __repr__(self):
        return f"Customer('{self.name}', '{self.phone}')"
