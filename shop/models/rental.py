from shop.extensions import db
from shop.services.dates import utcnow

# --- Status values ---
MARK_RESERVED = 'reserved'
MARK_AVAILABLE = 'available'

RENTAL_ACTIVE = 'active'
RENTAL_PARTIAL = 'partial'
RENTAL_RETURNED = 'returned'
RENTAL_CANCELLED = 'cancelled'
RENTAL_OVERDUE = 'overdue'  # derived for display, never stored
RENTAL_OPEN_STATUSES = (RENTAL_ACTIVE, RENTAL_PARTIAL)
RENTAL_TERMINAL_STATUSES = (RENTAL_RETURNED, RENTAL_CANCELLED)

TX_SALE = 'sale'
TX_RENTAL = 'rental'
TX_COMPLETED = 'completed'
TX_PENDING = 'pending'
TX_PARTIAL = 'partial'
TX_RETURNED = 'returned'
TX_CANCELLED = 'cancelled'

PAYMENT_METHODS = ('cash', 'card', 'transfer')


class Transaction(db.Model):
    __tablename__ = 'transactions'
    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(10), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    product_name = db.Column(db.String(150))
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Float, nullable=False)
    total_amount = db.Column(db.Float, nullable=False)
    discount = db.Column(db.Float, default=0.0)
    discount_amount = db.Column(db.Float, default=0.0)
    paid_amount = db.Column(db.Float, default=0.0)
    remaining_amount = db.Column(db.Float, default=0.0)
    customer_name = db.Column(db.String(150), nullable=False)
    customer_phone = db.Column(db.String(30), nullable=False, index=True)
    customer_email = db.Column(db.String(150))
    status = db.Column(db.String(20), nullable=False, default=TX_COMPLETED, index=True)
    agent_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    agent_name = db.Column(db.String(150))
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    rental = db.relationship('Rental', backref='transaction', uselist=False)

    def __repr__(self):
        return f"Transaction({self.type}, product={self.product_id}, total={self.total_amount}, status={self.status})"


class Rental(db.Model):
    __tablename__ = 'rentals'
    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey('transactions.id'), unique=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, index=True)
    customer_name = db.Column(db.String(150), nullable=False)
    customer_phone = db.Column(db.String(30), nullable=False, index=True)
    customer_email = db.Column(db.String(150))
    rental_start_date = db.Column(db.Date, nullable=False)
    rental_end_date = db.Column(db.Date, nullable=False, index=True)
    rental_days = db.Column(db.Integer, nullable=False)
    # Snapshot of the product rate at booking time
    daily_rate = db.Column(db.Float, nullable=False)
    total_amount = db.Column(db.Float, nullable=False)
    discount = db.Column(db.Float, default=0.0)
    discount_amount = db.Column(db.Float, default=0.0)
    paid_amount = db.Column(db.Float, default=0.0)
    remaining_amount = db.Column(db.Float, default=0.0)
    deposit_amount = db.Column(db.Float, default=0.0)
    status = db.Column(db.String(20), nullable=False, default=RENTAL_ACTIVE, index=True)
    agent_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    agent_name = db.Column(db.String(150))
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)
    returned_at = db.Column(db.DateTime)

    marks = db.relationship('ReservationMark', backref='rental', lazy='dynamic')

    def __repr__(self):
        return (f"Rental(product={self.product_id}, {self.rental_start_date} -> {self.rental_end_date}, "
                f"status={self.status})")


class ReservationMark(db.Model):
    """One calendar day of a product held by a rental."""
    __tablename__ = 'rental_calendar'
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    rental_id = db.Column(db.Integer, db.ForeignKey('rentals.id'), nullable=False, index=True)
    reserved_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=MARK_RESERVED)
    created_at = db.Column(db.DateTime, default=utcnow)

    # A day can be held by one rental at a time; released marks stay for history
    __table_args__ = (
        db.Index('ix_calendar_product_day', 'product_id', 'reserved_date'),
        db.Index('uq_calendar_reserved_day', 'product_id', 'reserved_date', unique=True,
                 sqlite_where=db.text("status = 'reserved'"),
                 postgresql_where=db.text("status = 'reserved'")),
    )

    def __repr__(self):
        return f"ReservationMark(product={self.product_id}, {self.reserved_date}, {self.status})"


class Payment(db.Model):
    __tablename__ = 'payments'
    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey('transactions.id'), nullable=True)
    rental_id = db.Column(db.Integer, db.ForeignKey('rentals.id'), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    payment_method = db.Column(db.String(10), nullable=False, default='cash')
    payment_date = db.Column(db.DateTime, default=utcnow, nullable=False)
    notes = db.Column(db.Text)
    agent_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    agent_name = db.Column(db.String(150))
    created_at = db.Column(db.DateTime, default=utcnow)

    def __repr__(self):
        return f"Payment({self.amount} {self.payment_method}, customer={self.customer_id})"
