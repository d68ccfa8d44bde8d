from flask_wtf import FlaskForm
from wtforms import StringField, IntegerField, BooleanField, FloatField, TextAreaField, SelectField, PasswordField, DateField, DateTimeField
from wtforms.validators import DataRequired, Email, Optional, Length, NumberRange

PAYMENT_METHOD_CHOICES = [('cash', 'Cash'), ('card', 'Card'), ('transfer', 'Transfer')]


class ApiForm(FlaskForm):
    """JSON forms posted by the shop UI; the session cookie is the only credential."""
    class Meta:
        csrf = False

    def first_error(self):
        for field_name, messages in self.errors.items():
            return f'{field_name}: {messages[0]}'
        return None


class LoginForm(ApiForm):
    email = StringField('Email', validators=[DataRequired(), Email()])
    password = PasswordField('Password', validators=[DataRequired()])
    remember = BooleanField('Remember me')


class CustomerFieldsMixin:
    customer_name = StringField('Customer name', validators=[DataRequired(message='Customer name is required.')])
    customer_phone = StringField('Customer phone', validators=[DataRequired(message='Customer phone is required.'), Length(min=6, max=30)])
    customer_email = StringField('Customer email', validators=[Optional(), Email()])


# Rental booking: either rental_days or end_date (or both, if consistent)
class RentalForm(CustomerFieldsMixin, ApiForm):
    product_id = IntegerField('Product', validators=[DataRequired()])
    start_date = DateField('Start date', format='%Y-%m-%d', validators=[DataRequired()])
    rental_days = IntegerField('Rental days', validators=[Optional(), NumberRange(min=1)])
    end_date = DateField('End date', format='%Y-%m-%d', validators=[Optional()])
    discount = FloatField('Discount (%)', validators=[Optional(), NumberRange(min=0, max=100)], default=0)
    paid_amount = FloatField('Paid amount', validators=[Optional(), NumberRange(min=0)])
    deposit_amount = FloatField('Deposit', validators=[Optional(), NumberRange(min=0)], default=0)
    payment_method = SelectField('Payment method', choices=PAYMENT_METHOD_CHOICES, default='cash')
    notes = TextAreaField('Notes')


class RentalStatusForm(ApiForm):
    status = StringField('Status', validators=[DataRequired()])
    returned_at = DateTimeField('Returned at', format=['%Y-%m-%dT%H:%M:%S', '%Y-%m-%dT%H:%M', '%Y-%m-%d'], validators=[Optional()])
    release_dates = BooleanField('Release reserved dates on cancel', default=None)


class PaymentForm(ApiForm):
    amount = FloatField('Amount', validators=[DataRequired(), NumberRange(min=0.01)])
    payment_method = SelectField('Payment method', choices=PAYMENT_METHOD_CHOICES, default='cash')
    notes = TextAreaField('Notes')


class SaleForm(CustomerFieldsMixin, ApiForm):
    product_id = IntegerField('Product', validators=[DataRequired()])
    quantity = IntegerField('Quantity', validators=[Optional(), NumberRange(min=1)], default=1)
    discount = FloatField('Discount (%)', validators=[Optional(), NumberRange(min=0, max=100)], default=0)
    paid_amount = FloatField('Paid amount', validators=[Optional(), NumberRange(min=0)])
    payment_method = SelectField('Payment method', choices=PAYMENT_METHOD_CHOICES, default='cash')
    notes = TextAreaField('Notes')
