from shop.errors import ValidationError


def cents(value):
    return round(float(value or 0), 2)


def price_with_discount(gross, discount_percent):
    """Return (discount_amount, total) for a gross price and a 0-100 discount."""
    discount_percent = float(discount_percent or 0)
    if discount_percent < 0 or discount_percent > 100:
        raise ValidationError('The discount must be between 0 and 100%.')
    discount_amount = cents(gross * discount_percent / 100)
    return discount_amount, cents(max(0.0, gross - discount_amount))


def remaining(total, paid):
    """Balance still due; never negative."""
    return cents(max(0.0, cents(total) - cents(paid)))


def check_amount(value, label):
    amount = cents(value)
    if amount < 0:
        raise ValidationError(f'{label} cannot be negative.')
    return amount
