import logging
from collections import defaultdict
from datetime import date

from flask import current_app
from flask_mail import Message

from shop import create_app
from shop.extensions import mail
from shop.services.rentals import overdue_rentals

logger = logging.getLogger(__name__)


def build_overdue_report(today=None):
    """Plain-text list of open rentals past their end date, grouped by product.

    Returns None when nothing is overdue.
    """
    today = today or date.today()
    by_product = defaultdict(list)
    for rental in overdue_rentals(today):
        late_days = (today - rental.rental_end_date).days
        by_product[rental.product.name].append(
            f"- {rental.customer_name} ({rental.customer_phone}) • due {rental.rental_end_date:%d/%m/%Y}, "
            f"{late_days} day(s) late • {rental.remaining_amount:.2f} DA outstanding"
        )

    if not by_product:
        return None

    lines = [f"Overdue rentals on {today:%d/%m/%Y}:", ""]
    for product_name in sorted(by_product):
        lines.append(f"{product_name}:")
        lines.extend(by_product[product_name])
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


def send_overdue_report(today=None):
    """Daily job: e-mail the overdue rentals report to OVERDUE_REPORT_RECIPIENTS."""
    today = today or date.today()
    report = build_overdue_report(today)
    if report is None:
        logger.info('No overdue rentals on %s', today)
        return None

    recipients = current_app.config.get('OVERDUE_REPORT_RECIPIENTS') or []
    if not recipients:
        logger.warning('No OVERDUE_REPORT_RECIPIENTS configured, report not sent:\n%s', report)
        return report

    msg = Message(subject=f'Overdue rentals - {today:%d/%m/%Y}', recipients=recipients, body=report)
    mail.send(msg)
    logger.info('Overdue report sent to %s', ', '.join(recipients))
    return report


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        send_overdue_report()
