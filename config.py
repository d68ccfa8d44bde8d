import os
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

# Project base directory
basedir = os.path.abspath(os.path.dirname(__file__))


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'change-me'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///' + os.path.join(basedir, 'shop.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # Cancelling a rental keeps its calendar days reserved unless this is on
    RELEASE_ON_CANCEL = _env_flag('RELEASE_ON_CANCEL')

    # --- E-mail (overdue report) ---
    MAIL_SERVER = os.environ.get('MAIL_SERVER', 'smtp.gmail.com')
    MAIL_PORT = int(os.environ.get('MAIL_PORT', 587))
    MAIL_USE_TLS = True
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER') or MAIL_USERNAME
    OVERDUE_REPORT_RECIPIENTS = [
        r.strip() for r in os.environ.get('OVERDUE_REPORT_RECIPIENTS', '').split(',') if r.strip()
    ]


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    RELEASE_ON_CANCEL = False
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = 'shop@boutique.dz'
    OVERDUE_REPORT_RECIPIENTS = []
    BCRYPT_LOG_ROUNDS = 4
