import logging

from flask import Flask
from config import Config
from shop.extensions import db, bcrypt, login_manager, migrate, mail


def _configure_logging(app):
    """Single-line logs to stdout, level taken from LOG_LEVEL."""
    level = app.config.get('LOG_LEVEL', 'INFO')
    app.logger.setLevel(level)
    root = logging.getLogger()
    root.setLevel(level)

    # avoid duplicate handlers in reloaders
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            fmt='%(asctime)s %(levelname)s [%(name)s] %(message)s',
            datefmt='%Y-%m-%dT%H:%M:%S%z',
        ))
        root.addHandler(handler)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    _configure_logging(app)

    # Extensions
    db.init_app(app)
    bcrypt.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)

    # Models must be imported before create_all / migrations see the metadata
    from shop import models  # noqa: F401

    from shop.errors import register_error_handlers
    register_error_handlers(app)

    # Blueprints
    from shop.routes.auth import auth as auth_blueprint
    app.register_blueprint(auth_blueprint)

    from shop.routes.main import main as main_blueprint
    app.register_blueprint(main_blueprint, url_prefix='/api')

    return app
