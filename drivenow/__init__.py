import logging
from typing import Mapping, Optional

from flask import Flask
from werkzeug.exceptions import HTTPException

from .cli import register_cli
from .config import DefaultConfig
from .controllers.auth import bp as auth_bp
from .controllers.invoices import bp as invoices_bp
from .controllers.payments import bp as payments_bp
from .controllers.promotions import bp as promotions_bp
from .controllers.rentals import bp as rentals_bp
from .exceptions import DriveNowError, ValidationError
from .logs import configure_logging, current_correlation_id, init_request_logging
from .models.store import Store
from .utils.responses import fail

logger = logging.getLogger(__name__)


def create_app(config: Optional[Mapping] = None):
    app = Flask(__name__)
    app.config.from_object(DefaultConfig)
    app.config.from_prefixed_env("DRIVENOW")
    if config:
        app.config.update(config)
    # JSON bodies keep the field order of to_dict()
    app.json.sort_keys = False

    configure_logging(app.config["LOG_LEVEL"])
    app.extensions["drivenow.store"] = Store(app.config["DATA_PATH"])

    app.register_blueprint(auth_bp)
    app.register_blueprint(rentals_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(promotions_bp)
    init_request_logging(app)
    register_error_handlers(app)
    register_cli(app)

    return app


def register_error_handlers(app: Flask):
    @app.errorhandler(DriveNowError)
    def _domain_error(e: DriveNowError):
        errors = e.errors if isinstance(e, ValidationError) else None
        logger.info("%s (%s): %s", type(e).__name__, e.code, e.message)
        return fail(e.message, e.code, e.status_code, errors)

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return fail(e.description or e.name, e.name.replace(" ", ""), e.code or 500)

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        cid = current_correlation_id()
        logger.exception("Unhandled error (correlation id %s)", cid)
        return fail(f"Error: unexpected failure (correlation id {cid})", "Unexpected", 500)
