import logging

from flask import Flask

from .config import EngineConfig
from .controllers.fleet import bp as fleet_bp
from .controllers.reservations import bp as reservations_bp
from .controllers.sync import bp as sync_bp
from .engine import ReservationEngine
from .exceptions import EngineError
from .extensions import init_engine
from .utils.api_response import api_error, engine_error


def create_app(config: EngineConfig | None = None, engine: ReservationEngine | None = None):
    """
    Build the HTTP app. Pass `engine` to serve an existing engine (tests use
    this with an in-memory store); otherwise one is built from `config`.
    """
    config = config or (engine.config if engine is not None else EngineConfig.from_env())
    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    app.config["DEBUG"] = config.debug
    app.config["TESTING"] = config.testing
    app.config["RENTAL_ENGINE"] = config

    configure_logging(app)
    init_engine(app, engine or ReservationEngine.from_config(config))

    app.register_blueprint(fleet_bp)
    app.register_blueprint(reservations_bp)
    app.register_blueprint(sync_bp)
    register_error_handlers(app)

    return app


def register_error_handlers(app):
    @app.errorhandler(EngineError)
    def handle_engine_error(exc):
        response = engine_error(exc)
        if response[1] >= 500:
            app.logger.error("Engine failure: %s", exc)
        return response

    @app.errorhandler(TimeoutError)
    def handle_timeout(exc):
        app.logger.error("Store call timed out: %s", exc)
        return api_error("Error: record store timed out", status=503, code="StoreTimeout")


def configure_logging(app):
    """Configure application logging."""
    if app.debug or app.testing:
        level = logging.DEBUG
    else:
        level = logging.INFO
    pkg_logger = logging.getLogger(__name__)
    if not pkg_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s"
        ))
        pkg_logger.addHandler(handler)
    pkg_logger.setLevel(level)
    app.logger.setLevel(level)
