"""
app.py - Aplicación principal Flask
"""

import logging
import os
import time

from flask import Flask
from flask_cors import CORS

from config import config, Config
from logging_config import configure_logging
from models import db
from rate_limit import limiter, rate_limit_exceeded
from services import build_services

logger = logging.getLogger(__name__)


def create_app(config_name='default', overrides=None, store=None):
    """Factory para crear la aplicación Flask"""
    app = Flask(__name__)

    # Cargar configuración
    app.config.from_object(config[config_name])
    if overrides:
        app.config.update(overrides)
    Config.init_app(app)
    configure_logging(app)

    app.config["STARTED_AT"] = time.monotonic()

    # Inicializar base de datos sólo si el almacén la usa
    if app.config["STORE_BACKEND"] == "sqlalchemy":
        db.init_app(app)
        with app.app_context():
            db.create_all()

    build_services(app, store)

    limiter.init_app(app)
    app.register_error_handler(429, rate_limit_exceeded)
    CORS(app, origins=app.config["CORS_ORIGINS"])

    # Registrar blueprints
    from routes.validation import bp as validation_bp
    from routes.admin_api import bp as admin_api_bp
    from routes.analytics import bp as analytics_bp
    from routes.health import bp as health_bp

    app.register_blueprint(validation_bp)
    app.register_blueprint(admin_api_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(health_bp)

    logger.info(f"License server ready (store: {app.config['STORE_BACKEND']})")
    return app


if __name__ == "__main__":
    app = create_app(os.getenv('FLASK_ENV', 'development'))
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "3000")), debug=False)
