"""
config.py - Configuración centralizada del servidor
"""

import os

from dotenv import load_dotenv
from sqlalchemy.pool import NullPool

load_dotenv()


class Config:
    """Configuración base"""
    # Base de datos
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///licenses.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {'poolclass': NullPool}

    # Almacén: "sqlalchemy" o "memory"
    STORE_BACKEND = os.getenv("STORE_BACKEND", "sqlalchemy")
    STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))

    # Seguridad
    ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")

    # Límites por IP (Flask-Limiter) y CORS
    RATELIMIT_ENABLED = os.getenv("RATELIMIT_ENABLED", "true").lower() != "false"
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_APPLICATION = os.getenv("API_RATE_LIMIT", "100 per 15 minutes")
    RATELIMIT_HEADERS_ENABLED = True
    ACTIVATION_RATE_LIMIT = os.getenv("ACTIVATION_RATE_LIMIT", "5 per hour")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Configuración de licencias
    LICENSE_PREFIX = os.getenv("LICENSE_PREFIX", "BABYLON").upper()
    SERVICE_NAME = os.getenv("SERVICE_NAME", "License Server")

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "json")

    @staticmethod
    def init_app(app):
        """Inicialización de la aplicación"""
        if not app.config.get("ADMIN_TOKEN"):
            raise RuntimeError("Missing required environment variable ADMIN_TOKEN")

        uri = app.config["SQLALCHEMY_DATABASE_URI"]
        if uri.startswith("postgres://"):
            uri = uri.replace("postgres://", "postgresql://", 1)
            app.config["SQLALCHEMY_DATABASE_URI"] = uri

        # El timeout del almacén se traduce al driver
        timeout = app.config["STORE_TIMEOUT_SECONDS"]
        options = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
        connect_args = dict(options.get("connect_args") or {})
        if uri.startswith("sqlite"):
            connect_args.setdefault("timeout", timeout)
        elif uri.startswith("postgresql"):
            connect_args.setdefault("connect_timeout", max(1, int(timeout)))
            connect_args.setdefault("options", f"-c statement_timeout={int(timeout * 1000)}")
        options["connect_args"] = connect_args
        if options.get("poolclass") is not NullPool:
            options.setdefault("pool_timeout", timeout)
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = options


class DevelopmentConfig(Config):
    """Configuración de desarrollo"""
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "text")


class ProductionConfig(Config):
    """Configuración de producción"""
    DEBUG = False


class TestingConfig(Config):
    """Configuración de tests"""
    TESTING = True
    ADMIN_TOKEN = "test-admin-token"
    STORE_BACKEND = "memory"
    STORE_TIMEOUT_SECONDS = 2.0
    RATELIMIT_ENABLED = False
    LOG_FORMAT = "text"
    LOG_LEVEL = "DEBUG"


# Configuración por defecto
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': ProductionConfig
}
