"""
logging_config.py - Configuración de logging (JSON en producción)
"""

import logging
import logging.config
import sys

from pythonjsonlogger.json import JsonFormatter


class ServiceJsonFormatter(JsonFormatter):
    """Formatter JSON que añade el nombre del servicio a cada línea"""

    service_name = "License Server"

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("service", self.service_name)


def get_logging_config(level: str = "INFO", fmt: str = "json") -> dict:
    """Diccionario para logging.config.dictConfig"""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": ServiceJsonFormatter,
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
            },
            "text": {
                "format": "{asctime} {levelname} {name}: {message}",
                "style": "{",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": fmt if fmt in ("json", "text") else "json",
                "stream": sys.stdout,
            },
        },
        "root": {
            "handlers": ["console"],
            "level": level.upper(),
        },
        "loggers": {
            "sqlalchemy.engine": {"level": "WARNING"},
            "werkzeug": {"level": "INFO"},
        },
    }


def configure_logging(app) -> None:
    ServiceJsonFormatter.service_name = app.config.get("SERVICE_NAME", "License Server")
    logging.config.dictConfig(get_logging_config(
        app.config.get("LOG_LEVEL", "INFO"),
        app.config.get("LOG_FORMAT", "json"),
    ))
