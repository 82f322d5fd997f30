"""
utils.py - Funciones de utilidad
"""

import hmac
import math
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Union

from dateutil.relativedelta import relativedelta
from flask import current_app
from user_agents import parse

from errors import ValidationError

# Valor estructurado arbitrario (huella del dispositivo, metadata de uso)
JSONValue = Union[None, bool, int, float, str, List["JSONValue"], Dict[str, "JSONValue"]]

# Límites de las columnas en base de datos
MAX_INTEGER = 2**31 - 1
MAX_IDENTIFIER_LENGTH = 255
MAX_KEY_LENGTH = 64
MAX_DURATION_MONTHS = 1200


def generate_key(prefix: str = "BABYLON") -> str:
    """Genera una clave PREFIJO-XXXX-XXXX-XXXX con bytes criptográficamente aleatorios"""
    groups = [secrets.token_bytes(2).hex().upper() for _ in range(3)]
    return "-".join([prefix.upper()] + groups)


def utcnow() -> datetime:
    """Hora actual en UTC, sin tzinfo (así se guarda en la base de datos)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_months(start: datetime, months: int) -> datetime:
    """Suma meses de calendario; el día se ajusta al último del mes si no existe"""
    return start + relativedelta(months=months)


def parse_positive_int(value, field_name: str, maximum: int = MAX_INTEGER) -> int:
    """Convierte a entero entre 1 y maximum o lanza ValidationError"""
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a positive integer")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{field_name} must be a positive integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a positive integer")
    if number < 1:
        raise ValidationError(f"{field_name} must be a positive integer")
    if number > maximum:
        raise ValidationError(f"{field_name} must be at most {maximum}")
    return number


def coerce_json_value(value: Any, path: str = "value") -> JSONValue:
    """
    Copia profunda de un valor compatible con JSON.

    Las tuplas se convierten en listas. Claves no textuales, floats no
    finitos y cualquier otro tipo producen ValidationError.
    """
    if value is None or isinstance(value, (bool, str, int)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(f"{path}: non-finite number")
        return value
    if isinstance(value, Mapping):
        result = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValidationError(f"{path}: keys must be strings")
            result[key] = coerce_json_value(item, f"{path}.{key}")
        return result
    if isinstance(value, (list, tuple)):
        return [coerce_json_value(item, f"{path}[{i}]") for i, item in enumerate(value)]
    raise ValidationError(f"{path}: unsupported type {type(value).__name__}")


def coerce_mapping(value: Any, path: str = "value") -> Dict[str, JSONValue]:
    """Como coerce_json_value pero exige un diccionario; None equivale a {}"""
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValidationError(f"{path} must be an object")
    return coerce_json_value(value, path)


def check_length(value: str, field_name: str, maximum: int = MAX_IDENTIFIER_LENGTH) -> str:
    """Lanza ValidationError si el texto no cabe en su columna"""
    if len(value) > maximum:
        raise ValidationError(f"{field_name} must be at most {maximum} characters")
    return value


def get_device_info(user_agent_string: str) -> str:
    """Extrae información legible del user agent"""
    if not user_agent_string:
        return ""
    try:
        ua = parse(user_agent_string)
        return f"{ua.os.family} {ua.os.version_string} - {ua.browser.family}".strip()
    except Exception:
        return user_agent_string[:100]


def get_client_ip(request) -> str:
    """
    Extrae la IP real del cliente, manejando proxies y CDNs.

    Orden de prioridad:
    1. CF-Connecting-IP (Cloudflare)
    2. X-Real-IP (Nginx)
    3. X-Forwarded-For (primer IP en la cadena)
    4. request.remote_addr (fallback)
    """
    if request.headers.get('CF-Connecting-IP'):
        return request.headers.get('CF-Connecting-IP')

    if request.headers.get('X-Real-IP'):
        return request.headers.get('X-Real-IP')

    # "client, proxy1, proxy2": sólo nos interesa la primera
    if request.headers.get('X-Forwarded-For'):
        return request.headers.get('X-Forwarded-For').split(',')[0].strip()

    return request.remote_addr or "Unknown"


def require_admin(req) -> bool:
    """Verifica el token Bearer de administración"""
    expected = current_app.config.get("ADMIN_TOKEN") or ""
    header = req.headers.get("Authorization", "")
    if not expected or not header.startswith("Bearer "):
        return False
    return hmac.compare_digest(header[len("Bearer "):].encode(), expected.encode())
