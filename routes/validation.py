"""
routes/validation.py - Endpoints de validación de licencias (API pública)
"""

import logging

from flask import Blueprint, request, jsonify

from activation import Reason
from rate_limit import activation_limit, limiter
from services import get_services
from utils import get_client_ip, get_device_info

logger = logging.getLogger(__name__)

bp = Blueprint('validation', __name__)


def _payload():
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}


def _text(data, name):
    value = data.get(name)
    return value.strip() if isinstance(value, str) else ""


def _respond(result):
    status = 503 if result.reason is Reason.TRANSIENT_ERROR else 200
    return jsonify(result.to_dict()), status


@bp.route("/api/validate-license", methods=["POST"])
def validate_license():
    """Valida la activación de un dispositivo"""
    data      = _payload()
    key       = _text(data, "license_key").upper()
    device_id = _text(data, "device_id")

    logger.debug(f"Validating license {key} for device {device_id} from {get_client_ip(request)}")
    try:
        result = get_services().engine.validate(key, device_id)
    except Exception:
        logger.exception(f"Validation error for license {key}")
        return jsonify({"valid": False, "message": "Server error during validation"}), 500
    return _respond(result)


@bp.route("/api/activate-license", methods=["POST"])
@limiter.limit(activation_limit)
def activate_license():
    """Activa la licencia en un dispositivo"""
    data        = _payload()
    key         = _text(data, "license_key").upper()
    device_id   = _text(data, "device_id")
    fingerprint = data.get("device_fingerprint")

    logger.debug(f"Activating license {key} for device {device_id} from {get_client_ip(request)}")
    try:
        result = get_services().engine.activate(key, device_id, fingerprint)
    except Exception:
        logger.exception(f"Activation error for license {key}")
        return jsonify({"valid": False, "message": "Server error during activation"}), 500
    return _respond(result)


@bp.route("/api/record-usage", methods=["POST"])
def record_usage():
    """Registra un evento de uso; nunca falla de cara al cliente"""
    data = _payload()
    result = get_services().usage.record(
        data.get("license_key"),
        data.get("device_id"),
        data.get("action"),
        data.get("metadata"),
        ip_address=get_client_ip(request),
        client_info=get_device_info(request.headers.get('User-Agent', '')),
    )
    return jsonify(result.to_dict()), 200
