"""
routes/admin_api.py - Endpoints de administración (API JSON)
"""

import logging

from flask import Blueprint, request, jsonify

from errors import (
    DuplicateKeyError,
    LicensingError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from services import get_services
from utils import require_admin

logger = logging.getLogger(__name__)

bp = Blueprint('admin_api', __name__)

ERROR_STATUS = {
    ValidationError:     400,
    NotFoundError:       404,
    DuplicateKeyError:   409,
    TransientStoreError: 503,
}


def _error(exc: LicensingError):
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500)
    return jsonify({"success": False, "error": exc.message, "code": exc.code}), status


def _unauthorized():
    return jsonify({"error": "Unauthorized"}), 401


@bp.route("/api/admin/licenses", methods=["GET"])
def list_licenses():
    """Lista todas las licencias"""
    if not require_admin(request):
        return _unauthorized()

    try:
        lics = get_services().admin.list_licenses()
    except LicensingError as exc:
        return _error(exc)

    return jsonify([lic.to_dict() for lic in lics])


@bp.route("/api/admin/create-license", methods=["POST"])
def create_license():
    """Crea una nueva licencia"""
    if not require_admin(request):
        return _unauthorized()

    data = request.get_json(force=True, silent=True) or {}
    if not isinstance(data, dict):
        data = {}

    try:
        lic = get_services().admin.create_license(
            customer_email=data.get("customerEmail"),
            customer_name=data.get("customerName"),
            plan_type=data.get("planType"),
            duration_months=data.get("durationMonths", 12),
            max_activations=data.get("maxActivations", 1),
            notes=data.get("notes"),
        )
    except LicensingError as exc:
        if not isinstance(exc, ValidationError):
            logger.error(f"License creation error: {exc.code}: {exc.message}")
        return _error(exc)

    return jsonify({"success": True, "license": lic.summary()}), 200


@bp.route("/api/admin/deactivate-license", methods=["POST"])
def deactivate_license():
    """Desactiva una licencia (las activaciones se conservan)"""
    if not require_admin(request):
        return _unauthorized()

    data = request.get_json(force=True, silent=True) or {}
    key = data.get("licenseKey") if isinstance(data, dict) else None
    key = key.strip().upper() if isinstance(key, str) else ""
    if not key:
        return jsonify({"success": False, "error": "licenseKey is required"}), 400

    try:
        get_services().admin.deactivate(key)
    except NotFoundError:
        return jsonify({"error": "License not found"}), 404
    except LicensingError as exc:
        return _error(exc)

    return jsonify({"success": True, "message": "License deactivated"}), 200
