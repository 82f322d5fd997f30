"""
routes/health.py - Health check
"""

import time

from flask import Blueprint, current_app, jsonify

from errors import TransientStoreError
from records import iso
from services import get_services
from utils import utcnow

bp = Blueprint('health', __name__)


@bp.route("/api/health", methods=["GET"])
def health():
    """Estado del servicio y del almacén"""
    now = utcnow()
    store = get_services().store
    try:
        if not store.ping():
            raise TransientStoreError()
        total, active = store.count_licenses(now)
    except TransientStoreError as exc:
        return jsonify({"status": "ERROR", "database": "disconnected", "error": exc.message}), 503

    return jsonify({
        "status":          "OK",
        "timestamp":       iso(now),
        "database":        "connected",
        "total_licenses":  total,
        "active_licenses": active,
        "uptime":          round(time.monotonic() - current_app.config["STARTED_AT"], 3),
        "service":         current_app.config["SERVICE_NAME"],
    })
