"""
routes/analytics.py - Estadísticas de uso
"""

from flask import Blueprint, request, jsonify

from errors import TransientStoreError
from records import iso
from services import get_services
from utils import require_admin

bp = Blueprint('analytics', __name__)


@bp.route("/api/admin/usage-stats", methods=["GET"])
def usage_stats():
    """Eventos de uso agrupados por clave de licencia"""
    if not require_admin(request):
        return jsonify({"error": "Unauthorized"}), 401

    try:
        stats = get_services().admin.usage_stats()
    except TransientStoreError as exc:
        return jsonify({"error": exc.message}), 503

    return jsonify([{
        "licenseKey":    group["license_key"],
        "totalActions":  group["total_actions"],
        "lastActivity":  iso(group["last_activity"]),
        "uniqueDevices": group["unique_devices"],
        "actions": [{
            "action":    item["action"],
            "timestamp": iso(item["timestamp"]),
        } for item in group["actions"]],
        "licenseInfo":   group["license_info"],
    } for group in stats])
