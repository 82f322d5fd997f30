"""
rate_limit.py - Límites de peticiones por IP

Dos límites: uno global para toda la API (RATELIMIT_APPLICATION) y otro
más estricto para las activaciones (ACTIVATION_RATE_LIMIT).
"""

from flask import current_app, jsonify, request
from flask_limiter import Limiter

from utils import get_client_ip


def client_ip_key() -> str:
    return get_client_ip(request)


limiter = Limiter(key_func=client_ip_key)


def activation_limit() -> str:
    return current_app.config["ACTIVATION_RATE_LIMIT"]


def rate_limit_exceeded(exc):
    return jsonify({"error": "Too many requests, please try again later."}), 429
