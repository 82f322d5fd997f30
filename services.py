"""
services.py - Construcción de los servicios inyectados en la aplicación
"""

from dataclasses import dataclass

from flask import current_app

from activation import ActivationEngine
from admin_ops import AdminOperations
from memory_store import InMemoryLicenseStore
from store import LicenseStore, SQLAlchemyLicenseStore
from usage import UsageRecorder

EXTENSION_KEY = "licensing"


@dataclass
class LicensingServices:
    store: LicenseStore
    engine: ActivationEngine
    admin: AdminOperations
    usage: UsageRecorder


def build_services(app, store: LicenseStore = None) -> LicensingServices:
    """Crea el almacén según STORE_BACKEND y todo lo que depende de él"""
    if store is None:
        backend = app.config["STORE_BACKEND"]
        if backend == "memory":
            store = InMemoryLicenseStore(timeout=app.config["STORE_TIMEOUT_SECONDS"])
        elif backend == "sqlalchemy":
            store = SQLAlchemyLicenseStore()
        else:
            raise RuntimeError(f"Unknown STORE_BACKEND: {backend}")

    services = LicensingServices(
        store=store,
        engine=ActivationEngine(store),
        admin=AdminOperations(store, key_prefix=app.config["LICENSE_PREFIX"]),
        usage=UsageRecorder(store),
    )
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> LicensingServices:
    return current_app.extensions[EXTENSION_KEY]
