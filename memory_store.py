"""
memory_store.py - Almacén de licencias en memoria

Mismo contrato que SQLAlchemyLicenseStore, protegido por un único lock.
Pensado para desarrollo y tests; no persiste nada entre procesos.
"""

import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Dict, List, Tuple

from errors import (
    AlreadyActivatedError,
    DuplicateKeyError,
    LimitExceededError,
    NotFoundError,
    TransientStoreError,
)
from records import DeviceActivationRecord, LicenseRecord, UsageEventRecord
from store import LicenseStore, summarize_usage


class InMemoryLicenseStore(LicenseStore):
    """Almacén en memoria seguro entre hilos"""

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._lock = threading.Lock()
        self._licenses: Dict[str, LicenseRecord] = {}
        # Activaciones indexadas por (clave, dispositivo), en orden de inserción
        self._activations: Dict[Tuple[str, str], DeviceActivationRecord] = {}
        self._usage: List[UsageEventRecord] = []

    @contextmanager
    def _locked(self):
        if not self._lock.acquire(timeout=self.timeout):
            raise TransientStoreError("License store timed out")
        try:
            yield
        finally:
            self._lock.release()

    def _snapshot(self, key: str) -> LicenseRecord:
        lic = self._licenses[key]
        activations = tuple(a for (k, _), a in self._activations.items() if k == key)
        return replace(lic, activations=activations)

    def find_active_by_key(self, key):
        with self._locked():
            lic = self._licenses.get(key)
            if lic is None or not lic.is_active:
                return None
            return self._snapshot(key)

    def find_by_key(self, key):
        with self._locked():
            if key not in self._licenses:
                return None
            return self._snapshot(key)

    def create_license(self, *, key, customer_email, customer_name, purchase_date,
                       expiry_date, max_activations, plan_type="single",
                       version="1.0", notes=""):
        with self._locked():
            if key in self._licenses:
                raise DuplicateKeyError(f"License key {key} already exists")
            self._licenses[key] = LicenseRecord(
                key=key,
                customer_email=customer_email,
                customer_name=customer_name,
                purchase_date=purchase_date,
                expiry_date=expiry_date,
                is_active=True,
                max_activations=max_activations,
                plan_type=plan_type,
                version=version,
                notes=notes,
            )
            return self._snapshot(key)

    def append_activation_atomic(self, key, activation, max_activations):
        with self._locked():
            lic = self._licenses.get(key)
            if lic is None or not lic.is_active:
                raise NotFoundError()
            if (key, activation.device_id) in self._activations:
                raise AlreadyActivatedError()
            used = sum(1 for (k, _) in self._activations if k == key)
            if used >= min(max_activations, lic.max_activations):
                raise LimitExceededError(max_activations=lic.max_activations)
            self._activations[(key, activation.device_id)] = activation
            return self._snapshot(key)

    def touch_activation(self, key, device_id, timestamp):
        with self._locked():
            current = self._activations.get((key, device_id))
            if current is None:
                return False
            self._activations[(key, device_id)] = replace(current, last_validation=timestamp)
            return True

    def set_active(self, key, is_active):
        with self._locked():
            lic = self._licenses.get(key)
            if lic is None:
                return None
            self._licenses[key] = replace(lic, is_active=is_active)
            return self._snapshot(key)

    def list_licenses(self):
        with self._locked():
            # Insertadas en orden cronológico: se invierte para tener las nuevas primero
            keys = sorted(reversed(list(self._licenses)),
                          key=lambda k: self._licenses[k].purchase_date, reverse=True)
            return [self._snapshot(k) for k in keys]

    def record_usage(self, event):
        with self._locked():
            self._usage.append(event)
            return event

    def aggregate_usage_by_key(self):
        with self._locked():
            events = sorted(self._usage, key=lambda e: e.timestamp)
            licenses = {k: self._snapshot(k) for k in {e.license_key for e in events}
                        if k in self._licenses}
        return summarize_usage(events, licenses)

    def count_licenses(self, now):
        with self._locked():
            total = len(self._licenses)
            active = sum(1 for lic in self._licenses.values()
                         if lic.is_active and lic.expiry_date > now)
            return total, active

    def ping(self):
        return True
