"""
store.py - Contrato del almacén de licencias e implementación SQLAlchemy

El almacén es el único recurso compartido y mutable del servicio. Toda
operación devuelve registros inmutables (records.py) y convierte los
fallos de conexión o de timeout en TransientStoreError.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import selectinload

from errors import (
    AlreadyActivatedError,
    DuplicateKeyError,
    LimitExceededError,
    NotFoundError,
    TransientStoreError,
)
from models import db, License, DeviceActivation, UsageEvent
from records import DeviceActivationRecord, LicenseRecord, UsageEventRecord

logger = logging.getLogger(__name__)


def summarize_usage(events: Iterable[UsageEventRecord],
                    licenses_by_key: Dict[str, LicenseRecord]) -> List[dict]:
    """Agrupa los eventos por clave de licencia, en orden de primera aparición"""
    groups = {}
    for event in events:
        group = groups.get(event.license_key)
        if group is None:
            lic = licenses_by_key.get(event.license_key)
            group = groups[event.license_key] = {
                "license_key":    event.license_key,
                "total_actions":  0,
                "last_activity":  None,
                "unique_devices": [],
                "actions":        [],
                "license_info":   lic.summary() if lic else None,
            }
        group["total_actions"] += 1
        if group["last_activity"] is None or event.timestamp > group["last_activity"]:
            group["last_activity"] = event.timestamp
        if event.device_id not in group["unique_devices"]:
            group["unique_devices"].append(event.device_id)
        group["actions"].append({"action": event.action, "timestamp": event.timestamp})
    return list(groups.values())


class LicenseStore(ABC):
    """
    Contrato que el motor de activación y las operaciones de administración
    esperan del almacén.

    append_activation_atomic es la sección crítica: la comprobación de
    capacidad y la inserción de la activación deben ser indivisibles
    respecto a otros intentos de activación sobre la misma clave.
    """

    @abstractmethod
    def find_active_by_key(self, key: str) -> Optional[LicenseRecord]:
        """Licencia con is_active=True o None. No filtra por expiración."""

    @abstractmethod
    def find_by_key(self, key: str) -> Optional[LicenseRecord]:
        """Licencia en cualquier estado o None"""

    @abstractmethod
    def create_license(self, *, key: str, customer_email: str, customer_name: str,
                       purchase_date: datetime, expiry_date: datetime,
                       max_activations: int, plan_type: str = "single",
                       version: str = "1.0", notes: str = "") -> LicenseRecord:
        """Crea la licencia; DuplicateKeyError si la clave ya existe"""

    @abstractmethod
    def append_activation_atomic(self, key: str, activation: DeviceActivationRecord,
                                 max_activations: int) -> LicenseRecord:
        """
        Añade la activación si y sólo si quedan huecos.

        Raises:
            NotFoundError: no hay licencia activa con esa clave
            LimitExceededError: la licencia está llena
            AlreadyActivatedError: el dispositivo ya está vinculado
        """

    @abstractmethod
    def touch_activation(self, key: str, device_id: str, timestamp: datetime) -> bool:
        """Actualiza last_validation; False si no hay tal activación"""

    @abstractmethod
    def set_active(self, key: str, is_active: bool) -> Optional[LicenseRecord]:
        """Cambia el interruptor de la licencia; None si no existe"""

    @abstractmethod
    def list_licenses(self) -> List[LicenseRecord]:
        """Todas las licencias, las más recientes primero"""

    @abstractmethod
    def record_usage(self, event: UsageEventRecord) -> UsageEventRecord:
        """Añade un evento de uso sin validar la licencia"""

    @abstractmethod
    def aggregate_usage_by_key(self) -> List[dict]:
        """Resumen de uso por clave (ver summarize_usage)"""

    @abstractmethod
    def count_licenses(self, now: datetime) -> Tuple[int, int]:
        """(total, activas y sin expirar)"""

    @abstractmethod
    def ping(self) -> bool:
        """True si el almacén responde"""


class SQLAlchemyLicenseStore(LicenseStore):
    """Implementación sobre Flask-SQLAlchemy; requiere contexto de aplicación"""

    @contextmanager
    def _guard(self):
        try:
            yield
        except (OperationalError, InterfaceError, PoolTimeoutError) as exc:
            db.session.rollback()
            logger.warning(f"License store unavailable: {exc.__class__.__name__}: {exc}")
            raise TransientStoreError() from exc
        except SQLAlchemyError:
            # La sesión queda inservible hasta el rollback
            db.session.rollback()
            raise

    @staticmethod
    def _to_record(lic: License) -> LicenseRecord:
        return LicenseRecord(
            key=lic.key,
            customer_email=lic.customer_email,
            customer_name=lic.customer_name,
            purchase_date=lic.purchase_date,
            expiry_date=lic.expiry_date,
            is_active=lic.is_active,
            max_activations=lic.max_activations,
            activations=tuple(
                DeviceActivationRecord(
                    device_id=a.device_id,
                    activation_date=a.activation_date,
                    last_validation=a.last_validation,
                    device_info=a.device_info or {},
                )
                for a in lic.activations
            ),
            plan_type=lic.plan_type,
            version=lic.version,
            notes=lic.notes or "",
        )

    @staticmethod
    def _to_event(event: UsageEvent) -> UsageEventRecord:
        return UsageEventRecord(
            license_key=event.license_key,
            device_id=event.device_id or "",
            action=event.action or "",
            timestamp=event.timestamp,
            metadata=event.metadata_ or {},
            ip_address=event.ip_address or "",
            client_info=event.client_info or "",
        )

    @staticmethod
    def _select_licenses(*criteria):
        # populate_existing: la sesión puede conservar filas de lecturas anteriores
        return (select(License)
                .where(*criteria)
                .options(selectinload(License.activations))
                .execution_options(populate_existing=True))

    def find_active_by_key(self, key):
        with self._guard():
            lic = db.session.execute(
                self._select_licenses(License.key == key, License.is_active.is_(True))
            ).scalar_one_or_none()
            return self._to_record(lic) if lic else None

    def find_by_key(self, key):
        with self._guard():
            lic = db.session.execute(
                self._select_licenses(License.key == key)
            ).scalar_one_or_none()
            return self._to_record(lic) if lic else None

    def create_license(self, *, key, customer_email, customer_name, purchase_date,
                       expiry_date, max_activations, plan_type="single",
                       version="1.0", notes=""):
        with self._guard():
            lic = License(
                key=key,
                customer_email=customer_email,
                customer_name=customer_name,
                purchase_date=purchase_date,
                expiry_date=expiry_date,
                is_active=True,
                max_activations=max_activations,
                current_activations=0,
                plan_type=plan_type,
                version=version,
                notes=notes,
            )
            db.session.add(lic)
            try:
                db.session.commit()
            except IntegrityError as exc:
                db.session.rollback()
                raise DuplicateKeyError(f"License key {key} already exists") from exc
            return self.find_by_key(key)

    def append_activation_atomic(self, key, activation, max_activations):
        with self._guard():
            # El UPDATE condicional reserva el hueco y deja la fila bloqueada
            # hasta el commit; otro activador espera y vuelve a evaluar la condición
            result = db.session.execute(
                update(License)
                .where(License.key == key,
                       License.is_active.is_(True),
                       License.current_activations < max_activations,
                       License.current_activations < License.max_activations)
                .values(current_activations=License.current_activations + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.session.rollback()
                current = self.find_active_by_key(key)
                if current is None:
                    raise NotFoundError()
                raise LimitExceededError(max_activations=current.max_activations)

            db.session.add(DeviceActivation(
                license_key=key,
                device_id=activation.device_id,
                activation_date=activation.activation_date,
                last_validation=activation.last_validation,
                device_info=activation.device_info,
            ))
            try:
                db.session.commit()
            except IntegrityError as exc:
                # Otra petición vinculó el mismo dispositivo; el rollback
                # deshace también el incremento del contador
                db.session.rollback()
                raise AlreadyActivatedError() from exc
            return self.find_by_key(key)

    def touch_activation(self, key, device_id, timestamp):
        with self._guard():
            result = db.session.execute(
                update(DeviceActivation)
                .where(DeviceActivation.license_key == key,
                       DeviceActivation.device_id == device_id)
                .values(last_validation=timestamp)
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
            return result.rowcount > 0

    def set_active(self, key, is_active):
        with self._guard():
            result = db.session.execute(
                update(License)
                .where(License.key == key)
                .values(is_active=is_active)
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
            if result.rowcount == 0:
                return None
            return self.find_by_key(key)

    def list_licenses(self):
        with self._guard():
            lics = db.session.execute(
                self._select_licenses().order_by(License.purchase_date.desc(), License.id.desc())
            ).scalars().all()
            return [self._to_record(lic) for lic in lics]

    def record_usage(self, event):
        with self._guard():
            row = UsageEvent(
                license_key=event.license_key,
                device_id=event.device_id,
                action=event.action,
                metadata_=event.metadata,
                timestamp=event.timestamp,
                ip_address=event.ip_address,
                client_info=event.client_info,
            )
            db.session.add(row)
            db.session.commit()
            return event

    def aggregate_usage_by_key(self):
        with self._guard():
            events = [self._to_event(e) for e in db.session.execute(
                select(UsageEvent).order_by(UsageEvent.timestamp, UsageEvent.id)
            ).scalars()]
            keys = {e.license_key for e in events}
            lics = db.session.execute(
                self._select_licenses(License.key.in_(keys))
            ).scalars().all() if keys else []
            return summarize_usage(events, {lic.key: self._to_record(lic) for lic in lics})

    def count_licenses(self, now):
        with self._guard():
            total = db.session.execute(select(func.count(License.id))).scalar_one()
            active = db.session.execute(
                select(func.count(License.id))
                .where(License.is_active.is_(True), License.expiry_date > now)
            ).scalar_one()
            return total, active

    def ping(self):
        try:
            with self._guard():
                db.session.execute(text("SELECT 1"))
            return True
        except TransientStoreError:
            return False
