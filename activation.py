"""
activation.py - Motor de activación y validación de licencias

El motor no guarda estado entre llamadas: toda la información vive en el
almacén que recibe en el constructor. validate() y activate() siempre
devuelven un resultado; los casos de dominio (no encontrada, expirada,
sin huecos) nunca se lanzan como excepción.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from errors import (
    AlreadyActivatedError,
    LimitExceededError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from records import DeviceActivationRecord, LicenseRecord, iso
from store import LicenseStore
from utils import MAX_IDENTIFIER_LENGTH, MAX_KEY_LENGTH, coerce_mapping, utcnow

logger = logging.getLogger(__name__)


class Reason(str, Enum):
    """Motivo de un resultado negativo"""
    NOT_FOUND_OR_INACTIVE = "not_found_or_inactive"
    INVALID_KEY = "invalid_key"
    EXPIRED = "expired"
    DEVICE_NOT_ACTIVATED = "device_not_activated"
    LIMIT_REACHED = "limit_reached"
    INVALID_REQUEST = "invalid_request"
    TRANSIENT_ERROR = "transient_error"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    message: str
    reason: Optional[Reason] = None
    expiry_date: Optional[datetime] = None
    customer_name: Optional[str] = None
    plan_type: Optional[str] = None

    @property
    def retryable(self) -> bool:
        return self.reason is Reason.TRANSIENT_ERROR

    def to_dict(self) -> dict:
        data = {"valid": self.valid, "message": self.message}
        if self.reason is not None:
            data["reason"] = self.reason.value
        if self.expiry_date is not None:
            data["expiry_date"] = iso(self.expiry_date)
        if self.customer_name is not None:
            data["customer_name"] = self.customer_name
        if self.plan_type is not None:
            data["plan_type"] = self.plan_type
        return data


@dataclass(frozen=True)
class ActivationResult(ValidationResult):
    already_activated: bool = False
    activations_used: Optional[int] = None
    activations_total: Optional[int] = None
    max_activations: Optional[int] = None

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.already_activated:
            data["already_activated"] = True
        if self.activations_used is not None:
            data["activations_used"] = self.activations_used
        if self.activations_total is not None:
            data["activations_total"] = self.activations_total
        if self.max_activations is not None:
            data["max_activations"] = self.max_activations
        return data


def _request_error(license_key, device_id) -> Optional[str]:
    if not license_key or not device_id:
        return "license_key and device_id are required"
    if len(license_key) > MAX_KEY_LENGTH:
        return f"license_key must be at most {MAX_KEY_LENGTH} characters"
    if len(device_id) > MAX_IDENTIFIER_LENGTH:
        return f"device_id must be at most {MAX_IDENTIFIER_LENGTH} characters"
    return None


def _limit_message(max_activations: int) -> str:
    plural = "s" if max_activations > 1 else ""
    return (f"License activation limit reached ({max_activations} device{plural}). "
            "Please contact support.")


class ActivationEngine:
    """
    Máquina de estados de licencias.

    Por licencia: VALID (activa y vigente), EXPIRED o REVOKED (is_active=False).
    Por (licencia, dispositivo): UNKNOWN hasta que existe la activación y
    ACTIVATED después; ninguna operación elimina una activación.
    """

    def __init__(self, store: LicenseStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    def validate(self, license_key: str, device_id: str) -> ValidationResult:
        """Comprueba que el dispositivo sigue teniendo una activación válida"""
        error = _request_error(license_key, device_id)
        if error:
            return ValidationResult(False, error, Reason.INVALID_REQUEST)
        try:
            lic = self.store.find_active_by_key(license_key)
        except TransientStoreError:
            logger.warning(f"Validation of {license_key} aborted: store unavailable")
            return ValidationResult(False, "Server error during validation",
                                    Reason.TRANSIENT_ERROR)

        if lic is None:
            logger.info(f"License not found or inactive: {license_key}")
            return ValidationResult(False, "License not found or inactive",
                                    Reason.NOT_FOUND_OR_INACTIVE)

        now = self.clock()
        if lic.is_expired(now):
            logger.info(f"License expired: {license_key}")
            return ValidationResult(False, "License has expired", Reason.EXPIRED)

        if lic.find_activation(device_id) is None:
            logger.info(f"Device not activated: {device_id} on {license_key}")
            return ValidationResult(False, "License not activated on this device",
                                    Reason.DEVICE_NOT_ACTIVATED)

        self._touch(license_key, device_id, now)
        logger.info(f"License validated: {license_key} on {device_id}")
        return ValidationResult(
            True, "License is valid",
            expiry_date=lic.expiry_date,
            customer_name=lic.customer_name,
            plan_type=lic.plan_type,
        )

    def activate(self, license_key: str, device_id: str,
                 device_fingerprint=None) -> ActivationResult:
        """Vincula el dispositivo a la licencia consumiendo un hueco si hace falta"""
        error = _request_error(license_key, device_id)
        if error:
            return ActivationResult(False, error, Reason.INVALID_REQUEST)
        try:
            device_info = coerce_mapping(device_fingerprint, "device_fingerprint")
        except ValidationError as exc:
            return ActivationResult(False, exc.message, Reason.INVALID_REQUEST)

        try:
            return self._activate(license_key, device_id, device_info)
        except TransientStoreError:
            logger.warning(f"Activation of {license_key} aborted: store unavailable")
            return ActivationResult(False, "Server error during activation",
                                    Reason.TRANSIENT_ERROR)

    def _activate(self, license_key, device_id, device_info) -> ActivationResult:
        lic = self.store.find_active_by_key(license_key)
        if lic is None:
            logger.info(f"Activation with invalid key: {license_key}")
            return ActivationResult(False, "Invalid license key", Reason.INVALID_KEY)

        now = self.clock()
        if lic.is_expired(now):
            logger.info(f"Activation of expired license: {license_key}")
            return ActivationResult(False, "License has expired. Please contact support.",
                                    Reason.EXPIRED)

        # Un dispositivo ya vinculado pasa siempre, aunque la licencia esté llena
        if lic.find_activation(device_id) is not None:
            return self._already_activated(lic, device_id, now)

        if lic.activations_used >= lic.max_activations:
            logger.info(f"Activation limit reached: {license_key}")
            return self._limit_reached(lic.max_activations)

        activation = DeviceActivationRecord(
            device_id=device_id,
            activation_date=now,
            last_validation=now,
            device_info=device_info,
        )
        try:
            updated = self.store.append_activation_atomic(license_key, activation,
                                                          lic.max_activations)
        except LimitExceededError as exc:
            # Carrera perdida por el último hueco: se informa, no se reintenta
            logger.info(f"Activation limit reached (race lost): {license_key}")
            return self._limit_reached(exc.max_activations or lic.max_activations)
        except AlreadyActivatedError:
            current = self.store.find_active_by_key(license_key)
            if current is None:
                return ActivationResult(False, "Invalid license key", Reason.INVALID_KEY)
            return self._already_activated(current, device_id, now)
        except NotFoundError:
            logger.info(f"License revoked during activation: {license_key}")
            return ActivationResult(False, "Invalid license key", Reason.INVALID_KEY)

        logger.info(f"License activated: {license_key} on {device_id} "
                    f"({updated.activations_used}/{updated.max_activations})")
        return ActivationResult(
            True, "License activated successfully!",
            expiry_date=updated.expiry_date,
            customer_name=updated.customer_name,
            plan_type=updated.plan_type,
            activations_used=updated.activations_used,
            activations_total=updated.max_activations,
        )

    def _already_activated(self, lic: LicenseRecord, device_id: str,
                           now: datetime) -> ActivationResult:
        # La huella enviada no se vuelve a comparar con la guardada
        self._touch(lic.key, device_id, now)
        logger.info(f"License already activated on device: {device_id}")
        return ActivationResult(
            True, "License already activated on this device",
            expiry_date=lic.expiry_date,
            customer_name=lic.customer_name,
            plan_type=lic.plan_type,
            already_activated=True,
            activations_used=lic.activations_used,
            activations_total=lic.max_activations,
        )

    @staticmethod
    def _limit_reached(max_activations: int) -> ActivationResult:
        return ActivationResult(
            False, _limit_message(max_activations), Reason.LIMIT_REACHED,
            max_activations=max_activations,
        )

    def _touch(self, license_key: str, device_id: str, now: datetime) -> None:
        """Actualiza last_validation; un fallo aquí no invalida la respuesta"""
        try:
            if not self.store.touch_activation(license_key, device_id, now):
                logger.warning(f"Activation vanished before touch: {license_key} @ {device_id}")
        except TransientStoreError:
            logger.warning(f"Could not update last validation for {license_key} @ {device_id}")
