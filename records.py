"""
records.py - Instantáneas inmutables que devuelven los almacenes

Los almacenes nunca devuelven filas del ORM: el motor de activación y las
rutas trabajan siempre con estos registros.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


def iso(value: Optional[datetime]) -> Optional[str]:
    """Fecha en ISO 8601 (UTC) o None"""
    if value is None:
        return None
    return value.isoformat() + "Z" if value.tzinfo is None else value.isoformat()


@dataclass(frozen=True)
class DeviceActivationRecord:
    """Vinculación de un dispositivo con una licencia"""
    device_id:       str
    activation_date: datetime
    last_validation: datetime
    device_info:     Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "deviceId":       self.device_id,
            "activationDate": iso(self.activation_date),
            "lastValidation": iso(self.last_validation),
            "deviceInfo":     self.device_info,
        }


@dataclass(frozen=True)
class LicenseRecord:
    """Licencia con sus activaciones en orden de activación"""
    key:             str
    customer_email:  str
    customer_name:   str
    purchase_date:   datetime
    expiry_date:     datetime
    is_active:       bool
    max_activations: int
    activations:     Tuple[DeviceActivationRecord, ...] = ()
    plan_type:       str = "single"
    version:         str = "1.0"
    notes:           str = ""

    @property
    def activations_used(self) -> int:
        return len(self.activations)

    def find_activation(self, device_id: str) -> Optional[DeviceActivationRecord]:
        for activation in self.activations:
            if activation.device_id == device_id:
                return activation
        return None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expiry_date

    def summary(self) -> dict:
        """Datos básicos, tal como se devuelven al crear la licencia"""
        return {
            "licenseKey":     self.key,
            "customerName":   self.customer_name,
            "customerEmail":  self.customer_email,
            "expiryDate":     iso(self.expiry_date),
            "maxActivations": self.max_activations,
            "planType":       self.plan_type,
        }

    def to_dict(self) -> dict:
        data = self.summary()
        data.update({
            "purchaseDate":       iso(self.purchase_date),
            "isActive":           self.is_active,
            "currentActivations": self.activations_used,
            "deviceActivations":  [a.to_dict() for a in self.activations],
            "metadata": {
                "planType": self.plan_type,
                "version":  self.version,
                "notes":    self.notes,
            },
        })
        return data


@dataclass(frozen=True)
class UsageEventRecord:
    """Evento de uso registrado por un cliente"""
    license_key: str
    device_id:   str
    action:      str
    timestamp:   datetime
    metadata:    Dict[str, Any] = field(default_factory=dict)
    ip_address:  str = ""
    client_info: str = ""

    def to_dict(self) -> dict:
        return {
            "licenseKey": self.license_key,
            "deviceId":   self.device_id,
            "action":     self.action,
            "metadata":   self.metadata,
            "timestamp":  iso(self.timestamp),
            "ipAddress":  self.ip_address,
            "clientInfo": self.client_info,
        }
