"""
usage.py - Registro de eventos de uso

Los eventos no se validan contra la licencia: se acepta cualquier clave.
Perder un evento nunca debe bloquear al cliente, así que los fallos se
registran en el log y se devuelven como success=False.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from records import UsageEventRecord
from store import LicenseStore
from utils import check_length, coerce_mapping, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageResult:
    success: bool

    def to_dict(self) -> dict:
        return {"success": self.success}


class UsageRecorder:

    def __init__(self, store: LicenseStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    def record(self, license_key, device_id, action, metadata=None,
               ip_address: str = "", client_info: str = "") -> UsageResult:
        try:
            event = UsageEventRecord(
                license_key=check_length(str(license_key or ""), "license_key"),
                device_id=check_length(str(device_id or ""), "device_id"),
                action=check_length(str(action or ""), "action", 100),
                timestamp=self.clock(),
                metadata=coerce_mapping(metadata, "metadata"),
                ip_address=(ip_address or "")[:45],
                client_info=(client_info or "")[:200],
            )
            self.store.record_usage(event)
        except Exception:
            logger.exception(f"Usage recording error for license {license_key}")
            return UsageResult(False)
        logger.info(f"Usage recorded: {action} for license: {license_key}")
        return UsageResult(True)
