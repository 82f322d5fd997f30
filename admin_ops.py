"""
admin_ops.py - Operaciones privilegiadas sobre licencias
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from errors import NotFoundError, ValidationError
from records import LicenseRecord
from store import LicenseStore
from utils import (
    MAX_DURATION_MONTHS,
    add_months,
    check_length,
    generate_key,
    parse_positive_int,
    utcnow,
)

logger = logging.getLogger(__name__)


class AdminOperations:
    """Emisión, desactivación y listados de licencias"""

    def __init__(self, store: LicenseStore, key_prefix: str = "BABYLON",
                 clock: Callable[[], datetime] = utcnow,
                 key_generator: Optional[Callable[[str], str]] = None):
        self.store = store
        self.key_prefix = key_prefix
        self.clock = clock
        self.key_generator = key_generator or generate_key

    def create_license(self, customer_email: str, customer_name: str,
                       plan_type: Optional[str] = None, duration_months=12,
                       max_activations=1, notes: Optional[str] = None) -> LicenseRecord:
        """
        Crea una licencia activa y sin activaciones.

        Una colisión de clave se propaga como DuplicateKeyError: la
        probabilidad es despreciable y el reintento queda en manos del
        administrador.

        Raises:
            ValidationError: email o nombre vacíos o demasiado largos, duración o
                límite fuera de rango
            DuplicateKeyError: la clave generada ya existe
            TransientStoreError: el almacén no responde
        """
        email = (customer_email or "").strip() if isinstance(customer_email, str) else ""
        name = (customer_name or "").strip() if isinstance(customer_name, str) else ""
        if not email or not name:
            raise ValidationError("Customer email and name are required")
        check_length(email, "customerEmail")
        check_length(name, "customerName", 200)
        plan_type = check_length(str(plan_type or "").strip() or "single", "planType", 50)

        months = parse_positive_int(duration_months, "durationMonths", MAX_DURATION_MONTHS)
        max_activations = parse_positive_int(max_activations, "maxActivations")

        purchase_date = self.clock()
        lic = self.store.create_license(
            key=self.key_generator(self.key_prefix),
            customer_email=email,
            customer_name=name,
            purchase_date=purchase_date,
            expiry_date=add_months(purchase_date, months),
            max_activations=max_activations,
            plan_type=plan_type,
            notes=str(notes) if notes else "",
        )
        logger.info(f"New license created: {lic.key} for {lic.customer_email}")
        return lic

    def deactivate(self, license_key: str) -> LicenseRecord:
        """Apaga la licencia; activaciones y expiración no se tocan"""
        lic = self.store.set_active(license_key, False)
        if lic is None:
            raise NotFoundError()
        logger.info(f"License deactivated: {license_key}")
        return lic

    def list_licenses(self) -> List[LicenseRecord]:
        return self.store.list_licenses()

    def usage_stats(self) -> List[dict]:
        return self.store.aggregate_usage_by_key()
