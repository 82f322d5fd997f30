"""
errors.py - Excepciones del dominio de licencias
"""


class LicensingError(Exception):
    """Excepción base con código legible por máquina"""

    code = "LICENSING_ERROR"

    def __init__(self, message: str = "", code: str = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class NotFoundError(LicensingError):
    """La licencia (o la activación) no existe"""

    code = "LICENSE_NOT_FOUND"

    def __init__(self, message: str = "License not found"):
        super().__init__(message)


class DuplicateKeyError(LicensingError):
    """Colisión de clave al crear una licencia"""

    code = "DUPLICATE_LICENSE_KEY"

    def __init__(self, message: str = "License key already exists"):
        super().__init__(message)


class LimitExceededError(LicensingError):
    """No quedan activaciones libres en la licencia"""

    code = "ACTIVATION_LIMIT_EXCEEDED"

    def __init__(self, message: str = "Activation limit exceeded", max_activations: int = None):
        super().__init__(message)
        self.max_activations = max_activations


class AlreadyActivatedError(LicensingError):
    """El dispositivo ya ocupa un hueco en la licencia"""

    code = "DEVICE_ALREADY_ACTIVATED"

    def __init__(self, message: str = "Device already activated"):
        super().__init__(message)


class ValidationError(LicensingError):
    """Datos de entrada inválidos"""

    code = "VALIDATION_ERROR"


class TransientStoreError(LicensingError):
    """El almacén no respondió a tiempo o no está disponible"""

    code = "STORE_UNAVAILABLE"

    def __init__(self, message: str = "License store unavailable"):
        super().__init__(message)
