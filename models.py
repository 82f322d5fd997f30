"""
models.py - Modelos de base de datos SQLAlchemy
"""

from flask_sqlalchemy import SQLAlchemy

from utils import utcnow

db = SQLAlchemy()


class License(db.Model):
    """Modelo principal de licencias"""
    __tablename__ = "license"

    id                  = db.Column(db.Integer, primary_key=True)
    key                 = db.Column(db.String(64), unique=True, nullable=False, index=True)
    customer_email      = db.Column(db.String(255), nullable=False)
    customer_name       = db.Column(db.String(200), nullable=False)
    purchase_date       = db.Column(db.DateTime, default=utcnow, nullable=False)
    expiry_date         = db.Column(db.DateTime, nullable=False)
    is_active           = db.Column(db.Boolean, default=True, nullable=False)
    max_activations     = db.Column(db.Integer, default=1, nullable=False)

    # Contador que acompaña a las filas de DeviceActivation; el UPDATE
    # condicional sobre él es lo que serializa el consumo de huecos
    current_activations = db.Column(db.Integer, default=0, nullable=False)

    # Metadata
    plan_type           = db.Column(db.String(50), default="single", nullable=False)
    version             = db.Column(db.String(20), default="1.0", nullable=False)
    notes               = db.Column(db.Text, default="")

    activations = db.relationship('DeviceActivation', backref='license', lazy='selectin',
                                  order_by='DeviceActivation.id',
                                  cascade='all, delete-orphan')

    __table_args__ = (
        db.CheckConstraint("max_activations >= 1", name="ck_license_max_activations"),
        db.CheckConstraint("current_activations <= max_activations",
                           name="ck_license_activation_capacity"),
    )

    def __repr__(self):
        return f"<License {self.key} - {self.current_activations}/{self.max_activations}>"


class DeviceActivation(db.Model):
    """Dispositivo vinculado a una licencia, identificado por (licencia, dispositivo)"""
    __tablename__ = "device_activation"

    id              = db.Column(db.Integer, primary_key=True)
    license_key     = db.Column(db.String(64), db.ForeignKey('license.key'), nullable=False, index=True)
    device_id       = db.Column(db.String(255), nullable=False)
    activation_date = db.Column(db.DateTime, default=utcnow, nullable=False)
    last_validation = db.Column(db.DateTime, default=utcnow, nullable=False)
    device_info     = db.Column(db.JSON, default=dict)

    __table_args__ = (
        db.UniqueConstraint("license_key", "device_id", name="uq_license_device"),
    )

    def __repr__(self):
        return f"<DeviceActivation {self.license_key} @ {self.device_id}>"


class UsageEvent(db.Model):
    """Registro de uso; no exige que la licencia exista"""
    __tablename__ = "usage_event"

    id          = db.Column(db.Integer, primary_key=True)
    license_key = db.Column(db.String(255), nullable=False, index=True)
    device_id   = db.Column(db.String(255), default="")
    action      = db.Column(db.String(100), default="")
    # "metadata" está reservado por SQLAlchemy en los modelos declarativos
    metadata_   = db.Column("metadata", db.JSON, default=dict)
    timestamp   = db.Column(db.DateTime, default=utcnow, index=True)

    # Información de la petición
    ip_address  = db.Column(db.String(45), default="")
    client_info = db.Column(db.String(200), default="")

    def __repr__(self):
        return f"<UsageEvent {self.timestamp} - {self.action}>"
