"""
Modelo SQLAlchemy para Clientes

Un cliente pertenece a una sola empresa (tenant) y es el destinatario de
las facturas. La deuda actual solo cambia vía add_debt / pay_debt; nunca
se asigna directamente desde los servicios.
"""

from tenant_billing.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, Numeric, Enum
from decimal import Decimal
import enum

from tenant_billing.common.mixins import TenantMixin, AuditMixin
from tenant_billing.common.audit import touch
from tenant_billing.core.money import ZERO, STORAGE_SCALE, to_decimal


class CustomerType(enum.Enum):
    INDIVIDUAL = "individual"  # Persona natural, con documento de identidad
    CORPORATE = "corporate"    # Empresa, con número de impuesto


class Customer(Base, TenantMixin, AuditMixin):
    __tablename__ = "customers"

    # Información básica
    name = Column(String(200), nullable=False, index=True)
    tax_number = Column(String(50), nullable=True)
    identity_number = Column(String(50), nullable=True)

    # Contacto
    address = Column(String(500), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(100), nullable=True)
    website = Column(String(200), nullable=True)

    # Términos comerciales
    type = Column(Enum(CustomerType), nullable=False, default=CustomerType.INDIVIDUAL)
    credit_limit = Column(Numeric(28, STORAGE_SCALE), nullable=False, default=0)
    current_debt = Column(Numeric(28, STORAGE_SCALE), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    is_vip = Column(Boolean, nullable=False, default=False)

    # Auditoría
    created_by = Column(String(100), nullable=False, default="system")
    updated_by = Column(String(100), nullable=True)

    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    # ----- Propiedades calculadas -----

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.phone})" if self.phone else self.name

    @property
    def customer_number(self) -> str:
        """Número legible derivado del id: CUS-XXXXXX"""
        return f"CUS-{self.id.int % 1_000_000:06d}" if self.id else ""

    @property
    def available_credit(self) -> Decimal:
        return to_decimal(self.credit_limit) - to_decimal(self.current_debt)

    @property
    def is_over_credit_limit(self) -> bool:
        return to_decimal(self.current_debt) > to_decimal(self.credit_limit)

    @property
    def has_debt(self) -> bool:
        return to_decimal(self.current_debt) > ZERO

    @property
    def is_corporate(self) -> bool:
        return self.type == CustomerType.CORPORATE

    @property
    def is_individual(self) -> bool:
        return self.type == CustomerType.INDIVIDUAL

    # ----- Reglas -----

    def can_use_credit(self, amount) -> bool:
        """¿Puede asumir `amount` de deuda adicional sin pasar el límite?"""
        return (
            bool(self.is_active)
            and not self.is_deleted
            and to_decimal(self.current_debt) + to_decimal(amount) <= to_decimal(self.credit_limit)
        )

    def can_create_invoice(self) -> bool:
        return bool(self.is_active) and not self.is_deleted

    def has_valid_email(self) -> bool:
        return bool(self.email) and "@" in self.email

    # ----- Mutaciones -----

    def add_debt(self, amount) -> bool:
        amount = to_decimal(amount)
        if amount <= ZERO:
            return False
        self.current_debt = to_decimal(self.current_debt) + amount
        touch(self)
        return True

    def pay_debt(self, amount) -> bool:
        amount = to_decimal(amount)
        if amount <= ZERO or amount > to_decimal(self.current_debt):
            return False
        self.current_debt = to_decimal(self.current_debt) - amount
        touch(self)
        return True

    def update_credit_limit(self, new_limit):
        self.credit_limit = to_decimal(new_limit)
        touch(self)

    def update_contact_info(self, phone=None, email=None, address=None):
        self.phone = phone.strip() if phone else None
        self.email = email.strip() if email else None
        self.address = address.strip() if address else None
        touch(self)

    def activate(self):
        self.is_active = True
        touch(self)

    def deactivate(self):
        self.is_active = False
        touch(self)

    def mark_as_vip(self):
        self.is_vip = True
        touch(self)

    def remove_vip_status(self):
        self.is_vip = False
        touch(self)
