from tenant_billing.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.orm import validates
from tenant_billing.common.mixins import AuditMixin
from tenant_billing.common.audit import touch


class Company(Base, AuditMixin):
    """Tenant: organización dueña de clientes, productos, usuarios y facturas"""
    __tablename__ = "companies"

    name = Column(String(200), nullable=False, index=True)
    tax_number = Column(String(50), unique=True, nullable=False)  # único, inmutable
    address = Column(String(500), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_by = Column(String(100), nullable=False, default="system")
    updated_by = Column(String(100), nullable=True)

    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    @validates("tax_number")
    def validate_tax_number(self, key, value):
        if self.tax_number is not None and value != self.tax_number:
            raise ValueError("tax_number is immutable once set")
        return value

    @property
    def display_name(self) -> str:
        return f"{self.name} (VN: {self.tax_number})"

    def activate(self, by: str = None):
        self.is_active = True
        self.updated_by = by or self.updated_by
        touch(self)

    def deactivate(self, by: str = None):
        self.is_active = False
        self.updated_by = by or self.updated_by
        touch(self)

    def set_updated_by(self, by: str):
        self.updated_by = by
        touch(self)
