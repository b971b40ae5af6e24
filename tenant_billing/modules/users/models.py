from tenant_billing.database.database import Base
from sqlalchemy import Column, String, Boolean, DateTime, Enum
from tenant_billing.common.mixins import TenantMixin, AuditMixin
from tenant_billing.common.audit import touch, utcnow
import enum


class UserRole(enum.Enum):
    ADMIN = "admin"
    OWNER = "owner"
    MANAGER = "manager"
    EMPLOYEE = "employee"


# Privilegio explícito: mayor número = más privilegio.
# No depende del orden de declaración del enum.
ROLE_RANK = {
    UserRole.EMPLOYEE: 1,
    UserRole.MANAGER: 2,
    UserRole.OWNER: 3,
    UserRole.ADMIN: 4,
}


class User(Base, TenantMixin, AuditMixin):
    __tablename__ = "users"

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(150), unique=True, nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.EMPLOYEE)
    is_active = Column(Boolean, default=True, nullable=False)
    is_email_verified = Column(Boolean, default=False, nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    created_by = Column(String(100), nullable=False, default="system")
    updated_by = Column(String(100), nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def initials(self) -> str:
        return f"{self.first_name[:1]}{self.last_name[:1]}".upper()

    @property
    def is_manager(self) -> bool:
        return self.has_minimum_role(UserRole.MANAGER)

    def has_role(self, role: UserRole) -> bool:
        return self.role == role

    def has_minimum_role(self, minimum: UserRole) -> bool:
        """True si el rol del usuario tiene al menos el privilegio de `minimum`"""
        return ROLE_RANK[self.role] >= ROLE_RANK[minimum]

    def can_login(self) -> bool:
        return bool(self.is_active) and not self.is_deleted

    def activate(self):
        self.is_active = True
        touch(self)

    def deactivate(self):
        self.is_active = False
        touch(self)

    def change_role(self, role: UserRole):
        self.role = role
        touch(self)

    def update_last_login(self):
        self.last_login_at = utcnow()
        touch(self)

    def verify_email(self):
        self.is_email_verified = True
        touch(self)
