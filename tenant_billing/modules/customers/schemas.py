"""
Esquemas Pydantic para el módulo de Clientes
"""

from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional
from uuid import UUID
from datetime import datetime
from tenant_billing.common.schemas import Money
from tenant_billing.modules.customers.models import CustomerType


class CustomerBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, description="Nombre o razón social")
    tax_number: Optional[str] = Field(None, max_length=50)
    identity_number: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=100)
    website: Optional[str] = Field(None, max_length=200)
    type: CustomerType = CustomerType.INDIVIDUAL
    credit_limit: Decimal = Field(Decimal("0"), ge=0, description="Límite de crédito")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        if v and v.strip() and "@" not in v:
            raise ValueError('Email debe tener formato válido')
        return v


class CustomerCreate(CustomerBase):
    is_vip: bool = False


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    address: Optional[str] = Field(None, max_length=500)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=100)
    credit_limit: Optional[Decimal] = Field(None, ge=0)
    is_vip: Optional[bool] = None


class DebtPayment(BaseModel):
    amount: Decimal = Field(..., gt=0, description="Monto a abonar a la deuda")


class CustomerOut(BaseModel):
    id: UUID
    tenant_id: UUID
    customer_number: str
    name: str
    display_name: str
    tax_number: Optional[str] = None
    identity_number: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    type: CustomerType
    credit_limit: Money
    current_debt: Money
    available_credit: Money
    is_over_credit_limit: bool
    is_active: bool
    is_vip: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
