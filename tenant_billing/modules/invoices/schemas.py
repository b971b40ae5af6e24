"""
Esquemas Pydantic para el módulo de Facturas

Los importes se reciben como Decimal y se devuelven redondeados a centavos
(tipo Money); los totales de la factura nunca se aceptan como entrada.
"""

from pydantic import BaseModel, Field, model_validator
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from datetime import date, datetime

from tenant_billing.common.schemas import Money, Page
from tenant_billing.modules.invoices.models import InvoiceStatus, PaymentMethod


# ===== ITEMS =====

class InvoiceItemCreate(BaseModel):
    product_id: UUID
    quantity: Decimal = Field(..., gt=0, description="Cantidad")
    unit_price: Optional[Decimal] = Field(None, ge=0, description="Precio unitario; por defecto el del producto")
    discount_rate: Decimal = Field(Decimal("0"), ge=0, le=100, description="Descuento en %")


class InvoiceItemUpdate(BaseModel):
    quantity: Optional[Decimal] = Field(None, gt=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    discount_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    discount_amount: Optional[Decimal] = Field(None, ge=0)
    tax_rate: Optional[Decimal] = Field(None, ge=0)

    @model_validator(mode="after")
    def validate_single_discount(self):
        if self.discount_rate is not None and self.discount_amount is not None:
            raise ValueError("Use either discount_rate or discount_amount, not both")
        return self


class InvoiceItemOut(BaseModel):
    id: UUID
    product_id: UUID
    product_name: str
    product_code: Optional[str] = None
    unit: str
    quantity: Decimal
    unit_price: Money
    discount_rate: Decimal
    discount_amount: Money
    tax_rate: Decimal
    subtotal: Money
    amount_after_discount: Money
    tax_amount: Money
    total: Money
    effective_unit_price: Money

    class Config:
        from_attributes = True


# ===== INVOICES =====

class InvoiceCreate(BaseModel):
    customer_id: UUID
    invoice_date: Optional[date] = Field(None, description="Fecha de emisión; por defecto hoy")
    due_date: Optional[date] = Field(None, description="Vencimiento; por defecto emisión + plazo configurado")
    description: Optional[str] = None
    items: List[InvoiceItemCreate] = Field(default_factory=list)


class InvoiceCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500, description="Motivo de la cancelación")


class InvoiceFilters(BaseModel):
    status: Optional[InvoiceStatus] = None
    customer_id: Optional[UUID] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None


class InvoiceOut(BaseModel):
    id: UUID
    tenant_id: UUID
    customer_id: UUID
    invoice_number: Optional[str] = None
    invoice_date: date
    due_date: date
    status: InvoiceStatus
    description: Optional[str] = None
    customer_name: str
    subtotal: Money
    total_discount: Money
    total_tax: Money
    grand_total: Money
    paid_amount: Money
    remaining_amount: Money
    payment_method: Optional[PaymentMethod] = None
    payment_date: Optional[date] = None
    created_by: str
    sent_by: Optional[str] = None
    sent_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ===== PAYMENTS =====

class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, description="Monto del pago")
    method: PaymentMethod = PaymentMethod.CASH
    payment_date: Optional[date] = None
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class PaymentOut(BaseModel):
    id: UUID
    invoice_id: UUID
    amount: Money
    method: PaymentMethod
    payment_date: date
    reference: Optional[str] = None
    notes: Optional[str] = None
    created_by: str
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceDetail(InvoiceOut):
    customer_address: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    customer_tax_number: Optional[str] = None
    items: List[InvoiceItemOut] = []
    payments: List[PaymentOut] = []


InvoiceList = Page[InvoiceOut]
