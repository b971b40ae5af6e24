from pydantic import BaseModel, Field, model_validator
from decimal import Decimal
from typing import Optional
from uuid import UUID
from datetime import datetime

from tenant_billing.common.schemas import Money
from tenant_billing.core.config import settings
from tenant_billing.modules.products.models import ProductType


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=500)
    product_code: Optional[str] = Field(None, max_length=50, description="SKU, único por empresa")
    barcode: Optional[str] = Field(None, max_length=50)
    unit_price: Decimal = Field(..., ge=0, description="Precio de venta sin impuestos")
    cost_price: Decimal = Field(Decimal("0"), ge=0)
    tax_rate: Decimal = Field(settings.DEFAULT_TAX_RATE, ge=0, le=100, description="Impuesto en %")
    unit: str = Field(settings.DEFAULT_UNIT, min_length=1, max_length=20)
    weight: Optional[Decimal] = Field(None, ge=0)
    is_stock_tracked: bool = False
    stock_quantity: Decimal = Field(Decimal("0"), ge=0)
    minimum_stock: Decimal = Field(Decimal("0"), ge=0)
    maximum_stock: Decimal = Field(Decimal("0"), ge=0)
    category: Optional[str] = Field(None, max_length=100)
    brand: Optional[str] = Field(None, max_length=100)
    type: ProductType = ProductType.PHYSICAL
    is_for_sale: bool = True

    @model_validator(mode="after")
    def validate_stock_levels(self):
        if self.is_stock_tracked and self.maximum_stock and self.maximum_stock < self.minimum_stock:
            raise ValueError("maximum_stock must be greater than or equal to minimum_stock")
        return self


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=500)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    cost_price: Optional[Decimal] = Field(None, ge=0)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    is_for_sale: Optional[bool] = None
    is_active: Optional[bool] = None


class StockAdjustment(BaseModel):
    quantity: Decimal = Field(..., gt=0, description="Unidades que ingresan al stock")


class ProductOut(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    display_name: str
    description: Optional[str] = None
    product_code: Optional[str] = None
    barcode: Optional[str] = None
    unit_price: Money
    cost_price: Money
    tax_rate: Decimal
    price_with_tax: Money
    profit_margin: Decimal
    unit: str
    weight: Optional[Decimal] = None
    is_stock_tracked: bool
    stock_quantity: Decimal
    minimum_stock: Decimal
    maximum_stock: Decimal
    is_stock_critical: bool
    category: Optional[str] = None
    brand: Optional[str] = None
    type: ProductType
    is_active: bool
    is_for_sale: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
