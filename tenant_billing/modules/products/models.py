from tenant_billing.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, Numeric, Enum, UniqueConstraint
from decimal import Decimal
import enum

from tenant_billing.common.mixins import TenantMixin, AuditMixin
from tenant_billing.common.audit import touch
from tenant_billing.core.config import settings
from tenant_billing.core.money import ZERO, HUNDRED, STORAGE_SCALE, to_decimal, percent_of


class ProductType(enum.Enum):
    PHYSICAL = "physical"  # Producto físico, admite control de stock
    SERVICE = "service"    # Servicio, normalmente sin stock
    DIGITAL = "digital"    # Digital, venta ilimitada


class Product(Base, TenantMixin, AuditMixin):
    __tablename__ = "products"

    name = Column(String(200), nullable=False)
    description = Column(String(500), nullable=True)
    product_code = Column(String(50), nullable=True)  # SKU
    barcode = Column(String(50), nullable=True)

    # Precios
    unit_price = Column(Numeric(28, STORAGE_SCALE), nullable=False, default=0)  # Precio de venta sin impuestos
    cost_price = Column(Numeric(28, STORAGE_SCALE), nullable=False, default=0)
    tax_rate = Column(Numeric(18, STORAGE_SCALE), nullable=False, default=settings.DEFAULT_TAX_RATE)  # %

    # Medidas
    unit = Column(String(20), nullable=False, default=settings.DEFAULT_UNIT)
    weight = Column(Numeric(12, 4), nullable=True)  # KG

    # Stock
    is_stock_tracked = Column(Boolean, nullable=False, default=False)
    stock_quantity = Column(Numeric(28, STORAGE_SCALE), nullable=False, default=0)
    minimum_stock = Column(Numeric(28, STORAGE_SCALE), nullable=False, default=0)
    maximum_stock = Column(Numeric(28, STORAGE_SCALE), nullable=False, default=0)

    # Clasificación y estado
    category = Column(String(100), nullable=True)
    brand = Column(String(100), nullable=True)
    type = Column(Enum(ProductType), nullable=False, default=ProductType.PHYSICAL)
    is_active = Column(Boolean, nullable=False, default=True)
    is_for_sale = Column(Boolean, nullable=False, default=True)

    created_by = Column(String(100), nullable=False, default="system")
    updated_by = Column(String(100), nullable=True)

    version_id = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "product_code", name="uq_product_tenant_code"),
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.product_code})" if self.product_code else self.name

    @property
    def profit_amount(self) -> Decimal:
        return to_decimal(self.unit_price) - to_decimal(self.cost_price)

    @property
    def profit_margin(self) -> Decimal:
        """Margen sobre costo en %"""
        cost = to_decimal(self.cost_price)
        if cost <= ZERO:
            return ZERO
        return self.profit_amount / cost * HUNDRED

    @property
    def tax_amount(self) -> Decimal:
        return percent_of(self.unit_price, self.tax_rate)

    @property
    def price_with_tax(self) -> Decimal:
        return to_decimal(self.unit_price) + self.tax_amount

    @property
    def is_stock_critical(self) -> bool:
        return bool(self.is_stock_tracked) and to_decimal(self.stock_quantity) <= to_decimal(self.minimum_stock)

    @property
    def is_in_stock(self) -> bool:
        return not self.is_stock_tracked or to_decimal(self.stock_quantity) > ZERO

    @property
    def can_be_sold(self) -> bool:
        return bool(self.is_active) and bool(self.is_for_sale) and not self.is_deleted and self.is_in_stock

    def can_sell(self, quantity) -> bool:
        if not (self.is_active and self.is_for_sale) or self.is_deleted:
            return False
        if self.is_stock_tracked:
            return to_decimal(self.stock_quantity) >= to_decimal(quantity)
        # Sin control de stock la venta es ilimitada
        return True

    def has_valid_pricing(self) -> bool:
        return (
            to_decimal(self.unit_price) >= ZERO
            and to_decimal(self.cost_price) >= ZERO
            and to_decimal(self.tax_rate) >= ZERO
        )

    def has_valid_stock_levels(self) -> bool:
        if not self.is_stock_tracked:
            return True
        minimum = to_decimal(self.minimum_stock)
        return (
            minimum >= ZERO
            and to_decimal(self.maximum_stock) >= minimum
            and to_decimal(self.stock_quantity) >= ZERO
        )

    # ----- Stock -----

    def add_stock(self, quantity) -> bool:
        quantity = to_decimal(quantity)
        if not self.is_stock_tracked or quantity <= ZERO:
            return False
        self.stock_quantity = to_decimal(self.stock_quantity) + quantity
        touch(self)
        return True

    def reduce_stock(self, quantity) -> bool:
        quantity = to_decimal(quantity)
        current = to_decimal(self.stock_quantity)
        if not self.is_stock_tracked or quantity <= ZERO or current < quantity:
            return False
        self.stock_quantity = current - quantity
        touch(self)
        return True

    def update_stock(self, quantity) -> bool:
        if not self.is_stock_tracked:
            return False
        self.stock_quantity = to_decimal(quantity)
        touch(self)
        return True

    def enable_stock_tracking(self, initial_stock=0):
        self.is_stock_tracked = True
        self.stock_quantity = to_decimal(initial_stock)
        touch(self)

    def disable_stock_tracking(self):
        self.is_stock_tracked = False
        self.stock_quantity = ZERO
        touch(self)

    # ----- Estado y precios -----

    def activate(self):
        self.is_active = True
        touch(self)

    def deactivate(self):
        self.is_active = False
        touch(self)

    def start_selling(self):
        self.is_for_sale = True
        touch(self)

    def stop_selling(self):
        self.is_for_sale = False
        touch(self)

    def update_price(self, new_price):
        self.unit_price = to_decimal(new_price)
        touch(self)

    def update_cost_price(self, new_cost):
        self.cost_price = to_decimal(new_cost)
        touch(self)

    def update_tax_rate(self, new_rate):
        self.tax_rate = to_decimal(new_rate)
        touch(self)
