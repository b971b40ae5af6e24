from tenant_billing.database.database import Base
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, Enum, Date, Text
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID as PyUUID
import enum

from tenant_billing.common.mixins import TenantMixin, AuditMixin
from tenant_billing.common.audit import touch, utcnow
from tenant_billing.common.exceptions import StateError
from tenant_billing.core.config import settings
from tenant_billing.core.money import ZERO, STORAGE_SCALE, to_decimal, is_zero, quantize_storage
from tenant_billing.modules.invoices.calculator import (
    LineAmounts, calculate_line, line_subtotal, discount_from_rate, rate_from_discount
)

# Importes y cantidades se persisten a la misma escala con la que se cuantizan
AMOUNT = Numeric(28, STORAGE_SCALE)
RATE = Numeric(18, STORAGE_SCALE)


class InvoiceStatus(enum.Enum):
    DRAFT = "draft"          # Borrador, editable, no afecta stock ni deuda
    SENT = "sent"            # Emitida al cliente, pendiente de pago
    PAID = "paid"            # Pagada completamente
    OVERDUE = "overdue"      # Vencida sin pago completo
    CANCELLED = "cancelled"  # Anulada


class PaymentMethod(enum.Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"
    CHECK = "check"
    OTHER = "other"


def format_invoice_number(year: int, sequence: int, prefix: Optional[str] = None) -> str:
    """INV-2024-000001"""
    return f"{prefix or settings.INVOICE_NUMBER_PREFIX}-{year}-{sequence:06d}"


def default_due_date() -> date:
    return date.today() + timedelta(days=settings.DEFAULT_DUE_DAYS)


class Invoice(Base, TenantMixin, AuditMixin):
    __tablename__ = "invoices"

    # Referencias
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)

    # Datos de la factura
    invoice_number = Column(String(50), unique=True, nullable=True)  # Asignado una sola vez
    invoice_date = Column(Date, nullable=False, default=date.today)
    due_date = Column(Date, nullable=False, default=default_due_date)
    status = Column(Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.DRAFT, index=True)
    description = Column(Text, nullable=True)

    # Snapshot del cliente al momento de crear la factura
    customer_name = Column(String(200), nullable=False, default="")
    customer_address = Column(String(500), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    customer_email = Column(String(100), nullable=True)
    customer_tax_number = Column(String(50), nullable=True)

    # Totales (derivados, solo los escribe recalculate_totals)
    _subtotal = Column("subtotal", AMOUNT, nullable=False, default=0)
    _total_discount = Column("total_discount", AMOUNT, nullable=False, default=0)
    _total_tax = Column("total_tax", AMOUNT, nullable=False, default=0)
    _grand_total = Column("grand_total", AMOUNT, nullable=False, default=0)

    # Pago
    paid_amount = Column(AMOUNT, nullable=False, default=0)
    payment_method = Column(Enum(PaymentMethod), nullable=True)
    payment_date = Column(Date, nullable=True)

    # Auditoría
    created_by = Column(String(100), nullable=False, default="system")
    updated_by = Column(String(100), nullable=True)
    sent_by = Column(String(100), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    version_id = Column(Integer, nullable=False)

    # Relaciones
    items = relationship(
        "InvoiceItem", back_populates="invoice", cascade="all, delete-orphan",
        order_by="InvoiceItem.created_at", lazy="selectin"
    )
    payments = relationship(
        "Payment", back_populates="invoice", cascade="all, delete-orphan",
        order_by="Payment.created_at", lazy="selectin"
    )

    __mapper_args__ = {"version_id_col": version_id}

    # ===== Totales =====

    @property
    def subtotal(self) -> Decimal:
        """Suma de importes después de descuento, sin impuestos"""
        return to_decimal(self._subtotal)

    @property
    def total_discount(self) -> Decimal:
        return to_decimal(self._total_discount)

    @property
    def total_tax(self) -> Decimal:
        return to_decimal(self._total_tax)

    @property
    def grand_total(self) -> Decimal:
        return to_decimal(self._grand_total)

    @property
    def remaining_amount(self) -> Decimal:
        return self.grand_total - to_decimal(self.paid_amount)

    @property
    def is_fully_paid(self) -> bool:
        return is_zero(self.remaining_amount)

    @property
    def is_partially_paid(self) -> bool:
        return to_decimal(self.paid_amount) > ZERO and not self.is_fully_paid

    @property
    def is_unpaid(self) -> bool:
        return to_decimal(self.paid_amount) == ZERO

    def is_past_due(self, today: Optional[date] = None) -> bool:
        return (today or date.today()) > self.due_date and not self.is_fully_paid

    @property
    def is_overdue(self) -> bool:
        return self.is_past_due()

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def average_item_amount(self) -> Decimal:
        return self.subtotal / self.item_count if self.item_count else ZERO

    # ===== Guards del ciclo de vida =====

    @property
    def can_be_edited(self) -> bool:
        return self.status == InvoiceStatus.DRAFT and not self.is_deleted

    @property
    def can_be_sent(self) -> bool:
        return self.status == InvoiceStatus.DRAFT and len(self.items) > 0 and not self.is_deleted

    @property
    def can_be_cancelled(self) -> bool:
        return (
            self.status not in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED)
            and not self.is_deleted
        )

    # ===== Transiciones =====

    def assign_number(self, sequence: int):
        if self.invoice_number:
            raise StateError(self.status, "renumber")
        self.invoice_number = format_invoice_number(self.invoice_date.year, sequence)
        touch(self)

    def mark_as_sent(self, sent_by: str):
        if not self.can_be_sent:
            raise StateError(self.status, "send")
        self.status = InvoiceStatus.SENT
        self.sent_by = sent_by
        self.sent_at = utcnow()
        touch(self)

    def mark_as_paid(self, amount, method: PaymentMethod, payment_date: Optional[date] = None):
        """Registrar el monto pagado acumulado.

        No valida el monto contra el total: un pago parcial deja el estado
        como está y solo un pago completo pasa la factura a PAID.
        """
        self.paid_amount = quantize_storage(amount)
        self.payment_method = method
        self.payment_date = payment_date or date.today()
        if self.is_fully_paid:
            self.status = InvoiceStatus.PAID
        touch(self)

    def check_overdue_status(self, today: Optional[date] = None) -> bool:
        """Pasar de SENT a OVERDUE si venció sin pago completo. Idempotente."""
        if self.status == InvoiceStatus.SENT and self.is_past_due(today):
            self.status = InvoiceStatus.OVERDUE
            touch(self)
            return True
        return False

    def cancel(self, cancelled_by: str):
        if not self.can_be_cancelled:
            raise StateError(self.status, "cancel")
        self.status = InvoiceStatus.CANCELLED
        self.updated_by = cancelled_by
        touch(self)

    def set_updated_by(self, updated_by: str):
        self.updated_by = updated_by
        touch(self)

    # ===== Snapshot e items =====

    def copy_customer_info(self, customer):
        self.customer_id = customer.id
        self.customer_name = customer.name
        self.customer_address = customer.address
        self.customer_phone = customer.phone
        self.customer_email = customer.email
        self.customer_tax_number = customer.tax_number
        touch(self)

    def add_item(self, product, quantity, unit_price=None, discount_rate=0) -> "InvoiceItem":
        """Agregar una línea copiando los datos actuales del producto"""
        if not self.can_be_edited:
            raise StateError(self.status, "add items to")
        item = InvoiceItem(
            product_id=product.id,
            product_name=product.name,
            product_code=product.product_code,
            product_description=product.description,
            unit=product.unit,
            weight=product.weight,
            quantity=quantize_storage(quantity),
            unit_price=quantize_storage(product.unit_price if unit_price is None else unit_price),
            discount_rate=quantize_storage(discount_rate),
            tax_rate=quantize_storage(product.tax_rate),
        )
        item.discount_amount = quantize_storage(discount_from_rate(item.subtotal, item.discount_rate))
        self.items.append(item)
        self.recalculate_totals()
        return item

    def find_item(self, item_id: PyUUID) -> Optional["InvoiceItem"]:
        return next((item for item in self.items if item.id == item_id), None)

    def remove_item(self, item_id: PyUUID) -> bool:
        if not self.can_be_edited:
            raise StateError(self.status, "remove items from")
        item = self.find_item(item_id)
        if item is None:
            return False
        self.items.remove(item)
        self.recalculate_totals()
        return True

    def recalculate_totals(self):
        # Depende solo de los datos persistidos de cada línea: recalcular tras
        # recargar desde la base da exactamente los mismos totales
        lines = [item.amounts for item in self.items]
        self._total_discount = quantize_storage(sum((line.discount_amount for line in lines), ZERO))
        self._subtotal = quantize_storage(sum((line.amount_after_discount for line in lines), ZERO))
        self._total_tax = quantize_storage(sum((line.tax_amount for line in lines), ZERO))
        self._grand_total = quantize_storage(sum((line.total for line in lines), ZERO))
        touch(self)

    # ===== Consultas =====

    def is_valid(self, today: Optional[date] = None) -> bool:
        today = today or date.today()
        return (
            bool(self.invoice_number)
            and bool(self.customer_name)
            and len(self.items) > 0
            and all(item.is_valid() for item in self.items)
            and self.invoice_date <= today
            and self.due_date >= self.invoice_date
        )

    def has_product(self, product_id: PyUUID) -> bool:
        return any(item.product_id == product_id for item in self.items)

    def highest_value_item(self) -> Optional["InvoiceItem"]:
        return max(self.items, key=lambda item: item.total, default=None)

    def total_weight(self) -> Decimal:
        return sum(
            (to_decimal(item.quantity) * to_decimal(item.weight) for item in self.items if item.weight is not None),
            ZERO
        )

    def quantities_by_product(self) -> dict:
        totals = {}
        for item in self.items:
            totals[item.product_id] = totals.get(item.product_id, ZERO) + to_decimal(item.quantity)
        return totals


class InvoiceItem(Base, AuditMixin):
    __tablename__ = "invoice_items"

    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False)

    # Snapshot del producto (para preservar información si el producto cambia)
    product_name = Column(String(200), nullable=False)
    product_code = Column(String(50), nullable=True)
    product_description = Column(String(500), nullable=True)
    unit = Column(String(20), nullable=False, default=settings.DEFAULT_UNIT)
    weight = Column(Numeric(12, 4), nullable=True)

    # Datos de la línea
    quantity = Column(AMOUNT, nullable=False)
    unit_price = Column(AMOUNT, nullable=False)
    discount_rate = Column(RATE, nullable=False, default=0)  # %
    discount_amount = Column(AMOUNT, nullable=False, default=0)
    tax_rate = Column(RATE, nullable=False, default=settings.DEFAULT_TAX_RATE)  # %

    # Relaciones
    invoice = relationship("Invoice", back_populates="items")

    @property
    def amounts(self) -> LineAmounts:
        return calculate_line(self.quantity, self.unit_price, self.discount_amount, self.tax_rate)

    @property
    def subtotal(self) -> Decimal:
        return line_subtotal(self.quantity, self.unit_price)

    @property
    def amount_after_discount(self) -> Decimal:
        return self.amounts.amount_after_discount

    @property
    def tax_amount(self) -> Decimal:
        return self.amounts.tax_amount

    @property
    def total(self) -> Decimal:
        return self.amounts.total

    @property
    def effective_unit_price(self) -> Decimal:
        return self.amounts.effective_unit_price

    # Los updates rechazados devuelven False y dejan la línea intacta;
    # el error para el caller lo levanta la capa de servicio.

    def update_quantity(self, new_quantity) -> bool:
        new_quantity = quantize_storage(new_quantity)
        if new_quantity <= ZERO:
            return False
        previous_subtotal = self.subtotal
        self.quantity = new_quantity
        self._rescale_discount_amount(previous_subtotal)
        touch(self)
        return True

    def update_unit_price(self, new_unit_price) -> bool:
        new_unit_price = quantize_storage(new_unit_price)
        if new_unit_price < ZERO:
            return False
        previous_subtotal = self.subtotal
        self.unit_price = new_unit_price
        self._rescale_discount_amount(previous_subtotal)
        touch(self)
        return True

    def update_discount_rate(self, new_rate) -> bool:
        new_rate = quantize_storage(new_rate)
        if new_rate < ZERO or new_rate > Decimal("100"):
            return False
        self.discount_rate = new_rate
        self.discount_amount = quantize_storage(discount_from_rate(self.subtotal, new_rate))
        touch(self)
        return True

    def update_discount_amount(self, new_amount) -> bool:
        new_amount = quantize_storage(new_amount)
        if new_amount < ZERO or new_amount > self.subtotal:
            return False
        self.discount_amount = new_amount
        self.discount_rate = quantize_storage(rate_from_discount(self.subtotal, new_amount))
        touch(self)
        return True

    def update_tax_rate(self, new_rate) -> bool:
        new_rate = quantize_storage(new_rate)
        if new_rate < ZERO:
            return False
        self.tax_rate = new_rate
        touch(self)
        return True

    def _rescale_discount_amount(self, previous_subtotal: Decimal):
        """Re-derivar el descuento para el nuevo subtotal con la misma tasa.

        La tasa persistida puede venir truncada (33.3333333333 para un descuento
        de 100 sobre 300), así que se aplica como proporción del descuento
        anterior; solo se usa la tasa cuando el subtotal anterior era cero.
        """
        if previous_subtotal > ZERO:
            amount = to_decimal(self.discount_amount) * self.subtotal / previous_subtotal
        else:
            amount = discount_from_rate(self.subtotal, self.discount_rate)
        self.discount_amount = quantize_storage(amount)

    def is_valid(self) -> bool:
        discount = to_decimal(self.discount_amount)
        return (
            to_decimal(self.quantity) > ZERO
            and to_decimal(self.unit_price) >= ZERO
            and ZERO <= discount <= self.subtotal
            and to_decimal(self.tax_rate) >= ZERO
            and bool(self.product_name)
        )

    def has_discount(self) -> bool:
        return to_decimal(self.discount_amount) > ZERO or to_decimal(self.discount_rate) > ZERO

    def has_tax(self) -> bool:
        return to_decimal(self.tax_rate) > ZERO


class Payment(Base, TenantMixin, AuditMixin):
    __tablename__ = "payments"

    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = Column(AMOUNT, nullable=False)
    method = Column(Enum(PaymentMethod), nullable=False)
    reference = Column(String(100), nullable=True)  # Número de referencia, cheque, etc.
    payment_date = Column(Date, nullable=False, default=date.today)
    notes = Column(Text, nullable=True)
    created_by = Column(String(100), nullable=False, default="system")

    # Relaciones
    invoice = relationship("Invoice", back_populates="payments")


class InvoiceSequence(Base, AuditMixin):
    """Secuencia global de numeración por año (los números son únicos en todo el sistema)"""
    __tablename__ = "invoice_sequences"

    year = Column(Integer, unique=True, nullable=False)
    current_number = Column(Integer, nullable=False, default=0)

    def next_number(self) -> int:
        self.current_number = (self.current_number or 0) + 1
        touch(self)
        return self.current_number
