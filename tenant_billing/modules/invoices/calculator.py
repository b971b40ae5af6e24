"""
Cálculo de importes por línea de factura

    subtotal              = cantidad × precio unitario
    descuento             = subtotal × tasa / 100   (o fijado directamente)
    base                  = subtotal − descuento
    impuesto              = base × tasa de impuesto / 100
    total                 = base + impuesto
    precio unitario neto  = base / cantidad

Sin redondeos intermedios: todo a precisión completa de Decimal.
"""

from dataclasses import dataclass
from decimal import Decimal

from tenant_billing.core.money import ZERO, HUNDRED, Number, to_decimal, percent_of


@dataclass(frozen=True)
class LineAmounts:
    subtotal: Decimal
    discount_amount: Decimal
    amount_after_discount: Decimal
    tax_amount: Decimal
    total: Decimal
    effective_unit_price: Decimal


def line_subtotal(quantity: Number, unit_price: Number) -> Decimal:
    return to_decimal(quantity) * to_decimal(unit_price)


def discount_from_rate(subtotal: Number, discount_rate: Number) -> Decimal:
    return percent_of(subtotal, discount_rate)


def rate_from_discount(subtotal: Number, discount_amount: Number) -> Decimal:
    """Tasa equivalente a un descuento fijado en monto (0 si el subtotal es 0)"""
    subtotal = to_decimal(subtotal)
    if subtotal == ZERO:
        return ZERO
    return to_decimal(discount_amount) / subtotal * HUNDRED


def calculate_line(quantity: Number, unit_price: Number, discount_amount: Number,
                   tax_rate: Number) -> LineAmounts:
    quantity = to_decimal(quantity)
    subtotal = line_subtotal(quantity, unit_price)
    discount = to_decimal(discount_amount)
    base = subtotal - discount
    tax = percent_of(base, tax_rate)
    return LineAmounts(
        subtotal=subtotal,
        discount_amount=discount,
        amount_after_discount=base,
        tax_amount=tax,
        total=base + tax,
        effective_unit_price=base / quantity if quantity > ZERO else ZERO,
    )
