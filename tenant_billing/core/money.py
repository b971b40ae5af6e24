"""
Aritmética monetaria exacta

Todo importe se maneja como Decimal (base 10, sin coma flotante binaria).
Los cálculos se llevan a precisión completa; el redondeo a centavos solo
se aplica al presentar valores (schemas de salida).
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

# Tolerancia para comparaciones de importes ("totalmente pagado", etc.)
MONEY_EPSILON = Decimal("0.01")

# Escala de las columnas Numeric: importes, cantidades y tasas persistidos
STORAGE_SCALE = 10
STORAGE_QUANTUM = Decimal(1).scaleb(-STORAGE_SCALE)


def to_decimal(value: Optional[Number]) -> Decimal:
    """Convertir un valor a Decimal sin pasar por float binario"""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def is_zero(value: Number) -> bool:
    return abs(to_decimal(value)) < MONEY_EPSILON


def money_equals(a: Number, b: Number) -> bool:
    """Igualdad con tolerancia de MONEY_EPSILON"""
    return is_zero(to_decimal(a) - to_decimal(b))


def percent_of(amount: Number, rate: Number) -> Decimal:
    """amount × rate / 100"""
    return to_decimal(amount) * to_decimal(rate) / HUNDRED


def quantize_money(value: Number) -> Decimal:
    """Redondear a centavos (solo para presentación)"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def quantize_storage(value: Number) -> Decimal:
    """Ajustar un valor a la escala con la que se persiste.

    No es un redondeo de presentación: garantiza que lo que queda en memoria
    es exactamente lo que la base de datos devuelve al recargar.
    """
    return to_decimal(value).quantize(STORAGE_QUANTUM, rounding=ROUND_HALF_UP)
