"""
Tipos compartidos por los esquemas de salida
"""
from decimal import Decimal
from typing import Annotated, Generic, List, TypeVar
from pydantic import BaseModel, PlainSerializer

from tenant_billing.core.money import quantize_money

# Importe redondeado a centavos solo al serializar
Money = Annotated[Decimal, PlainSerializer(quantize_money, return_type=Decimal)]

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    limit: int
    offset: int
