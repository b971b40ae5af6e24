"""
Errores estructurados del dominio de facturación

El core nunca arma mensajes para el usuario final: cada error lleva su
tipo y los valores involucrados, y la capa HTTP (main.py) los traduce.
"""
from typing import Any, Dict, List, Optional


class BillingError(Exception):
    """Base de todos los errores de negocio"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": type(self).__name__, "message": self.message}


class ValidationError(BillingError):
    """Valores de campo mal formados o fuera de rango (campo -> mensajes)"""

    def __init__(self, message: str = "One or more validation errors occurred.",
                 errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.errors: Dict[str, List[str]] = {k: list(v) for k, v in (errors or {}).items()}

    @classmethod
    def for_field(cls, field: str, error: str) -> "ValidationError":
        exc = cls()
        exc.add_error(field, error)
        return exc

    def add_error(self, field: str, error: str) -> None:
        self.errors.setdefault(field, []).append(error)

    def all_errors(self) -> List[str]:
        return [msg for messages in self.errors.values() for msg in messages]

    def has_errors(self) -> bool:
        return any(self.errors.values())

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class NotFoundError(BillingError):
    """El id referenciado no existe (o pertenece a otro tenant, o está eliminado)"""

    def __init__(self, entity: str, key: Any):
        super().__init__(f"{entity} with key '{key}' was not found.")
        self.entity = entity
        self.key = key

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(entity=self.entity, key=str(self.key))
        return data


class GuardError(BillingError):
    """Regla de negocio violada: crédito excedido, producto no vendible, tenant inactivo"""

    def __init__(self, guard: str, message: Optional[str] = None, **values: Any):
        super().__init__(message or f"Guard '{guard}' failed.")
        self.guard = guard
        self.values = values

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(guard=self.guard, values={k: str(v) for k, v in self.values.items()})
        return data


class StateError(BillingError):
    """Transición de estado no permitida en el ciclo de vida de la factura"""

    def __init__(self, current_status: Any, attempted: str):
        status_value = getattr(current_status, "value", current_status)
        super().__init__(f"Cannot {attempted} an invoice in status '{status_value}'.")
        self.current_status = status_value
        self.attempted = attempted

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(current_status=self.current_status, attempted=self.attempted)
        return data


class ConcurrencyError(BillingError):
    """Otra transacción modificó la misma fila antes del commit"""

    def __init__(self, entity: str = "record", message: Optional[str] = None):
        super().__init__(message or f"Concurrent modification detected on {entity}.")
        self.entity = entity


class TransactionError(BillingError):
    """Uso incorrecto de la unidad de trabajo (begin duplicado, commit sin begin)"""
