"""
Unidad de trabajo

Agrupa una Session y los repositorios que la comparten. Una mutación de
factura y sus efectos (stock, deuda del cliente) se confirman juntos en
commit() o se descartan juntos en rollback().
"""
from contextlib import contextmanager
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
import logging

from tenant_billing.database.database import SessionLocal
from tenant_billing.database.repository import (
    CompanyRepository, UserRepository, CustomerRepository, ProductRepository,
    InvoiceRepository, InvoiceSequenceRepository
)
from tenant_billing.common.exceptions import ConcurrencyError, TransactionError

logger = logging.getLogger(__name__)


class UnitOfWork:
    def __init__(self, session_factory=SessionLocal):
        self.db: Session = session_factory()
        self._active = False

        self.companies = CompanyRepository(self.db)
        self.users = UserRepository(self.db)
        self.customers = CustomerRepository(self.db)
        self.products = ProductRepository(self.db)
        self.invoices = InvoiceRepository(self.db)
        self.sequences = InvoiceSequenceRepository(self.db)

    @property
    def in_transaction(self) -> bool:
        return self._active

    def begin(self):
        if self._active:
            raise TransactionError("A transaction is already active on this unit of work.")
        self._active = True

    def commit(self):
        if not self._active:
            raise TransactionError("There is no active transaction to commit.")
        try:
            self.db.flush()
            self.db.commit()
        except StaleDataError as e:
            logger.warning(f"Optimistic concurrency conflict on commit: {e}")
            self.db.rollback()
            raise ConcurrencyError(message="The record was modified by another transaction.") from e
        except Exception:
            self.db.rollback()
            raise
        finally:
            self._active = False

    def rollback(self):
        self.db.rollback()
        self._active = False

    @contextmanager
    def transaction(self):
        """
        with uow.transaction():
            ...  # commit al salir, rollback si se levanta una excepción
        """
        self.begin()
        try:
            yield self
        except Exception:
            self.rollback()
            raise
        self.commit()

    def close(self):
        if self._active:
            self.rollback()
        self.db.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def get_uow():
    """Dependency para FastAPI: una unidad de trabajo por request"""
    uow = UnitOfWork()
    try:
        yield uow
    finally:
        uow.close()
