"""
Repositorios de acceso a datos

Implementa operaciones de base de datos para todos los agregados:
- Lecturas que excluyen siempre los registros eliminados lógicamente
- Filtro por tenant (tenant_id) en las entidades multi-tenant
- Bloqueo de fila (SELECT ... FOR UPDATE) para lecturas que preceden un guard
- Soft delete y restore

Los repositorios no hacen commit: eso es responsabilidad de la unidad de trabajo.
"""

from sqlalchemy.orm import Session
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from typing import Generic, List, Optional, Type, TypeVar
from uuid import UUID
from datetime import date
import logging

from tenant_billing.common.audit import mark_deleted, not_deleted, restore, touch
from tenant_billing.common.exceptions import ConcurrencyError
from tenant_billing.modules.company.models import Company
from tenant_billing.modules.users.models import User
from tenant_billing.modules.customers.models import Customer
from tenant_billing.modules.products.models import Product
from tenant_billing.modules.invoices.models import Invoice, InvoiceSequence, InvoiceStatus

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType")


class Repository(Generic[ModelType]):
    """Operaciones comunes para un modelo mapeado"""

    model: Type[ModelType] = None

    def __init__(self, db: Session):
        self.db = db

    def _query(self, tenant_id: Optional[UUID] = None):
        query = self.db.query(self.model).filter(not_deleted(self.model))
        if tenant_id is not None and hasattr(self.model, "tenant_id"):
            query = query.filter(self.model.tenant_id == tenant_id)
        return query

    def get_by_id(self, entity_id: UUID, tenant_id: Optional[UUID] = None,
                  for_update: bool = False) -> Optional[ModelType]:
        query = self._query(tenant_id).filter(self.model.id == entity_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_deleted_by_id(self, entity_id: UUID, tenant_id: Optional[UUID] = None) -> Optional[ModelType]:
        """Solo registros eliminados lógicamente (para restore)"""
        query = self.db.query(self.model).filter(
            self.model.id == entity_id,
            self.model.is_deleted.is_(True)
        )
        if tenant_id is not None and hasattr(self.model, "tenant_id"):
            query = query.filter(self.model.tenant_id == tenant_id)
        return query.first()

    def list(self, tenant_id: Optional[UUID] = None, limit: Optional[int] = None,
             offset: int = 0, **filters) -> List[ModelType]:
        query = self._query(tenant_id).filter_by(**filters).order_by(self.model.created_at)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count(self, tenant_id: Optional[UUID] = None, **filters) -> int:
        return self._query(tenant_id).filter_by(**filters).count()

    def exists(self, entity_id: UUID, tenant_id: Optional[UUID] = None) -> bool:
        return self._query(tenant_id).filter(self.model.id == entity_id).count() > 0

    def add(self, entity: ModelType) -> ModelType:
        self.db.add(entity)
        return entity

    def update(self, entity: ModelType) -> ModelType:
        touch(entity)
        self.db.add(entity)
        return entity

    def soft_delete(self, entity: ModelType) -> ModelType:
        mark_deleted(entity)
        return entity

    def restore(self, entity: ModelType) -> ModelType:
        restore(entity)
        return entity


class CompanyRepository(Repository[Company]):
    model = Company

    def get_by_tax_number(self, tax_number: str) -> Optional[Company]:
        # Incluye eliminadas: el número de impuesto es único en la tabla
        return self.db.query(Company).filter(Company.tax_number == tax_number).first()

    def count_dependents(self, company_id: UUID) -> int:
        """Usuarios, clientes, productos y facturas vivos del tenant"""
        return sum(
            self.db.query(func.count(model.id)).filter(
                model.tenant_id == company_id,
                not_deleted(model)
            ).scalar()
            for model in (User, Customer, Product, Invoice)
        )


class UserRepository(Repository[User]):
    model = User

    def get_by_email(self, email: str) -> Optional[User]:
        return self._query().filter(func.lower(User.email) == email.lower()).first()


class CustomerRepository(Repository[Customer]):
    model = Customer

    def search(self, tenant_id: UUID, term: str, limit: int = 20) -> List[Customer]:
        pattern = f"%{term}%"
        return self._query(tenant_id).filter(
            Customer.name.ilike(pattern)
        ).order_by(Customer.name).limit(limit).all()


class ProductRepository(Repository[Product]):
    model = Product

    def get_by_code(self, tenant_id: UUID, product_code: str) -> Optional[Product]:
        return self._query(tenant_id).filter(Product.product_code == product_code).first()

    def get_many_by_ids(self, ids, tenant_id: UUID, for_update: bool = False) -> List[Product]:
        ids = list(ids)
        if not ids:
            return []
        # Orden estable de bloqueo para evitar deadlocks entre transacciones
        query = self._query(tenant_id).filter(Product.id.in_(ids)).order_by(Product.id)
        if for_update:
            query = query.with_for_update()
        return query.all()

    def list_critical_stock(self, tenant_id: UUID) -> List[Product]:
        return self._query(tenant_id).filter(
            Product.is_stock_tracked.is_(True),
            Product.stock_quantity <= Product.minimum_stock
        ).all()


class InvoiceRepository(Repository[Invoice]):
    model = Invoice

    def get_by_number(self, invoice_number: str, tenant_id: Optional[UUID] = None) -> Optional[Invoice]:
        return self._query(tenant_id).filter(Invoice.invoice_number == invoice_number).first()

    def search(self, tenant_id: UUID, status: Optional[InvoiceStatus] = None,
               customer_id: Optional[UUID] = None, date_from: Optional[date] = None,
               date_to: Optional[date] = None, limit: int = 20, offset: int = 0):
        """Listado filtrado, devuelve (facturas, total)"""
        query = self._query(tenant_id)
        if status is not None:
            query = query.filter(Invoice.status == status)
        if customer_id is not None:
            query = query.filter(Invoice.customer_id == customer_id)
        if date_from is not None:
            query = query.filter(Invoice.invoice_date >= date_from)
        if date_to is not None:
            query = query.filter(Invoice.invoice_date <= date_to)

        total = query.count()
        invoices = query.order_by(Invoice.invoice_date.desc(), Invoice.invoice_number.desc()) \
            .offset(offset).limit(limit).all()
        return invoices, total

    def list_past_due(self, tenant_id: UUID, today: date) -> List[Invoice]:
        """Facturas enviadas con vencimiento anterior a `today`"""
        return self._query(tenant_id).filter(
            Invoice.status == InvoiceStatus.SENT,
            Invoice.due_date < today
        ).with_for_update().all()

    def count_for_customer(self, customer_id: UUID) -> int:
        return self._query().filter(Invoice.customer_id == customer_id).count()


class InvoiceSequenceRepository(Repository[InvoiceSequence]):
    model = InvoiceSequence

    def get_for_year(self, year: int, for_update: bool = True) -> Optional[InvoiceSequence]:
        query = self.db.query(InvoiceSequence).filter(InvoiceSequence.year == year)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def next_number(self, year: int) -> int:
        """Siguiente número de la secuencia del año, creándola si no existe"""
        sequence = self.get_for_year(year)
        if sequence is None:
            # La primera factura del año no tiene fila que bloquear: si otra
            # transacción la crea antes, gana UNIQUE(year) y el caller reintenta
            sequence = InvoiceSequence(year=year, current_number=0)
            self.db.add(sequence)
            try:
                self.db.flush()
            except IntegrityError as e:
                logger.warning(f"Invoice sequence for {year} created concurrently: {e}")
                raise ConcurrencyError(
                    "InvoiceSequence", f"The invoice sequence for {year} was created by another transaction."
                ) from e
        return sequence.next_number()
