from typing import List
from uuid import UUID
import logging

from tenant_billing.database.unit_of_work import UnitOfWork
from tenant_billing.modules.customers.models import Customer
from tenant_billing.modules.customers.schemas import CustomerCreate, CustomerUpdate
from tenant_billing.modules.invoices.guards import ensure_tenant_active
from tenant_billing.common.exceptions import GuardError, NotFoundError, ValidationError
from tenant_billing.core.config import settings

logger = logging.getLogger(__name__)


class CustomerService:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    def get_customer(self, customer_id: UUID, tenant_id: UUID, for_update: bool = False) -> Customer:
        customer = self.uow.customers.get_by_id(customer_id, tenant_id, for_update=for_update)
        if not customer:
            raise NotFoundError("Customer", customer_id)
        return customer

    def list_customers(self, tenant_id: UUID, limit: int = None, offset: int = 0) -> List[Customer]:
        limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        return self.uow.customers.list(tenant_id, limit=limit, offset=offset)

    def create_customer(self, tenant_id: UUID, data: CustomerCreate, actor: str) -> Customer:
        with self.uow.transaction():
            ensure_tenant_active(self.uow.companies.get_by_id(tenant_id))

            customer = Customer(
                tenant_id=tenant_id,
                created_by=actor,
                **data.model_dump(),
            )
            self.uow.customers.add(customer)

        logger.info(f"Customer {customer.customer_number} created for tenant {tenant_id}")
        return customer

    def update_customer(self, customer_id: UUID, tenant_id: UUID, data: CustomerUpdate, actor: str) -> Customer:
        changes = data.model_dump(exclude_unset=True)
        with self.uow.transaction():
            customer = self.get_customer(customer_id, tenant_id, for_update=True)
            if "credit_limit" in changes:
                customer.update_credit_limit(changes.pop("credit_limit"))
            if "is_vip" in changes:
                if changes.pop("is_vip"):
                    customer.mark_as_vip()
                else:
                    customer.remove_vip_status()
            for field, value in changes.items():
                setattr(customer, field, value)
            customer.updated_by = actor
            self.uow.customers.update(customer)
        return customer

    def pay_debt(self, customer_id: UUID, tenant_id: UUID, amount, actor: str) -> Customer:
        """Abono directo a la deuda, fuera de una factura"""
        with self.uow.transaction():
            ensure_tenant_active(self.uow.companies.get_by_id(tenant_id))
            customer = self.get_customer(customer_id, tenant_id, for_update=True)
            if not customer.pay_debt(amount):
                raise ValidationError.for_field(
                    "amount", f"Amount must be positive and not exceed the current debt of {customer.current_debt}."
                )
            customer.updated_by = actor

        logger.info(f"Customer {customer_id} paid {amount} of debt, remaining {customer.current_debt}")
        return customer

    def delete_customer(self, customer_id: UUID, tenant_id: UUID, actor: str) -> None:
        with self.uow.transaction():
            customer = self.get_customer(customer_id, tenant_id, for_update=True)
            if customer.has_debt:
                raise GuardError(
                    "customer_has_debt",
                    "Customer with outstanding debt cannot be deleted.",
                    customer_id=customer_id,
                    current_debt=customer.current_debt,
                )
            customer.updated_by = actor
            self.uow.customers.soft_delete(customer)
        logger.info(f"Customer {customer_id} deleted by {actor}")
