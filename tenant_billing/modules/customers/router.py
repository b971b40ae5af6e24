from fastapi import APIRouter, Query, status
from typing import List, Optional
from uuid import UUID

from tenant_billing.dependencies.companyDependencies import Actor, TenantId
from tenant_billing.dependencies.uowDependencies import uow_dependency
from tenant_billing.modules.customers.service import CustomerService
from tenant_billing.modules.customers.schemas import CustomerCreate, CustomerOut, CustomerUpdate, DebtPayment

customers_router = APIRouter(prefix="/customers", tags=["Customers"])


@customers_router.post("/", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
def create_customer(customer: CustomerCreate, tenant_id: TenantId, uow: uow_dependency, actor: Actor):
    return CustomerService(uow).create_customer(tenant_id, customer, actor)


@customers_router.get("/", response_model=List[CustomerOut])
def list_customers(
    tenant_id: TenantId,
    uow: uow_dependency,
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
):
    return CustomerService(uow).list_customers(tenant_id, limit, offset)


@customers_router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: UUID, tenant_id: TenantId, uow: uow_dependency):
    return CustomerService(uow).get_customer(customer_id, tenant_id)


@customers_router.patch("/{customer_id}", response_model=CustomerOut)
def update_customer(customer_id: UUID, customer: CustomerUpdate, tenant_id: TenantId,
                    uow: uow_dependency, actor: Actor):
    return CustomerService(uow).update_customer(customer_id, tenant_id, customer, actor)


@customers_router.post("/{customer_id}/debt-payments", response_model=CustomerOut)
def pay_customer_debt(customer_id: UUID, payment: DebtPayment, tenant_id: TenantId,
                      uow: uow_dependency, actor: Actor):
    """Registrar un abono a la deuda del cliente"""
    return CustomerService(uow).pay_debt(customer_id, tenant_id, payment.amount, actor)


@customers_router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_customer(customer_id: UUID, tenant_id: TenantId, uow: uow_dependency, actor: Actor):
    CustomerService(uow).delete_customer(customer_id, tenant_id, actor)
