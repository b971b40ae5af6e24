from fastapi import APIRouter, Query, status
from typing import List, Optional
from uuid import UUID
from datetime import date

from tenant_billing.dependencies.companyDependencies import Actor, TenantId
from tenant_billing.dependencies.uowDependencies import uow_dependency
from tenant_billing.modules.invoices.service import InvoiceService
from tenant_billing.modules.invoices.models import InvoiceStatus
from tenant_billing.modules.invoices.schemas import (
    InvoiceCreate, InvoiceOut, InvoiceDetail, InvoiceList, InvoiceFilters,
    InvoiceItemCreate, InvoiceItemUpdate, InvoiceCancelRequest, PaymentCreate, PaymentOut
)

# Router principal del módulo de facturas
router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.post("/", response_model=InvoiceDetail, status_code=status.HTTP_201_CREATED)
def create_invoice(invoice_data: InvoiceCreate, tenant_id: TenantId, uow: uow_dependency, actor: Actor):
    """
    Crear una nueva factura en borrador

    El número se asigna al crear; stock y deuda no cambian hasta emitirla.
    """
    return InvoiceService(uow).create_invoice(tenant_id, invoice_data, actor)


@router.get("/", response_model=InvoiceList)
def list_invoices(
    tenant_id: TenantId,
    uow: uow_dependency,
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    customer_id: Optional[UUID] = Query(None, description="Filtrar por cliente"),
    status: Optional[InvoiceStatus] = Query(None, description="Estado de la factura"),
    start_date: Optional[date] = Query(None, description="Fecha inicial (YYYY-MM-DD)"),
    end_date: Optional[date] = Query(None, description="Fecha final (YYYY-MM-DD)"),
):
    filters = InvoiceFilters(
        status=status,
        customer_id=customer_id,
        date_from=start_date,
        date_to=end_date,
    )
    return InvoiceService(uow).list_invoices(tenant_id, filters, limit, offset)


@router.post("/check-overdue", response_model=List[InvoiceOut])
def check_overdue_invoices(tenant_id: TenantId, uow: uow_dependency):
    """Marcar como vencidas las facturas enviadas fuera de plazo"""
    return InvoiceService(uow).check_overdue_invoices(tenant_id)


@router.get("/{invoice_id}", response_model=InvoiceDetail)
def get_invoice(invoice_id: UUID, tenant_id: TenantId, uow: uow_dependency):
    return InvoiceService(uow).get_invoice(invoice_id, tenant_id)


@router.post("/{invoice_id}/items", response_model=InvoiceDetail, status_code=status.HTTP_201_CREATED)
def add_invoice_item(invoice_id: UUID, item_data: InvoiceItemCreate, tenant_id: TenantId,
                     uow: uow_dependency, actor: Actor):
    item = InvoiceService(uow).add_item(invoice_id, tenant_id, item_data, actor)
    return item.invoice


@router.patch("/{invoice_id}/items/{item_id}", response_model=InvoiceDetail)
def update_invoice_item(invoice_id: UUID, item_id: UUID, item_data: InvoiceItemUpdate,
                        tenant_id: TenantId, uow: uow_dependency, actor: Actor):
    item = InvoiceService(uow).update_item(invoice_id, item_id, tenant_id, item_data, actor)
    return item.invoice


@router.delete("/{invoice_id}/items/{item_id}", response_model=InvoiceDetail)
def remove_invoice_item(invoice_id: UUID, item_id: UUID, tenant_id: TenantId,
                        uow: uow_dependency, actor: Actor):
    return InvoiceService(uow).remove_item(invoice_id, item_id, tenant_id, actor)


@router.post("/{invoice_id}/send", response_model=InvoiceDetail)
def send_invoice(invoice_id: UUID, tenant_id: TenantId, uow: uow_dependency, actor: Actor):
    """
    Emitir factura

    Descuenta stock y suma el total a la deuda del cliente en la misma transacción.
    """
    return InvoiceService(uow).send_invoice(invoice_id, tenant_id, actor)


@router.post("/{invoice_id}/payments", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
def add_payment(invoice_id: UUID, payment_data: PaymentCreate, tenant_id: TenantId,
                uow: uow_dependency, actor: Actor):
    return InvoiceService(uow).record_payment(invoice_id, tenant_id, payment_data, actor)


@router.post("/{invoice_id}/cancel", response_model=InvoiceDetail)
def cancel_invoice(invoice_id: UUID, tenant_id: TenantId, uow: uow_dependency, actor: Actor,
                   cancel_data: Optional[InvoiceCancelRequest] = None):
    reason = cancel_data.reason if cancel_data else None
    return InvoiceService(uow).cancel_invoice(invoice_id, tenant_id, actor, reason)


@router.post("/{invoice_id}/check-overdue", response_model=InvoiceOut)
def check_invoice_overdue(invoice_id: UUID, tenant_id: TenantId, uow: uow_dependency):
    return InvoiceService(uow).check_overdue(invoice_id, tenant_id)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(invoice_id: UUID, tenant_id: TenantId, uow: uow_dependency, actor: Actor):
    """Eliminar (lógicamente) una factura en borrador"""
    InvoiceService(uow).delete_invoice(invoice_id, tenant_id, actor)


@router.post("/{invoice_id}/restore", response_model=InvoiceDetail)
def restore_invoice(invoice_id: UUID, tenant_id: TenantId, uow: uow_dependency, actor: Actor):
    return InvoiceService(uow).restore_invoice(invoice_id, tenant_id, actor)
