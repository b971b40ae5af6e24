from fastapi import APIRouter, status
from uuid import UUID

from tenant_billing.dependencies.companyDependencies import Actor
from tenant_billing.dependencies.uowDependencies import uow_dependency
from tenant_billing.modules.company.service import CompanyService
from tenant_billing.modules.company.schemas import CompanyCreate, CompanyOut, CompanyUpdate

company_router = APIRouter(prefix="/companies", tags=["Companies"])


@company_router.post("/", response_model=CompanyOut, status_code=status.HTTP_201_CREATED)
def create_company(company: CompanyCreate, uow: uow_dependency, actor: Actor):
    """Registrar una nueva empresa (tenant)"""
    return CompanyService(uow).create_company(company, actor)


@company_router.get("/{company_id}", response_model=CompanyOut)
def get_company(company_id: UUID, uow: uow_dependency):
    return CompanyService(uow).get_company(company_id)


@company_router.patch("/{company_id}", response_model=CompanyOut)
def update_company(company_id: UUID, company: CompanyUpdate, uow: uow_dependency, actor: Actor):
    return CompanyService(uow).update_company(company_id, company, actor)


@company_router.post("/{company_id}/activate", response_model=CompanyOut)
def activate_company(company_id: UUID, uow: uow_dependency, actor: Actor):
    return CompanyService(uow).activate_company(company_id, actor)


@company_router.post("/{company_id}/deactivate", response_model=CompanyOut)
def deactivate_company(company_id: UUID, uow: uow_dependency, actor: Actor):
    """
    Desactivar empresa

    Una empresa inactiva no puede emitir facturas ni registrar clientes o productos.
    """
    return CompanyService(uow).deactivate_company(company_id, actor)


@company_router.delete("/{company_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_company(company_id: UUID, uow: uow_dependency, actor: Actor):
    """Eliminación lógica; falla si la empresa todavía tiene registros"""
    CompanyService(uow).delete_company(company_id, actor)
