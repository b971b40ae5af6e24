from fastapi import APIRouter, Query, status
from typing import List, Optional
from uuid import UUID

from tenant_billing.dependencies.companyDependencies import Actor, TenantId
from tenant_billing.dependencies.uowDependencies import uow_dependency
from tenant_billing.modules.products.service import ProductService
from tenant_billing.modules.products.schemas import ProductCreate, ProductOut, ProductUpdate, StockAdjustment

product_router = APIRouter(prefix="/products", tags=["Products"])


@product_router.post("/", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(product: ProductCreate, tenant_id: TenantId, uow: uow_dependency, actor: Actor):
    return ProductService(uow).create_product(tenant_id, product, actor)


@product_router.get("/", response_model=List[ProductOut])
def list_products(
    tenant_id: TenantId,
    uow: uow_dependency,
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
):
    return ProductService(uow).list_products(tenant_id, limit, offset)


@product_router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: UUID, tenant_id: TenantId, uow: uow_dependency):
    return ProductService(uow).get_product(product_id, tenant_id)


@product_router.patch("/{product_id}", response_model=ProductOut)
def update_product(product_id: UUID, product: ProductUpdate, tenant_id: TenantId,
                   uow: uow_dependency, actor: Actor):
    return ProductService(uow).update_product(product_id, tenant_id, product, actor)


@product_router.post("/{product_id}/stock", response_model=ProductOut)
def add_stock(product_id: UUID, adjustment: StockAdjustment, tenant_id: TenantId,
              uow: uow_dependency, actor: Actor):
    """Ingreso de unidades al inventario (solo productos con control de stock)"""
    return ProductService(uow).add_stock(product_id, tenant_id, adjustment.quantity, actor)


@product_router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(product_id: UUID, tenant_id: TenantId, uow: uow_dependency, actor: Actor):
    ProductService(uow).delete_product(product_id, tenant_id, actor)
