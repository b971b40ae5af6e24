from typing import List
from uuid import UUID
import logging

from tenant_billing.database.unit_of_work import UnitOfWork
from tenant_billing.modules.products.models import Product
from tenant_billing.modules.products.schemas import ProductCreate, ProductUpdate
from tenant_billing.modules.invoices.guards import ensure_tenant_active
from tenant_billing.common.exceptions import NotFoundError, ValidationError
from tenant_billing.core.config import settings

logger = logging.getLogger(__name__)


class ProductService:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    def get_product(self, product_id: UUID, tenant_id: UUID, for_update: bool = False) -> Product:
        product = self.uow.products.get_by_id(product_id, tenant_id, for_update=for_update)
        if not product:
            raise NotFoundError("Product", product_id)
        return product

    def list_products(self, tenant_id: UUID, limit: int = None, offset: int = 0) -> List[Product]:
        limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        return self.uow.products.list(tenant_id, limit=limit, offset=offset)

    def create_product(self, tenant_id: UUID, data: ProductCreate, actor: str) -> Product:
        with self.uow.transaction():
            ensure_tenant_active(self.uow.companies.get_by_id(tenant_id))

            if data.product_code and self.uow.products.get_by_code(tenant_id, data.product_code):
                raise ValidationError.for_field("product_code", "A product with this code already exists.")

            values = data.model_dump(exclude={"is_stock_tracked", "stock_quantity"})
            product = Product(tenant_id=tenant_id, created_by=actor, **values)
            if data.is_stock_tracked:
                product.enable_stock_tracking(data.stock_quantity)
            self.uow.products.add(product)

        logger.info(f"Product {product.display_name} created for tenant {tenant_id}")
        return product

    def update_product(self, product_id: UUID, tenant_id: UUID, data: ProductUpdate, actor: str) -> Product:
        changes = data.model_dump(exclude_unset=True)
        with self.uow.transaction():
            product = self.get_product(product_id, tenant_id, for_update=True)
            if "unit_price" in changes:
                product.update_price(changes["unit_price"])
            if "cost_price" in changes:
                product.update_cost_price(changes["cost_price"])
            if "tax_rate" in changes:
                product.update_tax_rate(changes["tax_rate"])
            if "is_for_sale" in changes:
                if changes["is_for_sale"]:
                    product.start_selling()
                else:
                    product.stop_selling()
            if "is_active" in changes:
                if changes["is_active"]:
                    product.activate()
                else:
                    product.deactivate()
            for field in ("name", "description"):
                if field in changes:
                    setattr(product, field, changes[field])
            product.updated_by = actor
            self.uow.products.update(product)
        return product

    def add_stock(self, product_id: UUID, tenant_id: UUID, quantity, actor: str) -> Product:
        with self.uow.transaction():
            product = self.get_product(product_id, tenant_id, for_update=True)
            old_quantity = product.stock_quantity
            if not product.add_stock(quantity):
                raise ValidationError.for_field(
                    "quantity", "Stock can only be added to stock-tracked products in positive quantities."
                )
            product.updated_by = actor

        logger.info(f"Updated stock for product {product_id}: {old_quantity} -> {product.stock_quantity}")
        return product

    def delete_product(self, product_id: UUID, tenant_id: UUID, actor: str) -> None:
        with self.uow.transaction():
            product = self.get_product(product_id, tenant_id, for_update=True)
            product.updated_by = actor
            self.uow.products.soft_delete(product)
        logger.info(f"Product {product_id} deleted by {actor}")
