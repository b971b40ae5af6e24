"""
Validaciones entre agregados

Cada guard consulta el estado de otra entidad (tenant, cliente, producto)
y levanta GuardError si la regla no se cumple. Nunca mutan nada: los
servicios los llaman antes de tocar la factura, el stock o la deuda.
"""
import logging

from tenant_billing.common.exceptions import GuardError
from tenant_billing.core.money import to_decimal

logger = logging.getLogger(__name__)


def ensure_tenant_active(company) -> None:
    if company is None or not company.is_active or company.is_deleted:
        logger.warning(f"Tenant guard failed for company {getattr(company, 'id', None)}")
        raise GuardError(
            "tenant_active",
            "Company is not active.",
            company_id=getattr(company, "id", None),
        )


def ensure_customer_invoiceable(customer) -> None:
    if not customer.can_create_invoice():
        logger.warning(f"Customer {customer.id} cannot receive invoices")
        raise GuardError(
            "customer_invoiceable",
            "Customer is inactive or deleted.",
            customer_id=customer.id,
        )


def ensure_customer_credit(customer, amount) -> None:
    amount = to_decimal(amount)
    if not customer.can_use_credit(amount):
        logger.warning(
            f"Credit guard failed for customer {customer.id}: "
            f"debt={customer.current_debt} + {amount} > limit={customer.credit_limit}"
        )
        raise GuardError(
            "customer_credit",
            "Customer credit limit would be exceeded.",
            customer_id=customer.id,
            amount=amount,
            current_debt=to_decimal(customer.current_debt),
            credit_limit=to_decimal(customer.credit_limit),
        )


def ensure_product_sellable(product, quantity) -> None:
    quantity = to_decimal(quantity)
    if not product.can_sell(quantity):
        logger.warning(f"Product {product.id} cannot be sold in quantity {quantity}")
        raise GuardError(
            "product_sellable",
            f"Product '{product.name}' cannot be sold in the requested quantity.",
            product_id=product.id,
            quantity=quantity,
            stock_quantity=to_decimal(product.stock_quantity),
        )
