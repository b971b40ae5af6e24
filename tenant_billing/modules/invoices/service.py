"""
Servicio de Facturas

Orquesta cada operación sobre una factura dentro de una transacción de la
unidad de trabajo:

    1. Cargar (con bloqueo de fila) la factura y los agregados relacionados
    2. Validar con los guards (tenant activo, cliente, crédito, stock)
    3. Mutar la factura y sus efectos (stock, deuda del cliente)
    4. Commit de todo junto; cualquier error hace rollback completo
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID
import logging

from tenant_billing.database.unit_of_work import UnitOfWork
from tenant_billing.modules.company.models import Company
from tenant_billing.modules.customers.models import Customer
from tenant_billing.modules.products.models import Product
from tenant_billing.modules.invoices.models import Invoice, InvoiceItem, InvoiceStatus, Payment
from tenant_billing.modules.invoices.schemas import (
    InvoiceCreate, InvoiceFilters, InvoiceItemCreate, InvoiceItemUpdate, PaymentCreate
)
from tenant_billing.modules.invoices.guards import (
    ensure_customer_credit, ensure_customer_invoiceable, ensure_product_sellable, ensure_tenant_active
)
from tenant_billing.common.exceptions import GuardError, NotFoundError, StateError, ValidationError
from tenant_billing.core.config import settings
from tenant_billing.core.money import ZERO, money_equals, quantize_storage, to_decimal

logger = logging.getLogger(__name__)

ISSUED_STATUSES = (InvoiceStatus.SENT, InvoiceStatus.OVERDUE)


class InvoiceService:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    # ===== Carga de agregados =====

    def _get_active_company(self, tenant_id: UUID) -> Company:
        company = self.uow.companies.get_by_id(tenant_id)
        ensure_tenant_active(company)
        return company

    def _get_invoice(self, invoice_id: UUID, tenant_id: UUID, for_update: bool = False) -> Invoice:
        invoice = self.uow.invoices.get_by_id(invoice_id, tenant_id, for_update=for_update)
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    def _get_customer(self, customer_id: UUID, tenant_id: UUID, for_update: bool = False) -> Customer:
        customer = self.uow.customers.get_by_id(customer_id, tenant_id, for_update=for_update)
        if not customer:
            raise NotFoundError("Customer", customer_id)
        return customer

    def _get_product(self, product_id: UUID, tenant_id: UUID, for_update: bool = False) -> Product:
        product = self.uow.products.get_by_id(product_id, tenant_id, for_update=for_update)
        if not product:
            raise NotFoundError("Product", product_id)
        return product

    def _lock_products(self, quantities: Dict[UUID, Decimal], tenant_id: UUID) -> Dict[UUID, Product]:
        """Bloquear los productos de la factura; los eliminados cuentan como no vendibles"""
        products = {
            product.id: product
            for product in self.uow.products.get_many_by_ids(quantities.keys(), tenant_id, for_update=True)
        }
        for product_id, quantity in quantities.items():
            if product_id not in products:
                raise GuardError(
                    "product_sellable",
                    "Product is no longer available.",
                    product_id=product_id,
                    quantity=quantity,
                )
        return products

    @staticmethod
    def _ensure_editable(invoice: Invoice, attempted: str):
        if not invoice.can_be_edited:
            raise StateError(invoice.status, attempted)

    # ===== Consultas =====

    def get_invoice(self, invoice_id: UUID, tenant_id: UUID) -> Invoice:
        return self._get_invoice(invoice_id, tenant_id)

    def list_invoices(self, tenant_id: UUID, filters: Optional[InvoiceFilters] = None,
                      limit: Optional[int] = None, offset: int = 0) -> dict:
        filters = filters or InvoiceFilters()
        limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        invoices, total = self.uow.invoices.search(
            tenant_id,
            status=filters.status,
            customer_id=filters.customer_id,
            date_from=filters.date_from,
            date_to=filters.date_to,
            limit=limit,
            offset=offset,
        )
        return {"items": invoices, "total": total, "limit": limit, "offset": offset}

    # ===== Creación y edición (solo borradores) =====

    def create_invoice(self, tenant_id: UUID, invoice_data: InvoiceCreate, actor: str) -> Invoice:
        """
        Crear una factura en borrador

        El número se asigna en la creación desde la secuencia del año de
        emisión. Las líneas iniciales pasan por los mismos guards que add_item.
        """
        invoice_date = invoice_data.invoice_date or date.today()
        due_date = invoice_data.due_date or invoice_date + timedelta(days=settings.DEFAULT_DUE_DAYS)
        if due_date < invoice_date:
            raise ValidationError.for_field("due_date", "Due date cannot be before the invoice date.")

        with self.uow.transaction():
            self._get_active_company(tenant_id)
            customer = self._get_customer(invoice_data.customer_id, tenant_id)
            ensure_customer_invoiceable(customer)

            # Validar todas las líneas antes de construir la factura
            products: Dict[UUID, Product] = {}
            requested: Dict[UUID, Decimal] = {}
            for line in invoice_data.items:
                if line.product_id not in products:
                    products[line.product_id] = self._get_product(line.product_id, tenant_id)
                requested[line.product_id] = requested.get(line.product_id, ZERO) + to_decimal(line.quantity)
            for product_id, quantity in requested.items():
                ensure_product_sellable(products[product_id], quantity)

            invoice = Invoice(
                tenant_id=tenant_id,
                invoice_date=invoice_date,
                due_date=due_date,
                description=invoice_data.description,
                created_by=actor,
            )
            invoice.copy_customer_info(customer)
            invoice.assign_number(self.uow.sequences.next_number(invoice_date.year))
            for line in invoice_data.items:
                invoice.add_item(products[line.product_id], line.quantity, line.unit_price, line.discount_rate)
            self.uow.invoices.add(invoice)

        logger.info(
            f"Invoice {invoice.invoice_number} created for customer {customer.id} "
            f"with {invoice.item_count} items, total {invoice.grand_total}"
        )
        return invoice

    def add_item(self, invoice_id: UUID, tenant_id: UUID, item_data: InvoiceItemCreate, actor: str) -> InvoiceItem:
        with self.uow.transaction():
            self._get_active_company(tenant_id)
            invoice = self._get_invoice(invoice_id, tenant_id, for_update=True)
            self._ensure_editable(invoice, "add items to")

            product = self._get_product(item_data.product_id, tenant_id)
            already_on_invoice = invoice.quantities_by_product().get(product.id, ZERO)
            ensure_product_sellable(product, already_on_invoice + to_decimal(item_data.quantity))

            item = invoice.add_item(product, item_data.quantity, item_data.unit_price, item_data.discount_rate)
            invoice.set_updated_by(actor)

        logger.info(f"Item {product.display_name} x {item.quantity} added to invoice {invoice.invoice_number}")
        return item

    def update_item(self, invoice_id: UUID, item_id: UUID, tenant_id: UUID,
                    item_data: InvoiceItemUpdate, actor: str) -> InvoiceItem:
        changes = item_data.model_dump(exclude_unset=True, exclude_none=True)
        with self.uow.transaction():
            self._get_active_company(tenant_id)
            invoice = self._get_invoice(invoice_id, tenant_id, for_update=True)
            self._ensure_editable(invoice, "update items of")

            item = invoice.find_item(item_id)
            if item is None:
                raise NotFoundError("InvoiceItem", item_id)

            if "quantity" in changes:
                product = self._get_product(item.product_id, tenant_id)
                other_lines = invoice.quantities_by_product()[item.product_id] - to_decimal(item.quantity)
                ensure_product_sellable(product, other_lines + to_decimal(changes["quantity"]))

            # Cada update rechazado deja la línea igual; el rollback descarta los que sí se aplicaron
            errors = ValidationError()
            updates = (
                ("quantity", item.update_quantity, "Quantity must be greater than zero."),
                ("unit_price", item.update_unit_price, "Unit price cannot be negative."),
                ("discount_rate", item.update_discount_rate, "Discount rate must be between 0 and 100."),
                ("discount_amount", item.update_discount_amount,
                 "Discount amount must be between 0 and the line subtotal."),
                ("tax_rate", item.update_tax_rate, "Tax rate cannot be negative."),
            )
            for field, update, message in updates:
                if field in changes and not update(changes[field]):
                    errors.add_error(field, message)
            if errors.has_errors():
                raise errors

            invoice.recalculate_totals()
            invoice.set_updated_by(actor)

        return item

    def remove_item(self, invoice_id: UUID, item_id: UUID, tenant_id: UUID, actor: str) -> Invoice:
        with self.uow.transaction():
            self._get_active_company(tenant_id)
            invoice = self._get_invoice(invoice_id, tenant_id, for_update=True)
            self._ensure_editable(invoice, "remove items from")
            if not invoice.remove_item(item_id):
                raise NotFoundError("InvoiceItem", item_id)
            invoice.set_updated_by(actor)

        logger.info(f"Item {item_id} removed from invoice {invoice.invoice_number}")
        return invoice

    # ===== Ciclo de vida =====

    def send_invoice(self, invoice_id: UUID, tenant_id: UUID, actor: str) -> Invoice:
        """
        Emitir la factura al cliente

        Re-valida stock y crédito con bloqueo de fila, descuenta el stock de
        los productos controlados y suma el total a la deuda del cliente.
        """
        with self.uow.transaction():
            self._get_active_company(tenant_id)
            invoice = self._get_invoice(invoice_id, tenant_id, for_update=True)
            if not invoice.can_be_sent:
                raise StateError(invoice.status, "send")

            customer = self._get_customer(invoice.customer_id, tenant_id, for_update=True)
            ensure_customer_invoiceable(customer)
            ensure_customer_credit(customer, invoice.grand_total)

            quantities = invoice.quantities_by_product()
            products = self._lock_products(quantities, tenant_id)
            for product_id, quantity in quantities.items():
                ensure_product_sellable(products[product_id], quantity)

            # Guards OK: aplicar efectos
            for product_id, quantity in quantities.items():
                product = products[product_id]
                if product.is_stock_tracked:
                    old_quantity = product.stock_quantity
                    product.reduce_stock(quantity)
                    logger.info(f"Updated stock for product {product_id}: {old_quantity} -> {product.stock_quantity}")
            if invoice.grand_total > ZERO:
                customer.add_debt(invoice.grand_total)
            invoice.mark_as_sent(actor)

        logger.info(f"Invoice {invoice.invoice_number} sent by {actor}, customer debt now {customer.current_debt}")
        return invoice

    def record_payment(self, invoice_id: UUID, tenant_id: UUID, payment_data: PaymentCreate, actor: str) -> Payment:
        amount = quantize_storage(payment_data.amount)
        with self.uow.transaction():
            self._get_active_company(tenant_id)
            invoice = self._get_invoice(invoice_id, tenant_id, for_update=True)
            if invoice.status not in ISSUED_STATUSES:
                raise StateError(invoice.status, "record a payment on")

            # El total se muestra redondeado a centavos: pagar ese monto debe saldar la factura
            remaining = invoice.remaining_amount
            if amount <= ZERO or (amount > remaining and not money_equals(amount, remaining)):
                raise ValidationError.for_field(
                    "amount", f"Payment must be greater than zero and not exceed the remaining amount of {remaining}."
                )
            applied = min(amount, remaining)

            customer = self._get_customer(invoice.customer_id, tenant_id, for_update=True)
            # La deuda pudo haberse abonado directamente; nunca baja de cero
            debt_reduction = min(applied, to_decimal(customer.current_debt))
            if debt_reduction > ZERO:
                customer.pay_debt(debt_reduction)

            payment = Payment(
                tenant_id=tenant_id,
                amount=amount,
                method=payment_data.method,
                payment_date=payment_data.payment_date or date.today(),
                reference=payment_data.reference,
                notes=payment_data.notes,
                created_by=actor,
            )
            invoice.payments.append(payment)
            invoice.mark_as_paid(to_decimal(invoice.paid_amount) + applied, payment.method, payment.payment_date)
            invoice.set_updated_by(actor)

        logger.info(
            f"Payment of {amount} recorded on invoice {invoice.invoice_number}, "
            f"remaining {invoice.remaining_amount}, status {invoice.status.value}"
        )
        return payment

    def cancel_invoice(self, invoice_id: UUID, tenant_id: UUID, actor: str, reason: Optional[str] = None) -> Invoice:
        """
        Cancelar factura

        Si ya estaba emitida, libera el saldo pendiente de la deuda del
        cliente y devuelve el stock de los productos controlados.
        """
        with self.uow.transaction():
            self._get_active_company(tenant_id)
            invoice = self._get_invoice(invoice_id, tenant_id, for_update=True)
            if not invoice.can_be_cancelled:
                raise StateError(invoice.status, "cancel")

            if invoice.status in ISSUED_STATUSES:
                logger.info(f"Reverting stock and debt for invoice {invoice.invoice_number}")
                customer = self._get_customer(invoice.customer_id, tenant_id, for_update=True)
                release = min(invoice.remaining_amount, to_decimal(customer.current_debt))
                if release > ZERO:
                    customer.pay_debt(release)

                quantities = invoice.quantities_by_product()
                locked = self.uow.products.get_many_by_ids(quantities.keys(), tenant_id, for_update=True)
                for product in locked:
                    if product.is_stock_tracked:
                        product.add_stock(quantities[product.id])

            old_status = invoice.status
            invoice.cancel(actor)
            if reason:
                note = f"[CANCELLED] {reason}"
                invoice.description = f"{invoice.description}\n\n{note}" if invoice.description else note

        logger.info(f"Invoice {invoice.invoice_number} status changed from {old_status.value} to {invoice.status.value}")
        return invoice

    def check_overdue(self, invoice_id: UUID, tenant_id: UUID, today: Optional[date] = None) -> Invoice:
        with self.uow.transaction():
            invoice = self._get_invoice(invoice_id, tenant_id, for_update=True)
            if invoice.check_overdue_status(today):
                logger.info(f"Invoice {invoice.invoice_number} is now overdue")
        return invoice

    def check_overdue_invoices(self, tenant_id: UUID, today: Optional[date] = None) -> List[Invoice]:
        """Pasar a OVERDUE todas las facturas vencidas del tenant; devuelve las que cambiaron"""
        today = today or date.today()
        with self.uow.transaction():
            changed = [
                invoice for invoice in self.uow.invoices.list_past_due(tenant_id, today)
                if invoice.check_overdue_status(today)
            ]
        if changed:
            logger.info(f"{len(changed)} invoices marked overdue for tenant {tenant_id}")
        return changed

    # ===== Eliminación lógica =====

    def delete_invoice(self, invoice_id: UUID, tenant_id: UUID, actor: str) -> None:
        """Solo borradores; el número asignado queda reservado"""
        with self.uow.transaction():
            invoice = self._get_invoice(invoice_id, tenant_id, for_update=True)
            if invoice.status != InvoiceStatus.DRAFT:
                raise StateError(invoice.status, "delete")
            invoice.set_updated_by(actor)
            self.uow.invoices.soft_delete(invoice)
        logger.info(f"Invoice {invoice.invoice_number} deleted by {actor}")

    def restore_invoice(self, invoice_id: UUID, tenant_id: UUID, actor: str) -> Invoice:
        with self.uow.transaction():
            invoice = self.uow.invoices.get_deleted_by_id(invoice_id, tenant_id)
            if not invoice:
                raise NotFoundError("Invoice", invoice_id)
            self.uow.invoices.restore(invoice)
            invoice.set_updated_by(actor)
        logger.info(f"Invoice {invoice.invoice_number} restored by {actor}")
        return invoice
