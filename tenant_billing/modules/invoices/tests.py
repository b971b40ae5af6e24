"""
Tests para el módulo de Facturas

Tests que cubren:
- Cálculo de importes por línea
- Agregación de totales y ciclo de vida de la factura
- Guards de crédito, stock y tenant antes de cada mutación
- Atomicidad de emisión, pagos y cancelación (stock y deuda)
- Endpoints HTTP y traducción de errores
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from tenant_billing.common.exceptions import GuardError, NotFoundError, StateError, ValidationError
from tenant_billing.database.unit_of_work import UnitOfWork
from tenant_billing.modules.products.models import Product
from tenant_billing.modules.invoices.calculator import calculate_line, rate_from_discount
from tenant_billing.modules.invoices.models import (
    Invoice, InvoiceStatus, PaymentMethod, format_invoice_number
)
from tenant_billing.modules.invoices.schemas import (
    InvoiceCreate, InvoiceFilters, InvoiceItemCreate, InvoiceItemUpdate, InvoiceOut, PaymentCreate
)
from tenant_billing.modules.invoices.service import InvoiceService


def make_product(**overrides):
    values = dict(
        tenant_id=uuid4(),
        name="Widget",
        product_code="WID-001",
        description="Blue widget",
        unit_price=Decimal("100"),
        tax_rate=Decimal("20"),
    )
    values.update(overrides)
    return Product(**values)


def make_invoice(**overrides):
    values = dict(
        tenant_id=uuid4(),
        customer_id=uuid4(),
        customer_name="Jane Buyer",
    )
    values.update(overrides)
    return Invoice(**values)


# ===== CÁLCULO POR LÍNEA =====

class TestLineCalculator:
    def test_discounted_taxed_line(self):
        """3 x 100 con 10% de descuento y 20% de impuesto"""
        invoice = make_invoice()
        item = invoice.add_item(make_product(), Decimal("3"), discount_rate=Decimal("10"))

        assert item.subtotal == Decimal("300")
        assert item.discount_amount == Decimal("30")
        assert item.amount_after_discount == Decimal("270")
        assert item.tax_amount == Decimal("54")
        assert item.total == Decimal("324")
        assert item.effective_unit_price == Decimal("90")

    def test_zero_quantity_has_zero_effective_price(self):
        amounts = calculate_line(0, Decimal("10"), 0, Decimal("20"))
        assert amounts.effective_unit_price == Decimal("0")
        assert amounts.total == Decimal("0")

    def test_rate_from_discount_on_zero_subtotal(self):
        assert rate_from_discount(Decimal("0"), Decimal("5")) == Decimal("0")
        assert rate_from_discount(Decimal("200"), Decimal("50")) == Decimal("25")


class TestInvoiceItem:
    def _item(self):
        return make_invoice().add_item(make_product(), Decimal("3"), discount_rate=Decimal("10"))

    def test_quantity_update_rederives_discount(self):
        item = self._item()
        assert item.update_quantity(Decimal("5")) is True
        assert item.discount_amount == Decimal("50")
        assert item.total == Decimal("540")

    def test_discount_amount_update_back_derives_rate(self):
        item = self._item()
        assert item.update_discount_amount(Decimal("75")) is True
        assert item.discount_rate == Decimal("25")

    @pytest.mark.parametrize("method, value", [
        ("update_quantity", Decimal("0")),
        ("update_quantity", Decimal("-1")),
        ("update_unit_price", Decimal("-0.01")),
        ("update_discount_rate", Decimal("100.5")),
        ("update_discount_rate", Decimal("-1")),
        ("update_discount_amount", Decimal("300.01")),
        ("update_tax_rate", Decimal("-5")),
    ])
    def test_rejected_update_leaves_item_unchanged(self, method, value):
        item = self._item()
        before = (item.quantity, item.unit_price, item.discount_rate, item.discount_amount, item.tax_rate)

        assert getattr(item, method)(value) is False
        assert (item.quantity, item.unit_price, item.discount_rate, item.discount_amount, item.tax_rate) == before

    def test_validity(self):
        item = self._item()
        assert item.is_valid()
        assert item.has_discount()
        assert item.has_tax()

        item.product_name = ""
        assert not item.is_valid()


# ===== AGREGADO Y CICLO DE VIDA =====

class TestInvoiceAggregate:
    def test_two_line_totals(self):
        invoice = make_invoice()
        invoice.add_item(make_product(unit_price=Decimal("50"), tax_rate=Decimal("20")), Decimal("2"))
        invoice.add_item(make_product(name="Bolt", unit_price=Decimal("10"), tax_rate=Decimal("0")), Decimal("1"))

        assert invoice.subtotal == Decimal("110")
        assert invoice.total_tax == Decimal("20")
        assert invoice.grand_total == Decimal("130")
        assert invoice.item_count == 2
        assert invoice.average_item_amount == Decimal("55")

    def test_recalculate_is_idempotent(self):
        invoice = make_invoice()
        invoice.add_item(make_product(), Decimal("3"), discount_rate=Decimal("10"))
        invoice.add_item(make_product(unit_price=Decimal("7.35")), Decimal("4"))

        invoice.recalculate_totals()
        first = (invoice.subtotal, invoice.total_discount, invoice.total_tax, invoice.grand_total)
        invoice.recalculate_totals()

        assert (invoice.subtotal, invoice.total_discount, invoice.total_tax, invoice.grand_total) == first
        assert invoice.grand_total == sum(item.total for item in invoice.items)

    def test_add_item_snapshots_product(self):
        product = make_product()
        invoice = make_invoice()
        item = invoice.add_item(product, Decimal("1"), unit_price=Decimal("80"))

        product.name = "Renamed widget"
        product.update_price(Decimal("999"))

        assert item.product_name == "Widget"
        assert item.product_code == "WID-001"
        assert item.product_description == "Blue widget"
        assert item.unit == "unit"
        assert item.tax_rate == Decimal("20")
        assert item.unit_price == Decimal("80")

    def test_remove_item(self):
        invoice = make_invoice()
        keep = invoice.add_item(make_product(), Decimal("1"))
        drop = invoice.add_item(make_product(), Decimal("2"))

        assert invoice.remove_item(drop.id) is True
        assert invoice.items == [keep]
        assert invoice.grand_total == Decimal("120")

    def test_remove_missing_item_is_noop(self):
        invoice = make_invoice()
        invoice.add_item(make_product(), Decimal("1"))

        assert invoice.remove_item(uuid4()) is False
        assert invoice.item_count == 1
        assert invoice.grand_total == Decimal("120")

    def test_items_locked_after_send(self):
        invoice = make_invoice()
        invoice.add_item(make_product(), Decimal("1"))
        invoice.mark_as_sent("alice")

        with pytest.raises(StateError):
            invoice.add_item(make_product(), Decimal("1"))
        assert invoice.item_count == 1

    def test_fully_paid_within_a_cent(self):
        invoice = make_invoice()
        invoice.add_item(make_product(unit_price=Decimal("50"), tax_rate=Decimal("20")), Decimal("2"))
        invoice.add_item(make_product(unit_price=Decimal("10"), tax_rate=Decimal("0")), Decimal("1"))

        invoice.paid_amount = Decimal("129.995")
        assert invoice.is_fully_paid
        invoice.paid_amount = Decimal("129.98")
        assert not invoice.is_fully_paid
        assert invoice.is_partially_paid

    def test_mark_as_sent_requires_items(self):
        invoice = make_invoice()
        with pytest.raises(StateError) as exc_info:
            invoice.mark_as_sent("alice")
        assert exc_info.value.current_status == "draft"
        assert exc_info.value.attempted == "send"

        invoice.add_item(make_product(), Decimal("1"))
        invoice.mark_as_sent("alice")
        assert invoice.status == InvoiceStatus.SENT
        assert invoice.sent_by == "alice"
        assert invoice.sent_at is not None

    @pytest.mark.parametrize("status", [InvoiceStatus.DRAFT, InvoiceStatus.SENT, InvoiceStatus.OVERDUE])
    def test_cancel_allowed(self, status):
        invoice = make_invoice(status=status)
        invoice.cancel("alice")
        assert invoice.status == InvoiceStatus.CANCELLED
        assert invoice.updated_by == "alice"

    @pytest.mark.parametrize("status", [InvoiceStatus.PAID, InvoiceStatus.CANCELLED])
    def test_cancel_rejected_from_terminal_states(self, status):
        invoice = make_invoice(status=status)
        with pytest.raises(StateError):
            invoice.cancel("alice")
        assert invoice.status == status

    def test_mark_as_paid_partial_then_full(self):
        invoice = make_invoice()
        invoice.add_item(make_product(), Decimal("1"))
        invoice.mark_as_sent("alice")

        invoice.mark_as_paid(Decimal("20"), PaymentMethod.CASH)
        assert invoice.status == InvoiceStatus.SENT
        assert invoice.payment_date == date.today()

        invoice.mark_as_paid(Decimal("120"), PaymentMethod.BANK_TRANSFER, date(2024, 5, 1))
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.payment_method == PaymentMethod.BANK_TRANSFER
        assert invoice.payment_date == date(2024, 5, 1)

    def test_overdue_flips_only_sent_and_past_due(self):
        today = date.today()
        invoice = make_invoice(due_date=today - timedelta(days=1))
        invoice.add_item(make_product(), Decimal("1"))
        invoice.mark_as_sent("alice")

        assert invoice.check_overdue_status(today) is True
        assert invoice.status == InvoiceStatus.OVERDUE
        assert invoice.check_overdue_status(today) is False

    def test_overdue_not_before_due_date(self):
        today = date.today()
        invoice = make_invoice(due_date=today, status=InvoiceStatus.SENT)
        assert invoice.check_overdue_status(today) is False
        assert invoice.status == InvoiceStatus.SENT

    @pytest.mark.parametrize("status", [InvoiceStatus.DRAFT, InvoiceStatus.PAID, InvoiceStatus.CANCELLED])
    def test_overdue_ignores_other_states(self, status):
        invoice = make_invoice(due_date=date.today() - timedelta(days=10), status=status)
        assert invoice.check_overdue_status() is False
        assert invoice.status == status

    def test_invoice_number_assigned_once(self):
        invoice = make_invoice(invoice_date=date(2024, 3, 15))
        invoice.assign_number(42)
        assert invoice.invoice_number == "INV-2024-000042"
        with pytest.raises(StateError):
            invoice.assign_number(43)
        assert format_invoice_number(2025, 1) == "INV-2025-000001"

    def test_validity(self):
        today = date.today()
        invoice = make_invoice(invoice_date=today, due_date=today + timedelta(days=30))
        assert not invoice.is_valid()  # sin número ni items

        invoice.assign_number(1)
        invoice.add_item(make_product(), Decimal("1"))
        assert invoice.is_valid()

        invoice.due_date = today - timedelta(days=1)
        assert not invoice.is_valid()

        invoice.due_date = today + timedelta(days=30)
        invoice.invoice_date = today + timedelta(days=1)
        assert not invoice.is_valid(today)

    def test_product_queries(self):
        heavy = make_product(weight=Decimal("2.5"))
        cheap = make_product(name="Bolt", unit_price=Decimal("1"))
        invoice = make_invoice()
        invoice.add_item(heavy, Decimal("2"))
        top = invoice.add_item(heavy, Decimal("3"))
        invoice.add_item(cheap, Decimal("1"))

        assert invoice.has_product(heavy.id)
        assert not invoice.has_product(uuid4())
        assert invoice.total_weight() == Decimal("12.5")
        assert invoice.highest_value_item() is top
        assert invoice.quantities_by_product()[heavy.id] == Decimal("5")


# ===== SERVICIO =====

@pytest.fixture
def service(uow):
    return InvoiceService(uow)


@pytest.fixture
def draft_invoice(service, sample_company, sample_customer, sample_product):
    """Borrador con 3 x 100 (+20% impuesto) = 360"""
    return service.create_invoice(
        sample_company.id,
        InvoiceCreate(
            customer_id=sample_customer.id,
            items=[InvoiceItemCreate(product_id=sample_product.id, quantity=Decimal("3"))],
        ),
        "alice",
    )


@pytest.fixture
def fractional_invoice(service, sample_company, sample_customer, sample_service_product):
    """Borrador de 1 x 0.99 con 12.5% de descuento y sin impuesto = 0.86625"""
    return service.create_invoice(
        sample_company.id,
        InvoiceCreate(
            customer_id=sample_customer.id,
            items=[InvoiceItemCreate(product_id=sample_service_product.id, quantity=Decimal("1"),
                                     unit_price=Decimal("0.99"), discount_rate=Decimal("12.5"))],
        ),
        "alice",
    )


class TestInvoiceService:
    def test_create_invoice(self, draft_invoice, sample_customer):
        year = date.today().year
        assert draft_invoice.invoice_number == f"INV-{year}-000001"
        assert draft_invoice.status == InvoiceStatus.DRAFT
        assert draft_invoice.customer_name == "Jane Buyer"
        assert draft_invoice.customer_email == "jane@example.com"
        assert draft_invoice.due_date == date.today() + timedelta(days=30)
        assert draft_invoice.grand_total == Decimal("360")
        assert draft_invoice.created_by == "alice"
        # Un borrador no afecta deuda
        assert sample_customer.current_debt == Decimal("0")

    def test_invoice_numbers_are_sequential(self, service, draft_invoice, sample_company, sample_customer):
        second = service.create_invoice(
            sample_company.id, InvoiceCreate(customer_id=sample_customer.id), "alice"
        )
        assert second.invoice_number == f"INV-{date.today().year}-000002"

    def test_due_date_before_invoice_date_rejected(self, service, sample_company, sample_customer):
        with pytest.raises(ValidationError) as exc_info:
            service.create_invoice(
                sample_company.id,
                InvoiceCreate(
                    customer_id=sample_customer.id,
                    invoice_date=date(2024, 5, 10),
                    due_date=date(2024, 5, 1),
                ),
                "alice",
            )
        assert "due_date" in exc_info.value.errors

    def test_inactive_customer_cannot_be_invoiced(self, uow, service, sample_company, sample_customer):
        with uow.transaction():
            sample_customer.deactivate()

        with pytest.raises(GuardError) as exc_info:
            service.create_invoice(sample_company.id, InvoiceCreate(customer_id=sample_customer.id), "alice")
        assert exc_info.value.guard == "customer_invoiceable"

    def test_inactive_tenant_blocks_mutations(self, uow, service, draft_invoice, sample_company, sample_product):
        with uow.transaction():
            sample_company.deactivate()

        with pytest.raises(GuardError) as exc_info:
            service.add_item(
                draft_invoice.id, sample_company.id,
                InvoiceItemCreate(product_id=sample_product.id, quantity=Decimal("1")), "alice"
            )
        assert exc_info.value.guard == "tenant_active"

    def test_add_item_guard_failure_leaves_invoice_unchanged(self, service, draft_invoice, sample_company,
                                                             sample_product):
        # 3 ya en la factura + 8 > 10 en stock
        with pytest.raises(GuardError) as exc_info:
            service.add_item(
                draft_invoice.id, sample_company.id,
                InvoiceItemCreate(product_id=sample_product.id, quantity=Decimal("8")), "alice"
            )
        assert exc_info.value.guard == "product_sellable"

        invoice = service.get_invoice(draft_invoice.id, sample_company.id)
        assert invoice.item_count == 1
        assert invoice.grand_total == Decimal("360")

    def test_add_and_remove_item(self, service, draft_invoice, sample_company, sample_service_product):
        item = service.add_item(
            draft_invoice.id, sample_company.id,
            InvoiceItemCreate(product_id=sample_service_product.id, quantity=Decimal("2"),
                              discount_rate=Decimal("10")),
            "bob",
        )
        assert item.total == Decimal("90")
        assert draft_invoice.grand_total == Decimal("450")
        assert draft_invoice.updated_by == "bob"

        invoice = service.remove_item(draft_invoice.id, item.id, sample_company.id, "bob")
        assert invoice.item_count == 1
        assert invoice.grand_total == Decimal("360")

    def test_remove_missing_item(self, service, draft_invoice, sample_company):
        with pytest.raises(NotFoundError):
            service.remove_item(draft_invoice.id, uuid4(), sample_company.id, "alice")

    def test_update_item(self, service, draft_invoice, sample_company):
        item_id = draft_invoice.items[0].id
        item = service.update_item(
            draft_invoice.id, item_id, sample_company.id,
            InvoiceItemUpdate(quantity=Decimal("2"), discount_amount=Decimal("20")), "alice"
        )
        assert item.discount_rate == Decimal("10")
        assert draft_invoice.grand_total == Decimal("216")

    def test_rejected_item_update_rolls_back(self, service, draft_invoice, sample_company):
        item_id = draft_invoice.items[0].id
        with pytest.raises(ValidationError) as exc_info:
            service.update_item(
                draft_invoice.id, item_id, sample_company.id,
                InvoiceItemUpdate(unit_price=Decimal("50"), discount_amount=Decimal("1000")), "alice"
            )
        assert "discount_amount" in exc_info.value.errors

        invoice = service.get_invoice(draft_invoice.id, sample_company.id)
        assert invoice.items[0].unit_price == Decimal("100")
        assert invoice.grand_total == Decimal("360")

    def test_stored_totals_match_recalculation_after_reload(self, fractional_invoice, sample_company):
        assert fractional_invoice.grand_total == Decimal("0.86625")

        with UnitOfWork() as other:
            invoice = other.invoices.get_by_id(fractional_invoice.id, sample_company.id)
            stored = (invoice.subtotal, invoice.total_discount, invoice.total_tax, invoice.grand_total)
            invoice.recalculate_totals()

            assert stored == (invoice.subtotal, invoice.total_discount, invoice.total_tax, invoice.grand_total)
            assert invoice.grand_total == Decimal("0.86625")
            assert invoice.items[0].discount_amount == Decimal("0.12375")

    def test_fixed_discount_scales_with_quantity_after_reload(self, service, draft_invoice, sample_company):
        item_id = draft_invoice.items[0].id
        service.update_item(
            draft_invoice.id, item_id, sample_company.id, InvoiceItemUpdate(discount_amount=Decimal("100")), "alice"
        )

        # 100 sobre 300 se guarda como tasa 33.3333333333
        with UnitOfWork() as other:
            item = InvoiceService(other).update_item(
                draft_invoice.id, item_id, sample_company.id, InvoiceItemUpdate(quantity=Decimal("6")), "alice"
            )
            assert item.discount_amount == Decimal("200")
            assert item.invoice.grand_total == Decimal("480")

    def test_send_invoice_reduces_stock_and_adds_debt(self, service, draft_invoice, sample_company,
                                                      sample_customer, sample_product):
        invoice = service.send_invoice(draft_invoice.id, sample_company.id, "alice")

        assert invoice.status == InvoiceStatus.SENT
        assert invoice.sent_by == "alice"
        assert sample_product.stock_quantity == Decimal("7")
        assert sample_customer.current_debt == Decimal("360")

    def test_send_over_credit_limit_changes_nothing(self, service, sample_company, sample_customer,
                                                    sample_product):
        # 9 x 120 = 1080 > 1000 de límite
        invoice = service.create_invoice(
            sample_company.id,
            InvoiceCreate(
                customer_id=sample_customer.id,
                items=[InvoiceItemCreate(product_id=sample_product.id, quantity=Decimal("9"))],
            ),
            "alice",
        )
        with pytest.raises(GuardError) as exc_info:
            service.send_invoice(invoice.id, sample_company.id, "alice")
        assert exc_info.value.guard == "customer_credit"

        invoice = service.get_invoice(invoice.id, sample_company.id)
        assert invoice.status == InvoiceStatus.DRAFT
        assert sample_product.stock_quantity == Decimal("10")
        assert sample_customer.current_debt == Decimal("0")

    def test_send_rechecks_stock(self, uow, service, draft_invoice, sample_company, sample_product):
        with uow.transaction():
            sample_product.update_stock(Decimal("2"))

        with pytest.raises(GuardError):
            service.send_invoice(draft_invoice.id, sample_company.id, "alice")
        assert sample_product.stock_quantity == Decimal("2")

    def test_send_empty_invoice(self, service, sample_company, sample_customer):
        invoice = service.create_invoice(sample_company.id, InvoiceCreate(customer_id=sample_customer.id), "alice")
        with pytest.raises(StateError):
            service.send_invoice(invoice.id, sample_company.id, "alice")

    def test_payments(self, service, draft_invoice, sample_company, sample_customer):
        service.send_invoice(draft_invoice.id, sample_company.id, "alice")

        payment = service.record_payment(
            draft_invoice.id, sample_company.id,
            PaymentCreate(amount=Decimal("100"), method=PaymentMethod.CASH), "alice"
        )
        assert payment.invoice_id == draft_invoice.id
        assert draft_invoice.status == InvoiceStatus.SENT
        assert draft_invoice.remaining_amount == Decimal("260")
        assert sample_customer.current_debt == Decimal("260")

        service.record_payment(
            draft_invoice.id, sample_company.id,
            PaymentCreate(amount=Decimal("260"), method=PaymentMethod.BANK_TRANSFER), "alice"
        )
        invoice = service.get_invoice(draft_invoice.id, sample_company.id)
        assert invoice.status == InvoiceStatus.PAID
        assert len(invoice.payments) == 2
        assert sample_customer.current_debt == Decimal("0")

    def test_overpayment_rejected(self, service, draft_invoice, sample_company, sample_customer):
        service.send_invoice(draft_invoice.id, sample_company.id, "alice")
        with pytest.raises(ValidationError):
            service.record_payment(
                draft_invoice.id, sample_company.id, PaymentCreate(amount=Decimal("360.01")), "alice"
            )
        assert sample_customer.current_debt == Decimal("360")

    def test_payment_on_draft_rejected(self, service, draft_invoice, sample_company):
        with pytest.raises(StateError):
            service.record_payment(draft_invoice.id, sample_company.id, PaymentCreate(amount=Decimal("10")), "alice")

    def test_paying_the_displayed_total_settles_invoice(self, service, fractional_invoice, sample_company,
                                                        sample_customer):
        invoice = service.send_invoice(fractional_invoice.id, sample_company.id, "alice")
        displayed = InvoiceOut.model_validate(invoice).model_dump(mode="json")["grand_total"]
        assert displayed == "0.87"

        payment = service.record_payment(
            invoice.id, sample_company.id, PaymentCreate(amount=Decimal(displayed)), "alice"
        )

        assert payment.amount == Decimal("0.87")
        invoice = service.get_invoice(invoice.id, sample_company.id)
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.paid_amount == Decimal("0.86625")
        assert invoice.remaining_amount == Decimal("0")
        assert sample_customer.current_debt == Decimal("0")

    def test_payment_beyond_rounding_tolerance_rejected(self, service, fractional_invoice, sample_company):
        service.send_invoice(fractional_invoice.id, sample_company.id, "alice")
        with pytest.raises(ValidationError):
            service.record_payment(
                fractional_invoice.id, sample_company.id, PaymentCreate(amount=Decimal("0.88")), "alice"
            )

    def test_cancel_sent_invoice_restores_stock_and_debt(self, service, draft_invoice, sample_company,
                                                         sample_customer, sample_product):
        service.send_invoice(draft_invoice.id, sample_company.id, "alice")
        service.record_payment(draft_invoice.id, sample_company.id, PaymentCreate(amount=Decimal("100")), "alice")

        invoice = service.cancel_invoice(draft_invoice.id, sample_company.id, "alice", reason="Wrong customer")

        assert invoice.status == InvoiceStatus.CANCELLED
        assert "[CANCELLED] Wrong customer" in invoice.description
        assert sample_product.stock_quantity == Decimal("10")
        assert sample_customer.current_debt == Decimal("0")

    def test_cancel_paid_invoice_rejected(self, service, draft_invoice, sample_company):
        service.send_invoice(draft_invoice.id, sample_company.id, "alice")
        service.record_payment(draft_invoice.id, sample_company.id, PaymentCreate(amount=Decimal("360")), "alice")

        with pytest.raises(StateError):
            service.cancel_invoice(draft_invoice.id, sample_company.id, "alice")

    def test_check_overdue_invoices(self, service, draft_invoice, sample_company):
        service.send_invoice(draft_invoice.id, sample_company.id, "alice")

        assert service.check_overdue_invoices(sample_company.id, today=date.today()) == []

        changed = service.check_overdue_invoices(sample_company.id, today=date.today() + timedelta(days=31))
        assert [invoice.id for invoice in changed] == [draft_invoice.id]
        assert service.get_invoice(draft_invoice.id, sample_company.id).status == InvoiceStatus.OVERDUE

    def test_delete_and_restore_draft(self, service, draft_invoice, sample_company):
        service.delete_invoice(draft_invoice.id, sample_company.id, "alice")
        with pytest.raises(NotFoundError):
            service.get_invoice(draft_invoice.id, sample_company.id)

        restored = service.restore_invoice(draft_invoice.id, sample_company.id, "alice")
        assert restored.is_deleted is False
        assert service.get_invoice(draft_invoice.id, sample_company.id).invoice_number == draft_invoice.invoice_number

    def test_sent_invoice_cannot_be_deleted(self, service, draft_invoice, sample_company):
        service.send_invoice(draft_invoice.id, sample_company.id, "alice")
        with pytest.raises(StateError):
            service.delete_invoice(draft_invoice.id, sample_company.id, "alice")

    def test_list_invoices_with_filters(self, service, draft_invoice, sample_company, sample_customer):
        service.create_invoice(sample_company.id, InvoiceCreate(customer_id=sample_customer.id), "alice")
        service.send_invoice(draft_invoice.id, sample_company.id, "alice")

        page = service.list_invoices(sample_company.id)
        assert page["total"] == 2

        sent = service.list_invoices(sample_company.id, InvoiceFilters(status=InvoiceStatus.SENT))
        assert [invoice.id for invoice in sent["items"]] == [draft_invoice.id]

    def test_multi_tenant_isolation(self, service, draft_invoice):
        with pytest.raises(NotFoundError):
            service.get_invoice(draft_invoice.id, uuid4())


# ===== API =====

class TestInvoiceAPI:
    def _setup(self, client):
        company = client.post("/companies/", json={"name": "Acme Ltd", "tax_number": "900123"}).json()
        headers = {"X-Company-ID": company["id"], "X-Actor": "carol"}
        customer = client.post(
            "/customers/", json={"name": "Jane Buyer", "credit_limit": "1000"}, headers=headers
        ).json()
        product = client.post(
            "/products/",
            json={"name": "Widget", "product_code": "WID-1", "unit_price": "100", "tax_rate": "20",
                  "is_stock_tracked": True, "stock_quantity": "10"},
            headers=headers,
        ).json()
        return headers, customer, product

    def test_invoice_flow(self, client):
        headers, customer, product = self._setup(client)

        response = client.post(
            "/invoices/",
            json={"customer_id": customer["id"],
                  "items": [{"product_id": product["id"], "quantity": "3", "discount_rate": "10"}]},
            headers=headers,
        )
        assert response.status_code == 201
        invoice = response.json()
        assert invoice["status"] == "draft"
        assert invoice["grand_total"] == "324.00"
        assert invoice["items"][0]["tax_amount"] == "54.00"
        assert invoice["created_by"] == "carol"

        response = client.post(f"/invoices/{invoice['id']}/send", headers=headers)
        assert response.status_code == 200
        assert response.json()["status"] == "sent"

        response = client.post(
            f"/invoices/{invoice['id']}/payments",
            json={"amount": "324", "method": "bank_transfer"},
            headers=headers,
        )
        assert response.status_code == 201
        assert response.json()["amount"] == "324.00"

        detail = client.get(f"/invoices/{invoice['id']}", headers=headers).json()
        assert detail["status"] == "paid"
        assert detail["remaining_amount"] == "0.00"
        assert len(detail["payments"]) == 1

        stock = client.get(f"/products/{product['id']}", headers=headers).json()["stock_quantity"]
        assert Decimal(stock) == Decimal("7")

    def test_guard_error_maps_to_conflict(self, client):
        headers, customer, product = self._setup(client)
        invoice = client.post("/invoices/", json={"customer_id": customer["id"]}, headers=headers).json()

        response = client.post(
            f"/invoices/{invoice['id']}/items",
            json={"product_id": product["id"], "quantity": "11"},
            headers=headers,
        )
        assert response.status_code == 409
        assert response.json()["guard"] == "product_sellable"

    def test_state_error_maps_to_conflict(self, client):
        headers, customer, _ = self._setup(client)
        invoice = client.post("/invoices/", json={"customer_id": customer["id"]}, headers=headers).json()

        response = client.post(f"/invoices/{invoice['id']}/send", headers=headers)
        assert response.status_code == 409
        assert response.json()["current_status"] == "draft"

    def test_unknown_invoice_is_not_found(self, client):
        headers, _, _ = self._setup(client)
        response = client.get(f"/invoices/{uuid4()}", headers=headers)
        assert response.status_code == 404
        assert response.json()["entity"] == "Invoice"

    def test_missing_tenant_header(self, client):
        response = client.get("/invoices/")
        assert response.status_code == 400
