"""
Tests para el módulo de Clientes
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from tenant_billing.common.exceptions import GuardError, NotFoundError, ValidationError
from tenant_billing.modules.customers.models import Customer, CustomerType
from tenant_billing.modules.customers.schemas import CustomerCreate, CustomerUpdate
from tenant_billing.modules.customers.service import CustomerService


def make_customer(**overrides):
    values = dict(tenant_id=uuid4(), name="Jane Buyer", credit_limit=Decimal("1000"))
    values.update(overrides)
    return Customer(**values)


class TestCustomerModel:
    def test_credit_boundary(self):
        customer = make_customer(current_debt=Decimal("950"))
        assert customer.can_use_credit(Decimal("60")) is False
        assert customer.can_use_credit(Decimal("50")) is True
        assert customer.available_credit == Decimal("50")

    def test_inactive_or_deleted_customer_has_no_credit(self):
        customer = make_customer()
        customer.deactivate()
        assert not customer.can_use_credit(Decimal("1"))

        customer = make_customer(is_deleted=True)
        assert not customer.can_use_credit(Decimal("1"))
        assert not customer.can_create_invoice()

    def test_add_debt_requires_positive_amount(self):
        customer = make_customer()
        assert customer.add_debt(Decimal("0")) is False
        assert customer.add_debt(Decimal("-5")) is False
        assert customer.current_debt == 0

        assert customer.add_debt(Decimal("1200")) is True
        assert customer.is_over_credit_limit
        assert customer.has_debt

    def test_pay_debt_cannot_exceed_current_debt(self):
        customer = make_customer(current_debt=Decimal("100"))
        assert customer.pay_debt(Decimal("100.01")) is False
        assert customer.current_debt == Decimal("100")

        assert customer.pay_debt(Decimal("40")) is True
        assert customer.current_debt == Decimal("60")

    def test_display_and_identity(self):
        customer = make_customer(phone="555-0100", type=CustomerType.CORPORATE)
        assert customer.display_name == "Jane Buyer (555-0100)"
        assert customer.customer_number.startswith("CUS-")
        assert len(customer.customer_number) == 10
        assert customer.is_corporate and not customer.is_individual

    def test_contact_info_and_vip(self):
        customer = make_customer()
        customer.update_contact_info(phone=" 555 ", email="jane@example.com")
        assert customer.phone == "555"
        assert customer.has_valid_email()
        assert customer.address is None

        customer.mark_as_vip()
        assert customer.is_vip
        customer.remove_vip_status()
        assert not customer.is_vip
        assert customer.updated_at is not None


class TestCustomerService:
    def test_create_and_get(self, uow, sample_company):
        service = CustomerService(uow)
        customer = service.create_customer(
            sample_company.id,
            CustomerCreate(name="Corp Inc", type=CustomerType.CORPORATE, credit_limit=Decimal("500")),
            "alice",
        )
        fetched = service.get_customer(customer.id, sample_company.id)
        assert fetched.created_by == "alice"
        assert fetched.type == CustomerType.CORPORATE

    def test_inactive_tenant_cannot_add_customers(self, uow, sample_company):
        with uow.transaction():
            sample_company.deactivate()
        with pytest.raises(GuardError):
            CustomerService(uow).create_customer(sample_company.id, CustomerCreate(name="X"), "alice")

    def test_update_credit_limit_and_vip(self, uow, sample_company, sample_customer):
        customer = CustomerService(uow).update_customer(
            sample_customer.id, sample_company.id,
            CustomerUpdate(credit_limit=Decimal("2000"), is_vip=True), "bob"
        )
        assert customer.credit_limit == Decimal("2000")
        assert customer.is_vip
        assert customer.updated_by == "bob"

    def test_pay_debt(self, uow, sample_company, sample_customer):
        with uow.transaction():
            sample_customer.add_debt(Decimal("300"))

        service = CustomerService(uow)
        with pytest.raises(ValidationError):
            service.pay_debt(sample_customer.id, sample_company.id, Decimal("301"), "alice")

        customer = service.pay_debt(sample_customer.id, sample_company.id, Decimal("100"), "alice")
        assert customer.current_debt == Decimal("200")

    def test_customer_with_debt_cannot_be_deleted(self, uow, sample_company, sample_customer):
        with uow.transaction():
            sample_customer.add_debt(Decimal("10"))
        with pytest.raises(GuardError):
            CustomerService(uow).delete_customer(sample_customer.id, sample_company.id, "alice")

    def test_deleted_customer_is_hidden(self, uow, sample_company, sample_customer):
        service = CustomerService(uow)
        service.delete_customer(sample_customer.id, sample_company.id, "alice")

        with pytest.raises(NotFoundError):
            service.get_customer(sample_customer.id, sample_company.id)
        assert service.list_customers(sample_company.id) == []


class TestCustomerAPI:
    def test_create_and_pay_debt(self, client, uow, sample_company, sample_customer):
        with uow.transaction():
            sample_customer.add_debt(Decimal("250"))
        headers = {"X-Company-ID": str(sample_company.id)}

        response = client.post(
            f"/customers/{sample_customer.id}/debt-payments", json={"amount": "50"}, headers=headers
        )
        assert response.status_code == 200
        body = response.json()
        assert body["current_debt"] == "200.00"
        assert body["available_credit"] == "800.00"

    def test_list_is_scoped_by_tenant(self, client, sample_customer):
        response = client.get("/customers/", headers={"X-Company-ID": str(uuid4())})
        assert response.status_code == 200
        assert response.json() == []

    def test_invalid_tenant_header(self, client):
        response = client.get("/customers/", headers={"X-Company-ID": "not-a-uuid"})
        assert response.status_code == 400
