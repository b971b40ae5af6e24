"""
Tests para el módulo de Empresas (tenants)
"""

import pytest
from uuid import uuid4

from tenant_billing.common.exceptions import GuardError, NotFoundError, ValidationError
from tenant_billing.modules.company.models import Company
from tenant_billing.modules.company.schemas import CompanyCreate, CompanyUpdate
from tenant_billing.modules.company.service import CompanyService


class TestCompanyModel:
    def test_display_name(self):
        company = Company(name="Acme Ltd", tax_number="123")
        assert company.display_name == "Acme Ltd (VN: 123)"
        assert company.is_active

    def test_tax_number_is_immutable(self):
        company = Company(name="Acme Ltd", tax_number="123")
        with pytest.raises(ValueError):
            company.tax_number = "456"

    def test_activation_records_actor(self):
        company = Company(name="Acme Ltd", tax_number="123")
        company.deactivate(by="alice")
        assert not company.is_active
        assert company.updated_by == "alice"
        company.activate(by="bob")
        assert company.is_active
        assert company.updated_by == "bob"


class TestCompanyService:
    def test_create_company(self, uow, db_engine):
        company = CompanyService(uow).create_company(
            CompanyCreate(name="Acme Ltd", tax_number=" 900 "), "alice"
        )
        assert company.tax_number == "900"
        assert company.created_by == "alice"

    def test_duplicate_tax_number(self, uow, sample_company):
        with pytest.raises(ValidationError) as exc_info:
            CompanyService(uow).create_company(
                CompanyCreate(name="Other", tax_number=sample_company.tax_number), "alice"
            )
        assert "tax_number" in exc_info.value.errors

    def test_update_company(self, uow, sample_company):
        company = CompanyService(uow).update_company(
            sample_company.id, CompanyUpdate(phone="555-0199"), "alice"
        )
        assert company.phone == "555-0199"
        assert company.name == "Acme Ltd"
        assert company.updated_by == "alice"

    def test_delete_blocked_by_dependents(self, uow, sample_company, sample_customer):
        with pytest.raises(GuardError) as exc_info:
            CompanyService(uow).delete_company(sample_company.id, "alice")
        assert exc_info.value.values["dependents"] == 1

    def test_delete_empty_company(self, uow, sample_company):
        service = CompanyService(uow)
        service.delete_company(sample_company.id, "alice")
        with pytest.raises(NotFoundError):
            service.get_company(sample_company.id)

    def test_unknown_company(self, uow, db_engine):
        with pytest.raises(NotFoundError):
            CompanyService(uow).get_company(uuid4())


class TestCompanyAPI:
    def test_company_lifecycle(self, client):
        response = client.post("/companies/", json={"name": "Acme Ltd", "tax_number": "777"},
                               headers={"X-Actor": "alice"})
        assert response.status_code == 201
        company = response.json()
        assert company["display_name"] == "Acme Ltd (VN: 777)"
        assert company["created_by"] == "alice"

        response = client.post(f"/companies/{company['id']}/deactivate")
        assert response.json()["is_active"] is False

        # Una empresa inactiva no puede registrar clientes
        response = client.post("/customers/", json={"name": "Jane"}, headers={"X-Company-ID": company["id"]})
        assert response.status_code == 409
        assert response.json()["guard"] == "tenant_active"

        response = client.delete(f"/companies/{company['id']}")
        assert response.status_code == 204
        assert client.get(f"/companies/{company['id']}").status_code == 404

    def test_duplicate_tax_number_is_unprocessable(self, client):
        client.post("/companies/", json={"name": "Acme", "tax_number": "1"})
        response = client.post("/companies/", json={"name": "Acme 2", "tax_number": "1"})
        assert response.status_code == 422
        assert "tax_number" in response.json()["errors"]

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"
