"""
Fixtures compartidas para los tests

Los tests corren contra SQLite en memoria: las variables de entorno se
fijan antes de importar la configuración.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient

from tenant_billing.database.database import Base, engine
from tenant_billing.database.unit_of_work import UnitOfWork
from tenant_billing.modules.company.models import Company
from tenant_billing.modules.customers.models import Customer
from tenant_billing.modules.products.models import Product


@pytest.fixture
def db_engine():
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def uow(db_engine):
    with UnitOfWork() as unit_of_work:
        yield unit_of_work


@pytest.fixture
def client(db_engine):
    from tenant_billing.main import app
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_company(uow):
    """Empresa activa"""
    with uow.transaction():
        company = uow.companies.add(Company(name="Acme Ltd", tax_number="1234567890"))
    return company


@pytest.fixture
def sample_customer(uow, sample_company):
    """Cliente con límite de crédito 1000 y sin deuda"""
    with uow.transaction():
        customer = uow.customers.add(Customer(
            tenant_id=sample_company.id,
            name="Jane Buyer",
            email="jane@example.com",
            phone="555-0100",
            credit_limit=Decimal("1000"),
        ))
    return customer


@pytest.fixture
def sample_product(uow, sample_company):
    """Producto con control de stock: 10 unidades a 100, impuesto 20%"""
    with uow.transaction():
        product = Product(
            tenant_id=sample_company.id,
            name="Widget",
            product_code="WID-001",
            unit_price=Decimal("100"),
            cost_price=Decimal("60"),
            tax_rate=Decimal("20"),
            weight=Decimal("0.5"),
        )
        product.enable_stock_tracking(Decimal("10"))
        uow.products.add(product)
    return product


@pytest.fixture
def sample_service_product(uow, sample_company):
    """Servicio sin control de stock: 50 sin impuesto"""
    with uow.transaction():
        product = uow.products.add(Product(
            tenant_id=sample_company.id,
            name="Consulting hour",
            product_code="SRV-001",
            unit_price=Decimal("50"),
            tax_rate=Decimal("0"),
        ))
    return product
