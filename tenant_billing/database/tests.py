"""
Tests para la unidad de trabajo y los repositorios

- Una sola transacción activa por unidad de trabajo
- Commit fallido => rollback automático
- Exclusión de registros eliminados en todas las lecturas estándar
- Conflictos de concurrencia optimista
"""

import pytest
from decimal import Decimal
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from tenant_billing.common.exceptions import ConcurrencyError, TransactionError
from tenant_billing.database.database import Base, build_engine
from tenant_billing.database.unit_of_work import UnitOfWork
from tenant_billing.modules.company.models import Company
from tenant_billing.modules.customers.models import Customer
from tenant_billing.modules.products.models import Product


class TestUnitOfWork:
    def test_second_begin_is_rejected(self, uow):
        uow.begin()
        with pytest.raises(TransactionError):
            uow.begin()
        uow.rollback()
        assert not uow.in_transaction

    def test_commit_without_begin(self, uow):
        with pytest.raises(TransactionError):
            uow.commit()

    def test_rollback_discards_all_changes(self, uow, sample_customer, sample_product):
        with pytest.raises(RuntimeError):
            with uow.transaction():
                sample_customer.add_debt(Decimal("100"))
                sample_product.reduce_stock(Decimal("4"))
                raise RuntimeError("boom")

        assert sample_customer.current_debt == Decimal("0")
        assert sample_product.stock_quantity == Decimal("10")
        assert not uow.in_transaction

    def test_changes_committed_together(self, uow, sample_customer, sample_product):
        with uow.transaction():
            sample_customer.add_debt(Decimal("100"))
            sample_product.reduce_stock(Decimal("4"))

        with UnitOfWork() as other:
            assert other.customers.get_by_id(sample_customer.id).current_debt == Decimal("100")
            assert other.products.get_by_id(sample_product.id).stock_quantity == Decimal("6")

    def test_failed_commit_rolls_back(self, uow, sample_company):
        uow.begin()
        uow.companies.add(Company(name="Clone", tax_number=sample_company.tax_number))
        with pytest.raises(IntegrityError):
            uow.commit()

        assert not uow.in_transaction
        assert uow.companies.count() == 1

    def test_optimistic_concurrency_conflict(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path / 'billing.db'}")
        Base.metadata.create_all(bind=engine)
        factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

        with UnitOfWork(factory) as setup:
            with setup.transaction():
                company = setup.companies.add(Company(name="Acme", tax_number="1"))
            with setup.transaction():
                product = Product(tenant_id=company.id, name="Widget", unit_price=Decimal("1"))
                product.enable_stock_tracking(Decimal("5"))
                setup.products.add(product)

        with UnitOfWork(factory) as first, UnitOfWork(factory) as second:
            mine = first.products.get_by_id(product.id)
            theirs = second.products.get_by_id(product.id)

            with second.transaction():
                theirs.reduce_stock(Decimal("3"))

            # Ambos vieron 5 unidades; el segundo commit debe fallar
            with pytest.raises(ConcurrencyError):
                with first.transaction():
                    mine.reduce_stock(Decimal("3"))
            assert not first.in_transaction

        with UnitOfWork(factory) as check:
            assert check.products.get_by_id(product.id).stock_quantity == Decimal("2")
        engine.dispose()


class TestRepository:
    def test_soft_delete_hides_record(self, uow, sample_company, sample_customer):
        with uow.transaction():
            uow.customers.soft_delete(sample_customer)

        assert sample_customer.is_deleted
        assert sample_customer.updated_at is not None
        assert uow.customers.get_by_id(sample_customer.id) is None
        assert not uow.customers.exists(sample_customer.id)
        assert uow.customers.count(sample_company.id) == 0
        assert uow.customers.list(sample_company.id) == []
        # La fila sigue existiendo
        assert uow.customers.get_deleted_by_id(sample_customer.id, sample_company.id) is sample_customer

    def test_restore(self, uow, sample_customer):
        with uow.transaction():
            uow.customers.soft_delete(sample_customer)
        with uow.transaction():
            uow.customers.restore(sample_customer)
        assert uow.customers.get_by_id(sample_customer.id) is sample_customer

    def test_tenant_filter(self, uow, sample_company, sample_customer):
        with uow.transaction():
            other = uow.companies.add(Company(name="Other", tax_number="999"))
        assert uow.customers.get_by_id(sample_customer.id, sample_company.id) is sample_customer
        assert uow.customers.get_by_id(sample_customer.id, other.id) is None

    def test_list_filters_and_pagination(self, uow, sample_company):
        with uow.transaction():
            for index in range(5):
                uow.customers.add(Customer(
                    tenant_id=sample_company.id, name=f"Customer {index}", is_vip=index % 2 == 0
                ))

        assert uow.customers.count(sample_company.id, is_vip=True) == 3
        page = uow.customers.list(sample_company.id, limit=2, offset=1)
        assert [customer.name for customer in page] == ["Customer 1", "Customer 2"]
        assert [c.name for c in uow.customers.search(sample_company.id, "customer 4")] == ["Customer 4"]

    def test_invoice_sequence_per_year(self, uow, db_engine):
        with uow.transaction():
            assert uow.sequences.next_number(2024) == 1
            assert uow.sequences.next_number(2024) == 2
            assert uow.sequences.next_number(2025) == 1
        assert uow.sequences.get_for_year(2024, for_update=False).current_number == 2

    def test_sequence_created_concurrently_is_a_conflict(self, uow, db_engine, monkeypatch):
        with uow.transaction():
            uow.sequences.next_number(2024)

        # Otra transacción insertó la fila del año entre la lectura y el insert
        monkeypatch.setattr(uow.sequences, "get_for_year", lambda year, for_update=True: None)
        with pytest.raises(ConcurrencyError):
            with uow.transaction():
                uow.sequences.next_number(2024)

        assert not uow.in_transaction
        monkeypatch.undo()
        assert uow.sequences.get_for_year(2024, for_update=False).current_number == 1
