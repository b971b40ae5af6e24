"""
Tests para el módulo de Productos
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from tenant_billing.common.exceptions import NotFoundError, ValidationError
from tenant_billing.modules.products.models import Product, ProductType
from tenant_billing.modules.products.schemas import ProductCreate, ProductUpdate
from tenant_billing.modules.products.service import ProductService


def make_product(**overrides):
    values = dict(
        tenant_id=uuid4(),
        name="Widget",
        unit_price=Decimal("100"),
        cost_price=Decimal("80"),
        tax_rate=Decimal("20"),
    )
    values.update(overrides)
    return Product(**values)


class TestProductModel:
    def test_defaults(self):
        product = make_product()
        assert product.is_active and product.is_for_sale
        assert product.is_stock_tracked is False
        assert product.unit == "unit"
        assert product.type == ProductType.PHYSICAL

    def test_untracked_product_sells_any_quantity(self):
        product = make_product()
        assert product.can_sell(Decimal("100000"))
        assert product.is_in_stock

    def test_tracked_product_limited_by_stock(self):
        product = make_product()
        product.enable_stock_tracking(Decimal("5"))
        assert product.can_sell(Decimal("5"))
        assert not product.can_sell(Decimal("5.5"))

    @pytest.mark.parametrize("change", ["deactivate", "stop_selling"])
    def test_inactive_or_not_for_sale_cannot_sell(self, change):
        product = make_product()
        getattr(product, change)()
        assert not product.can_sell(Decimal("1"))
        assert not product.can_be_sold

    def test_stock_changes_only_when_tracked(self):
        product = make_product()
        assert product.add_stock(Decimal("3")) is False
        assert product.reduce_stock(Decimal("1")) is False
        assert product.update_stock(Decimal("9")) is False

        product.enable_stock_tracking(Decimal("2"))
        assert product.reduce_stock(Decimal("3")) is False
        assert product.reduce_stock(Decimal("2")) is True
        assert product.stock_quantity == Decimal("0")
        assert product.add_stock(Decimal("4")) is True
        assert product.stock_quantity == Decimal("4")

        product.disable_stock_tracking()
        assert product.stock_quantity == Decimal("0")

    def test_pricing(self):
        product = make_product()
        assert product.profit_amount == Decimal("20")
        assert product.profit_margin == Decimal("25")
        assert product.tax_amount == Decimal("20")
        assert product.price_with_tax == Decimal("120")
        assert product.has_valid_pricing()

    def test_stock_levels(self):
        product = make_product(minimum_stock=Decimal("5"), maximum_stock=Decimal("50"))
        product.enable_stock_tracking(Decimal("5"))
        assert product.is_stock_critical
        assert product.has_valid_stock_levels()

        product.maximum_stock = Decimal("1")
        assert not product.has_valid_stock_levels()


class TestProductService:
    def test_create_with_stock_tracking(self, uow, sample_company):
        product = ProductService(uow).create_product(
            sample_company.id,
            ProductCreate(name="Bolt", product_code="B-1", unit_price=Decimal("2"),
                          is_stock_tracked=True, stock_quantity=Decimal("40")),
            "alice",
        )
        assert product.is_stock_tracked
        assert product.stock_quantity == Decimal("40")
        assert product.tax_rate == Decimal("20")

    def test_duplicate_code_rejected(self, uow, sample_company, sample_product):
        with pytest.raises(ValidationError) as exc_info:
            ProductService(uow).create_product(
                sample_company.id,
                ProductCreate(name="Other", product_code="WID-001", unit_price=Decimal("1")),
                "alice",
            )
        assert "product_code" in exc_info.value.errors

    def test_add_stock(self, uow, sample_company, sample_product, sample_service_product):
        service = ProductService(uow)
        product = service.add_stock(sample_product.id, sample_company.id, Decimal("5"), "alice")
        assert product.stock_quantity == Decimal("15")

        with pytest.raises(ValidationError):
            service.add_stock(sample_service_product.id, sample_company.id, Decimal("5"), "alice")

    def test_update_product(self, uow, sample_company, sample_product):
        product = ProductService(uow).update_product(
            sample_product.id, sample_company.id,
            ProductUpdate(unit_price=Decimal("110"), is_for_sale=False), "bob"
        )
        assert product.unit_price == Decimal("110")
        assert not product.can_sell(Decimal("1"))

    def test_deleted_product_not_found(self, uow, sample_company, sample_product):
        service = ProductService(uow)
        service.delete_product(sample_product.id, sample_company.id, "alice")
        assert sample_product.can_sell(Decimal("1")) is False
        with pytest.raises(NotFoundError):
            service.get_product(sample_product.id, sample_company.id)


class TestProductAPI:
    def test_create_and_add_stock(self, client, sample_company):
        headers = {"X-Company-ID": str(sample_company.id)}
        response = client.post(
            "/products/",
            json={"name": "Lamp", "unit_price": "19.999", "is_stock_tracked": True, "stock_quantity": "2"},
            headers=headers,
        )
        assert response.status_code == 201
        product = response.json()
        assert product["unit_price"] == "20.00"
        assert product["price_with_tax"] == "24.00"

        response = client.post(f"/products/{product['id']}/stock", json={"quantity": "3"}, headers=headers)
        assert response.status_code == 200
        assert Decimal(response.json()["stock_quantity"]) == Decimal("5")

    def test_invalid_payload_is_unprocessable(self, client, sample_company):
        response = client.post(
            "/products/", json={"name": "Lamp", "unit_price": "-1"},
            headers={"X-Company-ID": str(sample_company.id)},
        )
        assert response.status_code == 422
