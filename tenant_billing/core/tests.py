"""
Tests para la aritmética monetaria y la configuración
"""

from decimal import Decimal

from tenant_billing.core.money import (
    ZERO, MONEY_EPSILON, to_decimal, is_zero, money_equals, percent_of, quantize_money, quantize_storage
)
from tenant_billing.core.config import Settings


class TestMoney:
    def test_to_decimal_avoids_binary_float(self):
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(0.1) + to_decimal(0.2) == Decimal("0.3")

    def test_to_decimal_none_is_zero(self):
        assert to_decimal(None) == ZERO

    def test_to_decimal_accepts_strings_and_ints(self):
        assert to_decimal("12.50") == Decimal("12.50")
        assert to_decimal(7) == Decimal("7")

    def test_is_zero_uses_epsilon(self):
        assert is_zero(Decimal("0.009"))
        assert is_zero(Decimal("-0.009"))
        assert not is_zero(MONEY_EPSILON)

    def test_money_equals_within_a_cent(self):
        assert money_equals(Decimal("10.004"), Decimal("10"))
        assert not money_equals(Decimal("10.02"), Decimal("10"))

    def test_percent_of_keeps_full_precision(self):
        assert percent_of(Decimal("33.33"), Decimal("20")) == Decimal("6.666")

    def test_quantize_rounds_half_up(self):
        assert quantize_money(Decimal("2.345")) == Decimal("2.35")
        assert quantize_money(Decimal("2.344")) == Decimal("2.34")
        assert quantize_money(324) == Decimal("324.00")

    def test_quantize_storage_keeps_ten_places(self):
        assert quantize_storage(Decimal("0.86625")) == Decimal("0.86625")
        assert quantize_storage(Decimal("100") / Decimal("3")) == Decimal("33.3333333333")
        assert quantize_storage(Decimal("0.00000000005")) == Decimal("0.0000000001")


class TestSettings:
    def test_database_url_override(self):
        settings = Settings(DATABASE_URL="sqlite:///billing.db")
        assert settings.database_url == "sqlite:///billing.db"
        assert settings.is_sqlite

    def test_postgres_url_built_from_parts(self):
        settings = Settings(
            DATABASE_URL=None,
            POSTGRES_USER="u",
            POSTGRES_PASSWORD="p",
            POSTGRES_HOST="db",
            POSTGRES_PORT=5433,
            POSTGRES_DB="billing",
        )
        assert settings.database_url == "postgresql+psycopg2://u:p@db:5433/billing"
        assert not settings.is_sqlite

    def test_debug_parsed_from_string(self):
        assert Settings(DEBUG="false").DEBUG is False
        assert Settings(DEBUG="'true'").DEBUG is True

    def test_invoicing_defaults(self):
        settings = Settings()
        assert settings.DEFAULT_DUE_DAYS == 30
        assert settings.DEFAULT_TAX_RATE == Decimal("20")
        assert settings.DEFAULT_UNIT == "unit"
        assert settings.INVOICE_NUMBER_PREFIX == "INV"
