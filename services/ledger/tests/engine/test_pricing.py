from decimal import Decimal

import pytest

from services.ledger.src.ledger.adapters.aave_v3.contracts import MockAaveV3Reader
from services.ledger.src.ledger.domain.units import DEFAULT_UNITS
from services.ledger.src.ledger.engine.pricing import PriceOracleAdapter

WETH = "0x4200000000000000000000000000000000000006"


@pytest.fixture
def reader():
    return MockAaveV3Reader()


@pytest.fixture
def pricing(reader):
    return PriceOracleAdapter(reader, DEFAULT_UNITS)


class TestGetPriceUsd:

    def test_scales_by_base_currency_unit(self, reader, pricing):
        reader.prices[WETH] = 3000 * 10**8

        assert pricing.get_price_usd(WETH) == Decimal("3000")

    def test_missing_quote_is_zero(self, pricing):
        assert pricing.get_price_usd(WETH) == Decimal("0")

    def test_uses_reported_base_currency_unit(self, reader, pricing):
        reader.base_currency_unit = 10**18
        reader.prices[WETH] = 2 * 10**18

        assert pricing.get_price_usd(WETH) == Decimal("2")

    def test_falls_back_to_default_unit(self, reader, pricing):
        reader.base_currency_unit = None
        reader.prices[WETH] = 5 * 10**8

        assert pricing.get_price_usd(WETH) == Decimal("5")

    def test_caches_base_currency_unit(self, reader, pricing):
        reader.prices[WETH] = 10**8

        pricing.get_price_usd(WETH)
        pricing.get_price_usd(WETH)

        calls = [name for name, _ in reader.call_history if name == "get_base_currency_unit"]
        assert calls == ["get_base_currency_unit"]

    def test_retries_base_currency_unit_after_failure(self, reader, pricing):
        reader.base_currency_unit = None
        assert pricing.base_currency_unit() == Decimal(10**8)

        reader.base_currency_unit = 10**6

        assert pricing.base_currency_unit() == Decimal(10**6)


class TestUsdValue:

    def test_converts_with_decimals(self, reader, pricing):
        reader.prices[WETH] = 3000 * 10**8

        assert pricing.usd_value(15 * 10**17, WETH, 18) == Decimal("4500")

    def test_zero_price_gives_zero(self, pricing):
        assert pricing.usd_value(10**18, WETH, 18) == Decimal("0")
