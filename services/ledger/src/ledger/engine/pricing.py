import logging
from decimal import Decimal

from services.ledger.src.ledger.adapters.aave_v3.contracts import AaveV3Reader
from services.ledger.src.ledger.domain.models import ZERO
from services.ledger.src.ledger.domain.units import UnitConfig, convert_token_to_decimal

logger = logging.getLogger(__name__)


class PriceOracleAdapter:
    """USD prices from the Aave oracle, zero when a quote is unavailable."""

    def __init__(self, reader: AaveV3Reader, units: UnitConfig):
        self.reader = reader
        self.units = units
        self._base_currency_unit: int | None = None

    def base_currency_unit(self) -> Decimal:
        """Oracle price scale; falls back to the configured unit (1e8) if unreadable."""
        if self._base_currency_unit is None:
            unit = self.reader.get_base_currency_unit()
            if unit is None:
                return Decimal(self.units.price_unit)
            self._base_currency_unit = unit
        return Decimal(self._base_currency_unit)

    def get_price_usd(self, asset: str) -> Decimal:
        raw_price = self.reader.get_asset_price(asset)
        if raw_price is None:
            logger.debug(f"No oracle price for {asset}")
            return ZERO
        return Decimal(raw_price) / self.base_currency_unit()

    def usd_value(self, amount: int, asset: str, decimals: int) -> Decimal:
        """USD value of a raw token amount at a fresh oracle quote."""
        price = self.get_price_usd(asset)
        if price == ZERO:
            return ZERO
        return convert_token_to_decimal(amount, decimals) * price
