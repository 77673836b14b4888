import logging

from services.ledger.src.ledger.adapters.aave_v3.config import ZERO_ADDRESS
from services.ledger.src.ledger.adapters.aave_v3.contracts import AaveV3Reader
from services.ledger.src.ledger.db.store import EntityStore
from services.ledger.src.ledger.domain.models import Market
from services.ledger.src.ledger.domain.units import (
    HUNDRED,
    UnitConfig,
    calculate_utilization_rate,
)
from services.ledger.src.ledger.engine.tokens import TokenRegistry

logger = logging.getLogger(__name__)


class MarketStateSync:
    """Keeps Market entities in line with on-chain reserve state."""

    def __init__(
        self,
        store: EntityStore,
        reader: AaveV3Reader,
        tokens: TokenRegistry,
        units: UnitConfig,
        protocol_id: str,
    ):
        self.store = store
        self.reader = reader
        self.tokens = tokens
        self.units = units
        self.protocol_id = protocol_id

    def get_or_create(self, asset: str, timestamp: int) -> Market:
        """Load the market for `asset`, creating and syncing it on first reference.

        A new market starts its revenue clock at `timestamp` so no revenue is
        attributed to the time before it was first observed.
        """
        market_id = asset.lower()
        market = self.store.load(Market, market_id)
        if market is not None:
            return market

        reserve_tokens = self.reader.get_reserve_tokens(market_id)
        if reserve_tokens is not None:
            a_token = reserve_tokens.a_token.lower()
            s_token = reserve_tokens.stable_debt_token.lower()
            v_token = reserve_tokens.variable_debt_token.lower()
        else:
            a_token = s_token = v_token = ZERO_ADDRESS
            logger.warning(f"Failed to fetch reserve token addresses for asset: {market_id}")

        input_token = self.tokens.get_or_create(market_id)
        output_token = self.tokens.get_or_create(a_token)

        market = Market(
            id=market_id,
            protocol=self.protocol_id,
            asset=market_id,
            a_token=a_token,
            s_token=s_token,
            v_token=v_token,
            input_token=input_token.id,
            output_token=output_token.id,
            last_update_timestamp=timestamp,
            last_update_block=0,
            last_revenue_calculation_timestamp=timestamp,
        )

        configuration = self.reader.get_reserve_configuration(market_id)
        if configuration is not None:
            market.ltv = configuration.ltv
            market.liquidation_threshold = configuration.liquidation_threshold
            market.liquidation_penalty = configuration.liquidation_bonus
            market.reserve_factor = configuration.reserve_factor
        else:
            logger.warning(f"Failed to fetch reserve configuration for asset: {market_id}")

        # Capture deposits that predate the first observed event
        self.sync(market)
        self.store.save(market)
        return market

    def sync(self, market: Market) -> bool:
        """Overwrite totals and rates from reserve data.

        Leaves the market untouched and returns False when the query fails.
        """
        reserve = self.reader.get_reserve_data(market.asset)
        if reserve is None:
            logger.debug(f"Reserve data unavailable for {market.id}, keeping previous state")
            return False

        market.total_supply = reserve.total_a_token
        market.total_borrow = reserve.total_variable_debt + reserve.total_stable_debt
        market.available_liquidity = market.total_supply - market.total_borrow

        market.liquidity_rate = reserve.liquidity_rate
        market.variable_borrow_rate = reserve.variable_borrow_rate
        market.stable_borrow_rate = reserve.stable_borrow_rate

        market.utilization_rate = calculate_utilization_rate(
            market.total_borrow, market.total_supply
        )
        return True

    def refresh_apy(self, market: Market) -> None:
        # Aave V3 rates are already annualized
        market.supply_apy = self.units.ray_to_decimal(market.liquidity_rate) * HUNDRED
        market.variable_borrow_apy = self.units.ray_to_decimal(market.variable_borrow_rate) * HUNDRED

    def list_market_ids(self) -> list[str] | None:
        """Currently listed reserves, queried fresh. None if discovery failed."""
        return self.reader.get_reserves_list()
