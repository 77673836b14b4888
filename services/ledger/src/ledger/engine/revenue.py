"""Time-weighted interest-spread revenue accrual."""

import logging

from services.ledger.src.ledger.db.store import EntityStore
from services.ledger.src.ledger.domain.models import ZERO, Market, Protocol, Token
from services.ledger.src.ledger.domain.revenue import (
    ZERO_SPLIT,
    RevenueSplit,
    borrow_spread,
    period_revenue,
    split_revenue,
)
from services.ledger.src.ledger.domain.units import UnitConfig, convert_token_to_decimal

logger = logging.getLogger(__name__)


def get_or_create_protocol(store: EntityStore, protocol_id: str) -> Protocol:
    protocol = store.load(Protocol, protocol_id)
    if protocol is None:
        protocol = Protocol(id=protocol_id)
        store.save(protocol)
    return protocol


class RevenueAccrualEngine:
    """Recognizes revenue earned by a market since its last accrual timestamp.

    Rates are treated as already annualized and interpolated linearly over the
    elapsed fraction of a year. Must run before a market's rates or balances are
    overwritten, so the elapsed interval is valued at the state that was in
    effect during it.
    """

    def __init__(self, store: EntityStore, units: UnitConfig, protocol_id: str):
        self.store = store
        self.units = units
        self.protocol_id = protocol_id

    def accrue(self, market: Market, timestamp: int) -> RevenueSplit:
        """Accrue revenue for `market` up to `timestamp` and advance its clock.

        Returns the revenue recognized by this call (zero split when nothing
        accrued). Calls at or before the last accrual timestamp do nothing.
        """
        if timestamp <= market.last_revenue_calculation_timestamp:
            return ZERO_SPLIT

        elapsed = timestamp - market.last_revenue_calculation_timestamp
        accrued = ZERO_SPLIT

        spread = borrow_spread(market, self.units)
        if spread > ZERO:
            token = self.store.load(Token, market.input_token)
            if token is not None:
                total_borrow_usd = (
                    convert_token_to_decimal(market.total_borrow, token.decimals)
                    * token.last_price_usd
                )
                revenue = period_revenue(spread, total_borrow_usd, elapsed, self.units)
                accrued = split_revenue(revenue, market.reserve_factor, self.units)
                self._accumulate(accrued)

                logger.info(
                    f"Revenue calculated for market {market.id}: spread={spread}, "
                    f"totalBorrowUSD={total_borrow_usd}, timeElapsed={elapsed}, "
                    f"periodRevenue={accrued.total}, protocolRevenue={accrued.protocol_side}, "
                    f"supplySideRevenue={accrued.supply_side}"
                )

        market.last_revenue_calculation_timestamp = timestamp
        self.store.save(market)
        return accrued

    def _accumulate(self, accrued: RevenueSplit) -> None:
        protocol = get_or_create_protocol(self.store, self.protocol_id)
        protocol.cumulative_supply_side_revenue_usd += accrued.supply_side
        protocol.cumulative_protocol_side_revenue_usd += accrued.protocol_side
        protocol.total_revenue_usd = (
            protocol.cumulative_supply_side_revenue_usd
            + protocol.cumulative_protocol_side_revenue_usd
        )
        self.store.save(protocol)
