"""User and protocol USD totals, recomputed in full over all listed markets."""

import logging
from decimal import Decimal

from services.ledger.src.ledger.db.store import EntityStore
from services.ledger.src.ledger.domain.models import ZERO, Market, Token, User, UserPosition
from services.ledger.src.ledger.domain.units import convert_token_to_decimal
from services.ledger.src.ledger.engine.markets import MarketStateSync
from services.ledger.src.ledger.engine.positions import position_id
from services.ledger.src.ledger.engine.revenue import get_or_create_protocol
from services.ledger.src.ledger.engine.tokens import TokenRegistry

logger = logging.getLogger(__name__)


def _usd(amount: int, token: Token) -> Decimal:
    return convert_token_to_decimal(amount, token.decimals) * token.last_price_usd


class AggregationEngine:
    """Overwrites totals with sums over every market, never by delta.

    Markets are re-enumerated on every call since new reserves can be listed at
    any time. If discovery fails the previous totals are left as they are.
    """

    def __init__(
        self,
        store: EntityStore,
        markets: MarketStateSync,
        tokens: TokenRegistry,
        protocol_id: str,
    ):
        self.store = store
        self.markets = markets
        self.tokens = tokens
        self.protocol_id = protocol_id

    def recalc_user(self, user: User) -> None:
        market_ids = self.markets.list_market_ids()
        if market_ids is None:
            logger.warning(f"Market discovery failed, keeping totals for user {user.id}")
            return

        total_supply_usd = ZERO
        total_borrow_usd = ZERO

        for market_id in market_ids:
            position = self.store.load(UserPosition, position_id(user.id, market_id))
            if position is None:
                continue
            market = self.store.load(Market, market_id)
            if market is None:
                continue
            token = self.store.load(Token, market.input_token)
            if token is None:
                continue

            if position.a_token_balance > 0:
                total_supply_usd += _usd(position.a_token_balance, token)
            if position.total_debt > 0:
                total_borrow_usd += _usd(position.total_debt, token)

        user.total_supply_usd = total_supply_usd
        user.total_borrow_usd = total_borrow_usd
        self.store.save(user)

    def recalc_protocol(self) -> None:
        """Protocol supply/borrow USD across markets, refreshing each input token's price."""
        market_ids = self.markets.list_market_ids()
        if market_ids is None:
            logger.warning("Market discovery failed, keeping protocol totals")
            return

        total_supply_usd = ZERO
        total_borrow_usd = ZERO

        for market_id in market_ids:
            market = self.store.load(Market, market_id)
            if market is None:
                continue
            token = self.store.load(Token, market.input_token)
            if token is None:
                continue

            token = self.tokens.refresh_price(token)
            total_supply_usd += _usd(market.total_supply, token)
            total_borrow_usd += _usd(market.total_borrow, token)

        protocol = get_or_create_protocol(self.store, self.protocol_id)
        protocol.total_supply_usd = total_supply_usd
        protocol.total_borrow_usd = total_borrow_usd
        self.store.save(protocol)
