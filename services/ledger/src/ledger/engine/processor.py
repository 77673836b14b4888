"""Event and time-tick handlers.

Each handler runs to completion before the next event is considered:
accrual -> resync -> USD valuation -> entity mutation -> aggregation
(user, then protocol) -> snapshots.
"""

import logging

from services.ledger.src.ledger.adapters.aave_v3.contracts import AaveV3Reader
from services.ledger.src.ledger.db.store import EntityStore
from services.ledger.src.ledger.domain.models import (
    ZERO,
    ActionType,
    BlockTick,
    LendingEvent,
    Market,
    RateUpdateEvent,
    Token,
    Transaction,
    User,
)
from services.ledger.src.ledger.domain.units import DEFAULT_UNITS, UnitConfig
from services.ledger.src.ledger.engine.aggregation import AggregationEngine
from services.ledger.src.ledger.engine.markets import MarketStateSync
from services.ledger.src.ledger.engine.positions import PositionLedger
from services.ledger.src.ledger.engine.pricing import PriceOracleAdapter
from services.ledger.src.ledger.engine.revenue import RevenueAccrualEngine
from services.ledger.src.ledger.engine.snapshots import SnapshotEngine
from services.ledger.src.ledger.engine.tokens import TokenRegistry

logger = logging.getLogger(__name__)


def get_or_create_user(store: EntityStore, address: str) -> User:
    user_id = address.lower()
    user = store.load(User, user_id)
    if user is None:
        user = User(id=user_id)
        store.save(user)
    return user


class LedgerProcessor:
    def __init__(
        self,
        store: EntityStore,
        reader: AaveV3Reader,
        protocol_id: str,
        units: UnitConfig = DEFAULT_UNITS,
    ):
        self.store = store
        self.units = units
        self.pricing = PriceOracleAdapter(reader, units)
        self.tokens = TokenRegistry(store, reader, self.pricing)
        self.markets = MarketStateSync(store, reader, self.tokens, units, protocol_id)
        self.revenue = RevenueAccrualEngine(store, units, protocol_id)
        self.positions = PositionLedger(store, reader)
        self.aggregation = AggregationEngine(store, self.markets, self.tokens, protocol_id)
        self.snapshots = SnapshotEngine(store, self.markets, units)

    def dispatch(self, event: LendingEvent | RateUpdateEvent | BlockTick) -> None:
        if isinstance(event, LendingEvent):
            self._handlers[event.action](self, event)
        elif isinstance(event, RateUpdateEvent):
            self.handle_reserve_data_updated(event)
        elif isinstance(event, BlockTick):
            self.handle_block(event)
        else:
            raise TypeError(f"Unsupported event: {type(event).__name__}")

    def handle_supply(self, event: LendingEvent) -> None:
        self._handle_lending_event(event, ActionType.SUPPLY)

    def handle_withdraw(self, event: LendingEvent) -> None:
        self._handle_lending_event(event, ActionType.WITHDRAW)

    def handle_borrow(self, event: LendingEvent) -> None:
        self._handle_lending_event(event, ActionType.BORROW)

    def handle_repay(self, event: LendingEvent) -> None:
        self._handle_lending_event(event, ActionType.REPAY)

    _handlers = {
        ActionType.SUPPLY: handle_supply,
        ActionType.WITHDRAW: handle_withdraw,
        ActionType.BORROW: handle_borrow,
        ActionType.REPAY: handle_repay,
    }

    def _handle_lending_event(self, event: LendingEvent, action: ActionType) -> None:
        if self.store.load(Transaction, event.transaction_id) is not None:
            logger.debug(f"Skipping already processed transaction {event.transaction_id}")
            return

        market = self.markets.get_or_create(event.reserve, event.timestamp)
        user = get_or_create_user(self.store, event.user)
        position = self.positions.get_or_create(user.id, market.id)

        # Revenue for the elapsed interval uses the pre-event rates and balances
        self.revenue.accrue(market, event.timestamp)

        token = self.store.load(Token, market.input_token)
        decimals = token.decimals if token is not None else None

        self.positions.sync_position(position, event.user, market)
        if action is ActionType.SUPPLY:
            self.positions.apply_deposit(position, event.amount)
        elif action is ActionType.WITHDRAW:
            self.positions.apply_withdrawal(position, event.amount, decimals)
        position.last_update_timestamp = event.timestamp
        self.store.save(position)

        self.markets.sync(market)
        market.last_update_timestamp = event.timestamp
        market.last_update_block = event.block_number
        self.store.save(market)

        amount_usd = ZERO
        if decimals is not None:
            amount_usd = self.pricing.usd_value(event.amount, market.asset, decimals)

        self.store.save(
            Transaction(
                id=event.transaction_id,
                hash=event.tx_hash,
                timestamp=event.timestamp,
                block=event.block_number,
                from_user=user.id,
                market=market.id,
                type=action,
                amount=event.amount,
                amount_usd=amount_usd,
            )
        )

        user.transaction_count += 1
        self.store.save(user)

        self.aggregation.recalc_user(user)
        self.aggregation.recalc_protocol()

        self.snapshots.update_hourly(market, event.timestamp, action, event.amount)
        self.snapshots.update_daily(
            market, event.timestamp, action, event.amount, amount_usd, user.id
        )

    def handle_reserve_data_updated(self, event: RateUpdateEvent) -> None:
        market = self.markets.get_or_create(event.reserve, event.timestamp)
        if event.timestamp < market.last_update_timestamp:
            logger.debug(
                f"Ignoring stale rate update for {market.id} at {event.timestamp} "
                f"(market updated at {market.last_update_timestamp})"
            )
            return

        # Accrue at the outgoing rates before they are replaced
        self.revenue.accrue(market, event.timestamp)

        market.liquidity_rate = event.liquidity_rate
        market.variable_borrow_rate = event.variable_borrow_rate
        market.stable_borrow_rate = event.stable_borrow_rate
        self.markets.refresh_apy(market)

        market.last_update_timestamp = event.timestamp
        market.last_update_block = event.block_number

        self.markets.sync(market)
        self.store.save(market)

        self.aggregation.recalc_protocol()

    def handle_block(self, tick: BlockTick) -> None:
        """Periodic pass over every listed market, then protocol aggregation."""
        market_ids = self.markets.list_market_ids()
        if market_ids is None:
            logger.warning(f"Failed to get reserves list at block {tick.number}")
            return

        for market_id in market_ids:
            market = self.markets.get_or_create(market_id, tick.timestamp)
            self._process_market_in_block(market, tick)

        self.aggregation.recalc_protocol()
        self.snapshots.summarize_daily_revenue(tick.timestamp)

    def _process_market_in_block(self, market: Market, tick: BlockTick) -> None:
        self.markets.sync(market)

        token = self.store.load(Token, market.input_token)
        if token is not None:
            self.tokens.refresh_price(token, tick.timestamp)

        self.revenue.accrue(market, tick.timestamp)
        self.markets.refresh_apy(market)

        market.last_update_timestamp = tick.timestamp
        market.last_update_block = tick.number
        self.store.save(market)
