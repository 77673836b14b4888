from decimal import Decimal

import pytest
from sqlalchemy import create_engine

from services.ledger.src.ledger.adapters.aave_v3.contracts import (
    MockAaveV3Reader,
    ReserveConfiguration,
    ReserveData,
    ReserveTokens,
    TokenMetadata,
    UserReserveData,
)
from services.ledger.src.ledger.db.engine import init_db
from services.ledger.src.ledger.db.store import EntityStore
from services.ledger.src.ledger.domain.models import (
    ActionType,
    BlockTick,
    DailySnapshot,
    HourlySnapshot,
    LendingEvent,
    Market,
    Protocol,
    RateUpdateEvent,
    Token,
    Transaction,
    User,
    UserPosition,
)
from services.ledger.src.ledger.engine.processor import LedgerProcessor

RAY = 10**27
PROTOCOL_ID = "aave-v3-test"
USDC = "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913"
A_USDC = "0x4e65fe4dba92790696d040ac24aa414708f5c0ab"
ALICE = "0x00000000000000000000000000000000000000aa"
T0 = 1699920000
YEAR = 31536000


def usdc(amount: int) -> int:
    return amount * 10**6


def reserve_data(supply: int, borrow: int, liquidity_pct: int = 3, borrow_pct: int = 5) -> ReserveData:
    return ReserveData(
        total_a_token=usdc(supply),
        total_stable_debt=0,
        total_variable_debt=usdc(borrow),
        liquidity_rate=liquidity_pct * RAY // 100,
        variable_borrow_rate=borrow_pct * RAY // 100,
        stable_borrow_rate=0,
    )


def lending_event(action: ActionType, amount: int, timestamp: int = T0, log_index: int = 1,
                  tx: str = "0x01") -> LendingEvent:
    return LendingEvent(
        action=action,
        tx_hash=tx,
        log_index=log_index,
        block_number=100,
        timestamp=timestamp,
        reserve=USDC,
        user=ALICE,
        amount=amount,
    )


@pytest.fixture
def store():
    engine = create_engine("sqlite:///:memory:")
    init_db(engine)
    return EntityStore(engine)


@pytest.fixture
def reader():
    reader = MockAaveV3Reader()
    reader.reserves = [USDC]
    reader.reserve_tokens[USDC] = ReserveTokens(A_USDC, "0x" + "5" * 40, "0x" + "6" * 40)
    reader.configurations[USDC] = ReserveConfiguration(6, 7500, 7800, 10500, 1000)
    reader.tokens[USDC] = TokenMetadata("USDC", "USD Coin", 6, 10**15)
    reader.prices[USDC] = 10**8
    reader.reserve_data[USDC] = reserve_data(1_000_000, 365_000)
    reader.user_reserve_data[(USDC, ALICE)] = UserReserveData(usdc(100), 0, 0, True)
    return reader


@pytest.fixture
def processor(store, reader):
    return LedgerProcessor(store, reader, PROTOCOL_ID)


class TestHandleSupply:

    def test_creates_entities(self, processor, store):
        processor.handle_supply(lending_event(ActionType.SUPPLY, usdc(100)))

        assert store.load(Market, USDC) is not None
        assert store.load(User, ALICE).transaction_count == 1
        assert store.load(UserPosition, f"{ALICE}-{USDC}") is not None

    def test_records_transaction_with_usd_value(self, processor, store):
        processor.handle_supply(lending_event(ActionType.SUPPLY, usdc(100)))

        tx = store.load(Transaction, "0x01-1")
        assert tx.type is ActionType.SUPPLY
        assert tx.amount == usdc(100)
        assert tx.amount_usd == Decimal("100")
        assert tx.from_user == ALICE
        assert tx.market == USDC
        assert tx.block == 100

    def test_position_resynced_then_delta_applied(self, processor, store):
        processor.handle_supply(lending_event(ActionType.SUPPLY, usdc(100)))

        position = store.load(UserPosition, f"{ALICE}-{USDC}")
        assert position.a_token_balance == usdc(100)
        assert position.is_collateral is True
        assert position.principal == usdc(100)
        assert position.total_deposited == usdc(100)
        assert position.last_update_timestamp == T0

    def test_aggregates_user_and_protocol(self, processor, store):
        processor.handle_supply(lending_event(ActionType.SUPPLY, usdc(100)))

        assert store.load(User, ALICE).total_supply_usd == Decimal("100")
        protocol = store.load(Protocol, PROTOCOL_ID)
        assert protocol.total_supply_usd == Decimal("1000000")
        assert protocol.total_borrow_usd == Decimal("365000")

    def test_updates_snapshots(self, processor, store):
        processor.handle_supply(lending_event(ActionType.SUPPLY, usdc(100)))

        hourly = store.load(HourlySnapshot, f"{USDC}-{T0 // 3600}")
        daily = store.load(DailySnapshot, f"{USDC}-{T0 // 86400}")
        assert hourly.supply_volume == usdc(100)
        assert daily.supply_volume == usdc(100)
        assert daily.volume_usd == Decimal("100")
        assert daily.active_users == 1
        assert daily.projected_total_revenue_usd == Decimal("20")

    def test_duplicate_event_is_skipped(self, processor, store):
        event = lending_event(ActionType.SUPPLY, usdc(100))

        processor.handle_supply(event)
        processor.handle_supply(event)

        assert store.load(User, ALICE).transaction_count == 1
        assert store.load(UserPosition, f"{ALICE}-{USDC}").total_deposited == usdc(100)
        assert store.load(DailySnapshot, f"{USDC}-{T0 // 86400}").supply_volume == usdc(100)

    def test_zero_price_gives_zero_usd_amount(self, processor, reader, store):
        del reader.prices[USDC]

        processor.handle_supply(lending_event(ActionType.SUPPLY, usdc(100)))

        assert store.load(Transaction, "0x01-1").amount_usd == Decimal("0")

    def test_survives_failed_position_query(self, processor, reader, store):
        reader.user_reserve_data.clear()

        processor.handle_supply(lending_event(ActionType.SUPPLY, usdc(100)))

        position = store.load(UserPosition, f"{ALICE}-{USDC}")
        assert position.a_token_balance == 0
        assert position.principal == usdc(100)


class TestHandleWithdraw:

    def test_deposit_and_withdrawals_track_principal_and_pnl(self, processor, store):
        processor.handle_supply(lending_event(ActionType.SUPPLY, usdc(100), log_index=1))
        processor.handle_withdraw(lending_event(ActionType.WITHDRAW, usdc(60), T0 + 10, log_index=2))

        position = store.load(UserPosition, f"{ALICE}-{USDC}")
        assert position.principal == usdc(40)

        processor.handle_withdraw(lending_event(ActionType.WITHDRAW, usdc(50), T0 + 20, log_index=3))

        position = store.load(UserPosition, f"{ALICE}-{USDC}")
        assert position.principal == 0
        assert position.realized_pnl == Decimal("10")
        assert store.load(User, ALICE).transaction_count == 3


class TestHandleBorrowAndRepay:

    def test_accrues_at_pre_event_state(self, processor, reader, store):
        processor.handle_supply(lending_event(ActionType.SUPPLY, usdc(100)))
        # Rates and balances change at the next event; the elapsed year is valued at the old ones
        reader.reserve_data[USDC] = reserve_data(1_000_000, 900_000, 1, 10)

        processor.handle_borrow(
            lending_event(ActionType.BORROW, usdc(10), T0 + YEAR, log_index=2, tx="0x02")
        )

        protocol = store.load(Protocol, PROTOCOL_ID)
        assert protocol.total_revenue_usd == Decimal("7300")
        assert protocol.cumulative_protocol_side_revenue_usd == Decimal("730")
        assert protocol.cumulative_supply_side_revenue_usd == Decimal("6570")

        market = store.load(Market, USDC)
        assert market.total_borrow == usdc(900_000)
        assert market.last_revenue_calculation_timestamp == T0 + YEAR
        assert market.last_update_timestamp == T0 + YEAR

    def test_borrow_and_repay_do_not_move_principal(self, processor, store):
        processor.handle_borrow(lending_event(ActionType.BORROW, usdc(10), log_index=1))
        processor.handle_repay(lending_event(ActionType.REPAY, usdc(4), T0 + 1, log_index=2))

        position = store.load(UserPosition, f"{ALICE}-{USDC}")
        assert position.principal == 0
        assert position.total_withdrawn == 0

        daily = store.load(DailySnapshot, f"{USDC}-{T0 // 86400}")
        assert daily.borrow_volume == usdc(10)
        assert daily.repay_volume == usdc(4)


class TestHandleReserveDataUpdated:

    def rate_event(self, timestamp: int, borrow_pct: int = 8) -> RateUpdateEvent:
        return RateUpdateEvent(
            tx_hash="0x0a",
            log_index=0,
            block_number=200,
            timestamp=timestamp,
            reserve=USDC,
            liquidity_rate=2 * RAY // 100,
            stable_borrow_rate=0,
            variable_borrow_rate=borrow_pct * RAY // 100,
        )

    def test_accrues_before_applying_new_rates(self, processor, reader, store):
        processor.handle_supply(lending_event(ActionType.SUPPLY, usdc(100)))

        processor.handle_reserve_data_updated(self.rate_event(T0 + YEAR))

        assert store.load(Protocol, PROTOCOL_ID).total_revenue_usd == Decimal("7300")
        market = store.load(Market, USDC)
        assert market.last_update_timestamp == T0 + YEAR
        assert market.last_update_block == 200
        assert market.supply_apy == Decimal("2")
        assert market.variable_borrow_apy == Decimal("8")

    def test_stale_update_is_ignored(self, processor, store):
        processor.handle_supply(lending_event(ActionType.SUPPLY, usdc(100), timestamp=T0 + 100))

        processor.handle_reserve_data_updated(self.rate_event(T0))

        market = store.load(Market, USDC)
        assert market.last_update_timestamp == T0 + 100
        assert market.variable_borrow_apy == Decimal("0")

    def test_creates_unknown_market(self, processor, store):
        processor.handle_reserve_data_updated(self.rate_event(T0))

        assert store.load(Market, USDC) is not None


class TestHandleBlock:

    def test_processes_every_listed_market(self, processor, reader, store):
        processor.handle_supply(lending_event(ActionType.SUPPLY, usdc(100)))
        reader.prices[USDC] = 99_000_000

        processor.handle_block(BlockTick(number=500, timestamp=T0 + YEAR))

        market = store.load(Market, USDC)
        assert market.last_update_block == 500
        assert market.last_update_timestamp == T0 + YEAR
        assert market.last_revenue_calculation_timestamp == T0 + YEAR
        assert market.supply_apy == Decimal("3")

        token = store.load(Token, USDC)
        assert token.last_price_usd == Decimal("0.99")
        assert token.last_price_timestamp == T0 + YEAR

        protocol = store.load(Protocol, PROTOCOL_ID)
        assert protocol.total_supply_usd == Decimal("990000")
        # Price is refreshed before accrual in a tick
        assert protocol.total_revenue_usd == Decimal("7227")

    def test_creates_newly_listed_markets(self, processor, store):
        processor.handle_block(BlockTick(number=500, timestamp=T0))

        assert store.load(Market, USDC) is not None

    def test_repeated_tick_accrues_nothing(self, processor, store):
        processor.handle_supply(lending_event(ActionType.SUPPLY, usdc(100)))
        tick = BlockTick(number=500, timestamp=T0 + YEAR)

        processor.handle_block(tick)
        first = store.load(Protocol, PROTOCOL_ID).total_revenue_usd
        processor.handle_block(tick)

        assert first == Decimal("7300")
        assert store.load(Protocol, PROTOCOL_ID).total_revenue_usd == first

    def test_discovery_failure_skips_tick(self, processor, reader, store):
        processor.handle_supply(lending_event(ActionType.SUPPLY, usdc(100)))
        reader.reserves = None

        processor.handle_block(BlockTick(number=500, timestamp=T0 + YEAR))

        assert store.load(Market, USDC).last_revenue_calculation_timestamp == T0


class TestDispatch:

    @pytest.mark.parametrize("action", list(ActionType))
    def test_routes_lending_events(self, processor, store, action):
        processor.dispatch(lending_event(action, usdc(1)))

        assert store.load(Transaction, "0x01-1").type is action

    def test_routes_block_ticks(self, processor, store):
        processor.dispatch(BlockTick(number=1, timestamp=T0))

        assert store.load(Market, USDC).last_update_block == 1

    def test_rejects_unknown_events(self, processor):
        with pytest.raises(TypeError):
            processor.dispatch("not an event")
