from decimal import Decimal

import pytest
from sqlalchemy import create_engine

from services.ledger.src.ledger.adapters.aave_v3.contracts import MockAaveV3Reader, UserReserveData
from services.ledger.src.ledger.db.engine import init_db
from services.ledger.src.ledger.db.store import EntityStore
from services.ledger.src.ledger.domain.models import Market, UserPosition
from services.ledger.src.ledger.engine.positions import PositionLedger, position_id

USDC = "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913"
USER = "0x00000000000000000000000000000000000000aa"


@pytest.fixture
def store():
    engine = create_engine("sqlite:///:memory:")
    init_db(engine)
    return EntityStore(engine)


@pytest.fixture
def reader():
    return MockAaveV3Reader()


@pytest.fixture
def ledger(store, reader):
    return PositionLedger(store, reader)


@pytest.fixture
def market():
    return Market(
        id=USDC,
        protocol="aave-v3-test",
        asset=USDC,
        a_token="0xa",
        s_token="0xs",
        v_token="0xv",
        input_token=USDC,
        output_token="0xa",
    )


class TestGetOrCreate:

    def test_position_id(self):
        assert position_id(USER, USDC) == f"{USER}-{USDC}"

    def test_creates_and_persists_empty_position(self, ledger, store):
        position = ledger.get_or_create(USER, USDC)

        assert position == UserPosition(id=f"{USER}-{USDC}", user=USER, market=USDC)
        assert store.load(UserPosition, position.id) == position

    def test_returns_existing(self, ledger, store):
        store.save(UserPosition(id=f"{USER}-{USDC}", user=USER, market=USDC, principal=7))

        assert ledger.get_or_create(USER, USDC).principal == 7


class TestSyncPosition:

    def test_overwrites_balances_and_collateral_flag(self, ledger, reader, market):
        reader.user_reserve_data[(USDC, USER)] = UserReserveData(500, 20, 80, True)
        position = UserPosition(id="p", user=USER, market=USDC, a_token_balance=1)

        assert ledger.sync_position(position, USER, market) is True
        assert position.a_token_balance == 500
        assert position.stable_debt_balance == 20
        assert position.variable_debt_balance == 80
        assert position.total_debt == 100
        assert position.is_collateral is True

    def test_failure_leaves_position_unchanged(self, ledger, market):
        position = UserPosition(id="p", user=USER, market=USDC, a_token_balance=1)

        assert ledger.sync_position(position, USER, market) is False
        assert position.a_token_balance == 1

    def test_does_not_touch_cash_flow_history(self, ledger, reader, market):
        reader.user_reserve_data[(USDC, USER)] = UserReserveData(500, 0, 0, False)
        position = UserPosition(id="p", user=USER, market=USDC, principal=300, total_deposited=300)

        ledger.sync_position(position, USER, market)

        assert position.principal == 300
        assert position.total_deposited == 300


class TestCashFlow:

    def test_deposit_adds_to_principal_and_total(self):
        position = UserPosition(id="p", user=USER, market=USDC)

        PositionLedger.apply_deposit(position, 100)

        assert position.principal == 100
        assert position.total_deposited == 100

    def test_deposit_then_two_withdrawals(self):
        position = UserPosition(id="p", user=USER, market=USDC)

        PositionLedger.apply_deposit(position, 100 * 10**6)
        PositionLedger.apply_withdrawal(position, 60 * 10**6, 6)

        assert position.principal == 40 * 10**6
        assert position.realized_pnl == Decimal("0")

        PositionLedger.apply_withdrawal(position, 50 * 10**6, 6)

        assert position.principal == 0
        assert position.total_withdrawn == 110 * 10**6
        assert position.realized_pnl == Decimal("10")

    def test_principal_never_negative(self):
        position = UserPosition(id="p", user=USER, market=USDC)

        PositionLedger.apply_withdrawal(position, 5, 6)

        assert position.principal == 0

    def test_realized_pnl_zero_when_withdrawn_equals_deposited(self):
        position = UserPosition(id="p", user=USER, market=USDC)
        PositionLedger.apply_deposit(position, 100)

        PositionLedger.apply_withdrawal(position, 100, 0)

        assert position.realized_pnl == Decimal("0")
        assert position.principal == 0

    def test_unknown_decimals_skip_realized_pnl(self):
        position = UserPosition(id="p", user=USER, market=USDC)
        PositionLedger.apply_deposit(position, 100)

        PositionLedger.apply_withdrawal(position, 150, None)

        assert position.realized_pnl == Decimal("0")
        assert position.total_withdrawn == 150
