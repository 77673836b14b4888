from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Enum,
    Index,
    Integer,
    MetaData,
    String,
    Table,
)
from sqlalchemy.types import TypeDecorator

from services.ledger.src.ledger.domain.models import ActionType


class Uint256(TypeDecorator):
    """Unbounded integer stored as text (token amounts, RAY rates)."""

    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(int(value))

    def process_result_value(self, value, dialect):
        return None if value is None else int(value)


class ExactDecimal(TypeDecorator):
    """Decimal stored as text so values round-trip without float rounding."""

    impl = String(100)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else Decimal(value)


metadata = MetaData()

protocols = Table(
    "protocols",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("total_supply_usd", ExactDecimal, nullable=False),
    Column("total_borrow_usd", ExactDecimal, nullable=False),
    Column("total_revenue_usd", ExactDecimal, nullable=False),
    Column("cumulative_supply_side_revenue_usd", ExactDecimal, nullable=False),
    Column("cumulative_protocol_side_revenue_usd", ExactDecimal, nullable=False),
)

tokens = Table(
    "tokens",
    metadata,
    Column("id", String(66), primary_key=True),
    Column("symbol", String(64), nullable=False),
    Column("name", String(128), nullable=False),
    Column("decimals", Integer, nullable=False),
    Column("total_supply", Uint256, nullable=False),
    Column("last_price_usd", ExactDecimal, nullable=False),
    Column("last_price_timestamp", BigInteger, nullable=False),
)

markets = Table(
    "markets",
    metadata,
    Column("id", String(66), primary_key=True),
    Column("protocol", String(64), nullable=False),
    Column("asset", String(66), nullable=False),
    Column("a_token", String(66), nullable=False),
    Column("s_token", String(66), nullable=False),
    Column("v_token", String(66), nullable=False),
    Column("input_token", String(66), nullable=False),
    Column("output_token", String(66), nullable=False),
    Column("total_supply", Uint256, nullable=False),
    Column("total_borrow", Uint256, nullable=False),
    Column("available_liquidity", Uint256, nullable=False),
    # RAY-scaled rates
    Column("liquidity_rate", Uint256, nullable=False),
    Column("variable_borrow_rate", Uint256, nullable=False),
    Column("stable_borrow_rate", Uint256, nullable=False),
    Column("supply_apy", ExactDecimal, nullable=False),
    Column("variable_borrow_apy", ExactDecimal, nullable=False),
    Column("utilization_rate", ExactDecimal, nullable=False),
    # Risk parameters (basis points)
    Column("ltv", Integer, nullable=False),
    Column("liquidation_threshold", Integer, nullable=False),
    Column("liquidation_penalty", Integer, nullable=False),
    Column("reserve_factor", Integer, nullable=False),
    Column("last_update_timestamp", BigInteger, nullable=False),
    Column("last_update_block", BigInteger, nullable=False),
    Column("last_revenue_calculation_timestamp", BigInteger, nullable=False),
)

users = Table(
    "users",
    metadata,
    Column("id", String(66), primary_key=True),
    Column("total_supply_usd", ExactDecimal, nullable=False),
    Column("total_borrow_usd", ExactDecimal, nullable=False),
    Column("transaction_count", Integer, nullable=False),
)

user_positions = Table(
    "user_positions",
    metadata,
    Column("id", String(140), primary_key=True),
    Column("user", String(66), nullable=False),
    Column("market", String(66), nullable=False),
    Column("a_token_balance", Uint256, nullable=False),
    Column("variable_debt_balance", Uint256, nullable=False),
    Column("stable_debt_balance", Uint256, nullable=False),
    Column("principal", Uint256, nullable=False),
    Column("total_deposited", Uint256, nullable=False),
    Column("total_withdrawn", Uint256, nullable=False),
    Column("realized_pnl", ExactDecimal, nullable=False),
    Column("unrealized_pnl", ExactDecimal, nullable=False),
    Column("is_collateral", Boolean, nullable=False),
    Column("last_update_timestamp", BigInteger, nullable=False),
    Index("ix_positions_user", "user"),
)

transactions = Table(
    "transactions",
    metadata,
    Column("id", String(140), primary_key=True),
    Column("hash", String(66), nullable=False),
    # Raw timestamp (unix seconds UTC)
    Column("timestamp", BigInteger, nullable=False),
    Column("block", BigInteger, nullable=False),
    Column("from_user", String(66), nullable=False),
    Column("market", String(66), nullable=False),
    Column("type", Enum(ActionType, native_enum=False, length=16), nullable=False),
    Column("amount", Uint256, nullable=False),
    Column("amount_usd", ExactDecimal, nullable=False),
    Index("idx_transactions_timestamp", "timestamp"),
    Index("idx_transactions_user", "from_user", "timestamp"),
)

hourly_snapshots = Table(
    "hourly_snapshots",
    metadata,
    Column("id", String(100), primary_key=True),
    Column("market", String(66), nullable=False),
    Column("hour_id", Integer, nullable=False),
    Column("timestamp", BigInteger, nullable=False),
    Column("supply_volume", Uint256, nullable=False),
    Column("withdraw_volume", Uint256, nullable=False),
    Column("borrow_volume", Uint256, nullable=False),
    Column("repay_volume", Uint256, nullable=False),
    Column("supply_apy", ExactDecimal, nullable=False),
    Column("borrow_apy", ExactDecimal, nullable=False),
    Column("utilization_rate", ExactDecimal, nullable=False),
    Column("total_supply", Uint256, nullable=False),
    Column("total_borrow", Uint256, nullable=False),
    Index("ix_hourly_market", "market", "hour_id"),
)

daily_snapshots = Table(
    "daily_snapshots",
    metadata,
    Column("id", String(100), primary_key=True),
    Column("market", String(66), nullable=False),
    Column("day_id", Integer, nullable=False),
    Column("timestamp", BigInteger, nullable=False),
    Column("supply_volume", Uint256, nullable=False),
    Column("withdraw_volume", Uint256, nullable=False),
    Column("borrow_volume", Uint256, nullable=False),
    Column("repay_volume", Uint256, nullable=False),
    Column("volume_usd", ExactDecimal, nullable=False),
    Column("active_users", Integer, nullable=False),
    Column("supply_apy", ExactDecimal, nullable=False),
    Column("borrow_apy", ExactDecimal, nullable=False),
    Column("utilization_rate", ExactDecimal, nullable=False),
    Column("total_supply", Uint256, nullable=False),
    Column("total_borrow", Uint256, nullable=False),
    Column("projected_supply_side_revenue_usd", ExactDecimal, nullable=False),
    Column("projected_protocol_side_revenue_usd", ExactDecimal, nullable=False),
    Column("projected_total_revenue_usd", ExactDecimal, nullable=False),
    Index("ix_daily_market", "market", "day_id"),
)

daily_active_users = Table(
    "daily_active_users",
    metadata,
    Column("id", String(100), primary_key=True),
    Column("day", Integer, nullable=False),
    Column("user", String(66), nullable=False),
)
