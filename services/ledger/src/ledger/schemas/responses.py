from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class RevenueSummaryResponse(BaseModel):
    """Projected revenue for one day, summed across markets."""

    day_id: int | None = None
    day_start: datetime | None = None
    supply_side_revenue_usd: Decimal
    protocol_side_revenue_usd: Decimal
    total_revenue_usd: Decimal


class ProtocolResponse(BaseModel):
    """Protocol-wide totals and cumulative revenue."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    total_supply_usd: Decimal
    total_borrow_usd: Decimal
    total_revenue_usd: Decimal
    cumulative_supply_side_revenue_usd: Decimal
    cumulative_protocol_side_revenue_usd: Decimal
    market_count: int
    daily_revenue: RevenueSummaryResponse


class TokenResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    symbol: str
    name: str
    decimals: int
    last_price_usd: Decimal
    last_price_timestamp: int


class MarketResponse(BaseModel):
    """Current state of a single reserve."""

    id: str
    protocol: str
    asset: str
    a_token: str
    s_token: str
    v_token: str
    input_token: TokenResponse | None = None
    # Raw amounts in the smallest unit of the input token
    total_supply: Decimal
    total_borrow: Decimal
    available_liquidity: Decimal
    # Percentages
    supply_apy: Decimal
    variable_borrow_apy: Decimal
    utilization_rate: Decimal
    # Basis points
    ltv: int
    liquidation_threshold: int
    liquidation_penalty: int
    reserve_factor: int
    last_update_timestamp: int
    last_update_block: int
    last_revenue_calculation_timestamp: int


class HourlySnapshotResponse(BaseModel):
    hour_id: int
    period_start: datetime
    supply_volume: Decimal
    withdraw_volume: Decimal
    borrow_volume: Decimal
    repay_volume: Decimal
    supply_apy: Decimal
    borrow_apy: Decimal
    utilization_rate: Decimal
    total_supply: Decimal
    total_borrow: Decimal


class DailySnapshotResponse(BaseModel):
    day_id: int
    period_start: datetime
    supply_volume: Decimal
    withdraw_volume: Decimal
    borrow_volume: Decimal
    repay_volume: Decimal
    volume_usd: Decimal
    active_users: int
    supply_apy: Decimal
    borrow_apy: Decimal
    utilization_rate: Decimal
    total_supply: Decimal
    total_borrow: Decimal
    projected_supply_side_revenue_usd: Decimal
    projected_protocol_side_revenue_usd: Decimal
    projected_total_revenue_usd: Decimal


class MarketHistory(BaseModel):
    """Bucketed history for one market, oldest first."""

    market_id: str
    hourly: list[HourlySnapshotResponse] | None = None
    daily: list[DailySnapshotResponse] | None = None


class PositionResponse(BaseModel):
    market: str
    a_token_balance: Decimal
    variable_debt_balance: Decimal
    stable_debt_balance: Decimal
    principal: Decimal
    total_deposited: Decimal
    total_withdrawn: Decimal
    realized_pnl: Decimal
    unrealized_pnl: Decimal
    is_collateral: bool
    last_update_timestamp: int


class UserResponse(BaseModel):
    id: str
    total_supply_usd: Decimal
    total_borrow_usd: Decimal
    transaction_count: int
    positions: list[PositionResponse]
