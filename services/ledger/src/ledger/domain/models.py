from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

ZERO = Decimal("0")


class ActionType(str, Enum):
    """Kinds of user actions recorded as transactions and snapshot volumes."""

    SUPPLY = "SUPPLY"
    WITHDRAW = "WITHDRAW"
    BORROW = "BORROW"
    REPAY = "REPAY"

    @property
    def volume_field(self) -> str:
        """Snapshot counter this action adds to (e.g. 'supply_volume')."""
        return f"{self.value.lower()}_volume"


@dataclass
class Protocol:
    id: str
    total_supply_usd: Decimal = ZERO
    total_borrow_usd: Decimal = ZERO
    total_revenue_usd: Decimal = ZERO
    cumulative_supply_side_revenue_usd: Decimal = ZERO
    cumulative_protocol_side_revenue_usd: Decimal = ZERO


@dataclass
class Token:
    id: str  # lowercase address
    symbol: str = "unknown"
    name: str = "unknown"
    decimals: int = 18
    total_supply: int = 0
    last_price_usd: Decimal = ZERO
    last_price_timestamp: int = 0


@dataclass
class Market:
    """A single reserve, keyed by its underlying asset address."""

    id: str  # lowercase asset address
    protocol: str
    asset: str
    a_token: str
    s_token: str
    v_token: str
    input_token: str
    output_token: str
    # Raw amounts in the smallest unit of the input token
    total_supply: int = 0
    total_borrow: int = 0
    available_liquidity: int = 0
    # RAY-scaled annual rates
    liquidity_rate: int = 0
    variable_borrow_rate: int = 0
    stable_borrow_rate: int = 0
    # Percentages (5 = 5%)
    supply_apy: Decimal = ZERO
    variable_borrow_apy: Decimal = ZERO
    utilization_rate: Decimal = ZERO
    # Risk parameters in basis points (8000 = 80%)
    ltv: int = 0
    liquidation_threshold: int = 0
    liquidation_penalty: int = 0
    reserve_factor: int = 0
    last_update_timestamp: int = 0
    last_update_block: int = 0
    last_revenue_calculation_timestamp: int = 0


@dataclass
class User:
    id: str
    total_supply_usd: Decimal = ZERO
    total_borrow_usd: Decimal = ZERO
    transaction_count: int = 0


@dataclass
class UserPosition:
    id: str  # "{user}-{market}"
    user: str
    market: str
    a_token_balance: int = 0
    variable_debt_balance: int = 0
    stable_debt_balance: int = 0
    principal: int = 0
    total_deposited: int = 0
    total_withdrawn: int = 0
    realized_pnl: Decimal = ZERO
    unrealized_pnl: Decimal = ZERO
    is_collateral: bool = False
    last_update_timestamp: int = 0

    @property
    def total_debt(self) -> int:
        return self.variable_debt_balance + self.stable_debt_balance


@dataclass
class Transaction:
    id: str  # "{txHash}-{logIndex}"
    hash: str
    timestamp: int
    block: int
    from_user: str
    market: str
    type: ActionType
    amount: int
    amount_usd: Decimal


@dataclass
class HourlySnapshot:
    id: str  # "{market}-{hourId}"
    market: str
    hour_id: int
    timestamp: int
    supply_volume: int = 0
    withdraw_volume: int = 0
    borrow_volume: int = 0
    repay_volume: int = 0
    supply_apy: Decimal = ZERO
    borrow_apy: Decimal = ZERO
    utilization_rate: Decimal = ZERO
    total_supply: int = 0
    total_borrow: int = 0


@dataclass
class DailySnapshot:
    id: str  # "{market}-{dayId}"
    market: str
    day_id: int
    timestamp: int
    supply_volume: int = 0
    withdraw_volume: int = 0
    borrow_volume: int = 0
    repay_volume: int = 0
    volume_usd: Decimal = ZERO
    active_users: int = 0
    supply_apy: Decimal = ZERO
    borrow_apy: Decimal = ZERO
    utilization_rate: Decimal = ZERO
    total_supply: int = 0
    total_borrow: int = 0
    # Projection of one day's revenue at the latest observed rates, not realized revenue
    projected_supply_side_revenue_usd: Decimal = ZERO
    projected_protocol_side_revenue_usd: Decimal = ZERO
    projected_total_revenue_usd: Decimal = ZERO


@dataclass
class DailyActiveUser:
    id: str  # "{dayId}-{user}"
    day: int
    user: str


# Event payloads delivered to the processor


@dataclass(frozen=True)
class LendingEvent:
    """A supply, withdraw, borrow or repay emitted by the pool."""

    action: ActionType
    tx_hash: str
    log_index: int
    block_number: int
    timestamp: int
    reserve: str
    user: str  # onBehalfOf for supply/borrow, owner for withdraw/repay
    amount: int

    @property
    def transaction_id(self) -> str:
        return f"{self.tx_hash}-{self.log_index}"


@dataclass(frozen=True)
class RateUpdateEvent:
    """ReserveDataUpdated: new RAY rates for a reserve."""

    tx_hash: str
    log_index: int
    block_number: int
    timestamp: int
    reserve: str
    liquidity_rate: int
    stable_borrow_rate: int
    variable_borrow_rate: int


@dataclass(frozen=True)
class BlockTick:
    number: int
    timestamp: int
