"""Interest-spread revenue math shared by accrual and daily projections."""

from dataclasses import dataclass
from decimal import Decimal

from services.ledger.src.ledger.domain.models import ZERO, Market
from services.ledger.src.ledger.domain.units import UnitConfig


@dataclass(frozen=True)
class RevenueSplit:
    total: Decimal
    protocol_side: Decimal
    supply_side: Decimal


ZERO_SPLIT = RevenueSplit(total=ZERO, protocol_side=ZERO, supply_side=ZERO)


def borrow_spread(market: Market, units: UnitConfig) -> Decimal:
    """Variable borrow rate minus liquidity rate, as plain annual decimals.

    Zero when nothing is borrowed or the borrow rate is unset.
    """
    if market.total_borrow <= 0 or market.variable_borrow_rate <= 0:
        return ZERO
    borrow_rate = units.ray_to_decimal(market.variable_borrow_rate)
    supply_rate = units.ray_to_decimal(market.liquidity_rate)
    return borrow_rate - supply_rate


def split_revenue(revenue: Decimal, reserve_factor: int, units: UnitConfig) -> RevenueSplit:
    """Split revenue between the protocol treasury and suppliers by reserve factor (bps)."""
    protocol_side = revenue * units.bps_to_decimal(reserve_factor)
    return RevenueSplit(
        total=revenue,
        protocol_side=protocol_side,
        supply_side=revenue - protocol_side,
    )


def period_revenue(
    spread: Decimal, total_borrow_usd: Decimal, elapsed: int, units: UnitConfig
) -> Decimal:
    """Linear share of an annual spread earned over `elapsed` seconds."""
    return spread * total_borrow_usd * Decimal(elapsed) / Decimal(units.seconds_per_year)


def projected_daily_revenue(
    spread: Decimal, total_borrow_usd: Decimal, units: UnitConfig
) -> Decimal:
    """One day of revenue if the current spread and borrow held (365-day year)."""
    return spread * total_borrow_usd / units.days_per_year
