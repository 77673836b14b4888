"""Fixed-point scaling units and time constants, plus conversions built on them."""

from dataclasses import dataclass
from decimal import Decimal

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class UnitConfig:
    # Aave reports rates in RAY (1e27)
    ray: Decimal = Decimal("1e27")
    # Oracle base currency unit when the oracle does not report one (8 decimals)
    price_unit: int = 10**8
    basis_points: Decimal = Decimal("10000")
    seconds_per_year: int = 31536000
    seconds_per_day: int = 86400
    seconds_per_hour: int = 3600
    days_per_year: Decimal = Decimal("365")
    default_token_decimals: int = 18

    def ray_to_decimal(self, ray: int) -> Decimal:
        return Decimal(ray) / self.ray

    def bps_to_decimal(self, bps: int) -> Decimal:
        return Decimal(bps) / self.basis_points

    def hour_id(self, timestamp: int) -> int:
        return timestamp // self.seconds_per_hour

    def day_id(self, timestamp: int) -> int:
        return timestamp // self.seconds_per_day


DEFAULT_UNITS = UnitConfig()


def convert_token_to_decimal(amount: int, decimals: int) -> Decimal:
    """Scale a raw token amount down by its decimals (1_000_000 @ 6 -> 1)."""
    if decimals == 0:
        return Decimal(amount)
    return Decimal(amount) / (Decimal(10) ** decimals)


def calculate_utilization_rate(total_borrow: int, total_supply: int) -> Decimal:
    """Borrowed / supplied as a percentage (0 when nothing is supplied)."""
    if total_supply == 0:
        return Decimal("0")
    return Decimal(total_borrow) / Decimal(total_supply) * HUNDRED
