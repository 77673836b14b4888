"""Hourly and daily per-market rollups."""

import logging
from decimal import Decimal

from services.ledger.src.ledger.db.store import EntityStore
from services.ledger.src.ledger.domain.models import (
    ZERO,
    ActionType,
    DailyActiveUser,
    DailySnapshot,
    HourlySnapshot,
    Market,
    Token,
)
from services.ledger.src.ledger.domain.revenue import (
    ZERO_SPLIT,
    RevenueSplit,
    borrow_spread,
    projected_daily_revenue,
    split_revenue,
)
from services.ledger.src.ledger.domain.units import UnitConfig, convert_token_to_decimal
from services.ledger.src.ledger.engine.markets import MarketStateSync

logger = logging.getLogger(__name__)


def snapshot_id(market_id: str, bucket_id: int) -> str:
    return f"{market_id}-{bucket_id}"


def _copy_market_state(snapshot: HourlySnapshot | DailySnapshot, market: Market) -> None:
    snapshot.supply_apy = market.supply_apy
    snapshot.borrow_apy = market.variable_borrow_apy
    snapshot.utilization_rate = market.utilization_rate
    snapshot.total_supply = market.total_supply
    snapshot.total_borrow = market.total_borrow


def _add_volume(snapshot: HourlySnapshot | DailySnapshot, action: ActionType, amount: int) -> None:
    field = action.volume_field
    setattr(snapshot, field, getattr(snapshot, field) + amount)


class SnapshotEngine:
    """Time-bucketed market history.

    Volumes accumulate within a bucket; the copied rate, utilization and totals
    always reflect the latest state seen in that bucket.
    """

    def __init__(self, store: EntityStore, markets: MarketStateSync, units: UnitConfig):
        self.store = store
        self.markets = markets
        self.units = units

    def update_hourly(
        self, market: Market, timestamp: int, action: ActionType, amount: int
    ) -> HourlySnapshot:
        hour_id = self.units.hour_id(timestamp)
        sid = snapshot_id(market.id, hour_id)

        snapshot = self.store.load(HourlySnapshot, sid)
        if snapshot is None:
            snapshot = HourlySnapshot(id=sid, market=market.id, hour_id=hour_id, timestamp=timestamp)

        _add_volume(snapshot, action, amount)
        _copy_market_state(snapshot, market)

        self.store.save(snapshot)
        return snapshot

    def update_daily(
        self,
        market: Market,
        timestamp: int,
        action: ActionType,
        amount: int,
        amount_usd: Decimal,
        user_id: str | None,
    ) -> DailySnapshot:
        day_id = self.units.day_id(timestamp)
        sid = snapshot_id(market.id, day_id)

        snapshot = self.store.load(DailySnapshot, sid)
        if snapshot is None:
            snapshot = DailySnapshot(id=sid, market=market.id, day_id=day_id, timestamp=timestamp)

        _add_volume(snapshot, action, amount)
        snapshot.volume_usd += amount_usd

        if user_id is not None and self._mark_active(day_id, user_id):
            snapshot.active_users += 1

        _copy_market_state(snapshot, market)

        projection = self.project_daily_revenue(market)
        if projection is not None:
            snapshot.projected_supply_side_revenue_usd = projection.supply_side
            snapshot.projected_protocol_side_revenue_usd = projection.protocol_side
            snapshot.projected_total_revenue_usd = projection.total

        self.store.save(snapshot)
        return snapshot

    def _mark_active(self, day_id: int, user_id: str) -> bool:
        """Record the user as active today. True only on the first sighting."""
        active_id = f"{day_id}-{user_id}"
        if self.store.load(DailyActiveUser, active_id) is not None:
            return False
        self.store.save(DailyActiveUser(id=active_id, day=day_id, user=user_id))
        return True

    def project_daily_revenue(self, market: Market) -> RevenueSplit | None:
        """Revenue for one day if current rates and borrow held.

        Zero split without a positive spread; None if the input token is unknown.
        """
        spread = borrow_spread(market, self.units)
        if spread <= ZERO:
            return ZERO_SPLIT

        token = self.store.load(Token, market.input_token)
        if token is None:
            return None

        total_borrow_usd = (
            convert_token_to_decimal(market.total_borrow, token.decimals) * token.last_price_usd
        )
        revenue = projected_daily_revenue(spread, total_borrow_usd, self.units)
        return split_revenue(revenue, market.reserve_factor, self.units)

    def summarize_daily_revenue(self, timestamp: int) -> RevenueSplit:
        """Sum of the day's projected revenue across listed markets (reporting only)."""
        day_id = self.units.day_id(timestamp)
        supply_side = ZERO
        protocol_side = ZERO

        for market_id in self.markets.list_market_ids() or []:
            snapshot = self.store.load(DailySnapshot, snapshot_id(market_id, day_id))
            if snapshot is None:
                continue
            supply_side += snapshot.projected_supply_side_revenue_usd
            protocol_side += snapshot.projected_protocol_side_revenue_usd

        summary = RevenueSplit(
            total=supply_side + protocol_side,
            protocol_side=protocol_side,
            supply_side=supply_side,
        )
        logger.info(
            f"Daily revenue summary for day {day_id}: supplySide={summary.supply_side}, "
            f"protocolSide={summary.protocol_side}, total={summary.total}"
        )
        return summary
