from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query

from services.ledger.src.ledger.db.store import EntityStore
from services.ledger.src.ledger.domain.models import DailySnapshot, HourlySnapshot, Market, Token
from services.ledger.src.ledger.routes.deps import get_store
from services.ledger.src.ledger.schemas.responses import (
    DailySnapshotResponse,
    HourlySnapshotResponse,
    MarketHistory,
    MarketResponse,
    TokenResponse,
)
from services.ledger.src.ledger.utils.timestamps import day_start, hour_start

router = APIRouter(prefix="/markets", tags=["markets"])


def market_to_response(market: Market, token: Token | None) -> MarketResponse:
    """Convert a stored market (and its input token) to a response model."""
    return MarketResponse(
        id=market.id,
        protocol=market.protocol,
        asset=market.asset,
        a_token=market.a_token,
        s_token=market.s_token,
        v_token=market.v_token,
        input_token=TokenResponse.model_validate(token) if token else None,
        total_supply=Decimal(market.total_supply),
        total_borrow=Decimal(market.total_borrow),
        available_liquidity=Decimal(market.available_liquidity),
        supply_apy=market.supply_apy,
        variable_borrow_apy=market.variable_borrow_apy,
        utilization_rate=market.utilization_rate,
        ltv=market.ltv,
        liquidation_threshold=market.liquidation_threshold,
        liquidation_penalty=market.liquidation_penalty,
        reserve_factor=market.reserve_factor,
        last_update_timestamp=market.last_update_timestamp,
        last_update_block=market.last_update_block,
        last_revenue_calculation_timestamp=market.last_revenue_calculation_timestamp,
    )


def hourly_to_response(snapshot: HourlySnapshot) -> HourlySnapshotResponse:
    return HourlySnapshotResponse(
        hour_id=snapshot.hour_id,
        period_start=hour_start(snapshot.hour_id),
        supply_volume=Decimal(snapshot.supply_volume),
        withdraw_volume=Decimal(snapshot.withdraw_volume),
        borrow_volume=Decimal(snapshot.borrow_volume),
        repay_volume=Decimal(snapshot.repay_volume),
        supply_apy=snapshot.supply_apy,
        borrow_apy=snapshot.borrow_apy,
        utilization_rate=snapshot.utilization_rate,
        total_supply=Decimal(snapshot.total_supply),
        total_borrow=Decimal(snapshot.total_borrow),
    )


def daily_to_response(snapshot: DailySnapshot) -> DailySnapshotResponse:
    return DailySnapshotResponse(
        day_id=snapshot.day_id,
        period_start=day_start(snapshot.day_id),
        supply_volume=Decimal(snapshot.supply_volume),
        withdraw_volume=Decimal(snapshot.withdraw_volume),
        borrow_volume=Decimal(snapshot.borrow_volume),
        repay_volume=Decimal(snapshot.repay_volume),
        volume_usd=snapshot.volume_usd,
        active_users=snapshot.active_users,
        supply_apy=snapshot.supply_apy,
        borrow_apy=snapshot.borrow_apy,
        utilization_rate=snapshot.utilization_rate,
        total_supply=Decimal(snapshot.total_supply),
        total_borrow=Decimal(snapshot.total_borrow),
        projected_supply_side_revenue_usd=snapshot.projected_supply_side_revenue_usd,
        projected_protocol_side_revenue_usd=snapshot.projected_protocol_side_revenue_usd,
        projected_total_revenue_usd=snapshot.projected_total_revenue_usd,
    )


def _require_market(store: EntityStore, market_id: str) -> Market:
    market = store.load(Market, market_id.lower())
    if market is None:
        raise HTTPException(status_code=404, detail="Market not found")
    return market


@router.get("", response_model=list[MarketResponse])
def list_markets(store: EntityStore = Depends(get_store)) -> list[MarketResponse]:
    """Get every indexed market with its current state."""
    return [
        market_to_response(market, store.load(Token, market.input_token))
        for market in store.find(Market, order_by="id")
    ]


@router.get("/{market_id}", response_model=MarketResponse)
def get_market(market_id: str, store: EntityStore = Depends(get_store)) -> MarketResponse:
    market = _require_market(store, market_id)
    return market_to_response(market, store.load(Token, market.input_token))


@router.get("/{market_id}/hourly", response_model=MarketHistory)
def get_market_hourly(
    market_id: str,
    limit: int = Query(default=24, ge=1, le=720),
    store: EntityStore = Depends(get_store),
) -> MarketHistory:
    """
    Get hourly snapshots for a market.

    Returns the most recent `limit` hours that saw activity (default: 24, max: 720), oldest first.
    """
    market = _require_market(store, market_id)
    snapshots = store.find(
        HourlySnapshot, order_by="hour_id", descending=True, limit=limit, market=market.id
    )
    return MarketHistory(
        market_id=market.id,
        hourly=[hourly_to_response(s) for s in reversed(snapshots)],
    )


@router.get("/{market_id}/daily", response_model=MarketHistory)
def get_market_daily(
    market_id: str,
    limit: int = Query(default=30, ge=1, le=365),
    store: EntityStore = Depends(get_store),
) -> MarketHistory:
    """
    Get daily snapshots for a market.

    Returns the most recent `limit` days that saw activity (default: 30, max: 365), oldest first.
    """
    market = _require_market(store, market_id)
    snapshots = store.find(
        DailySnapshot, order_by="day_id", descending=True, limit=limit, market=market.id
    )
    return MarketHistory(
        market_id=market.id,
        daily=[daily_to_response(s) for s in reversed(snapshots)],
    )
