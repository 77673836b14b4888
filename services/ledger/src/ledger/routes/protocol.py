from fastapi import APIRouter, Depends, HTTPException

from services.ledger.src.ledger.adapters.aave_v3.config import get_default_config
from services.ledger.src.ledger.db.store import EntityStore
from services.ledger.src.ledger.domain.models import ZERO, DailySnapshot, Market, Protocol
from services.ledger.src.ledger.routes.deps import get_store
from services.ledger.src.ledger.schemas.responses import ProtocolResponse, RevenueSummaryResponse
from services.ledger.src.ledger.utils.timestamps import day_start

router = APIRouter(tags=["protocol"])


def latest_daily_revenue(store: EntityStore) -> RevenueSummaryResponse:
    """Sum the projected revenue of every market's snapshot for the latest recorded day."""
    latest = store.find(DailySnapshot, order_by="day_id", descending=True, limit=1)
    if not latest:
        return RevenueSummaryResponse(
            supply_side_revenue_usd=ZERO,
            protocol_side_revenue_usd=ZERO,
            total_revenue_usd=ZERO,
        )

    day_id = latest[0].day_id
    snapshots = store.find(DailySnapshot, day_id=day_id)
    supply_side = sum((s.projected_supply_side_revenue_usd for s in snapshots), ZERO)
    protocol_side = sum((s.projected_protocol_side_revenue_usd for s in snapshots), ZERO)

    return RevenueSummaryResponse(
        day_id=day_id,
        day_start=day_start(day_id),
        supply_side_revenue_usd=supply_side,
        protocol_side_revenue_usd=protocol_side,
        total_revenue_usd=supply_side + protocol_side,
    )


@router.get("/protocol", response_model=ProtocolResponse)
def get_protocol(store: EntityStore = Depends(get_store)) -> ProtocolResponse:
    """
    Get protocol-wide totals.

    Includes cumulative accrued revenue and the latest day's projected revenue.
    """
    protocol_id = get_default_config().protocol_id
    protocol = store.load(Protocol, protocol_id)
    if protocol is None:
        raise HTTPException(status_code=404, detail="Protocol has not been indexed yet")

    return ProtocolResponse(
        id=protocol.id,
        total_supply_usd=protocol.total_supply_usd,
        total_borrow_usd=protocol.total_borrow_usd,
        total_revenue_usd=protocol.total_revenue_usd,
        cumulative_supply_side_revenue_usd=protocol.cumulative_supply_side_revenue_usd,
        cumulative_protocol_side_revenue_usd=protocol.cumulative_protocol_side_revenue_usd,
        market_count=len(store.find(Market, protocol=protocol.id)),
        daily_revenue=latest_daily_revenue(store),
    )
