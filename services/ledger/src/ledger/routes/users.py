from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException

from services.ledger.src.ledger.db.store import EntityStore
from services.ledger.src.ledger.domain.models import User, UserPosition
from services.ledger.src.ledger.routes.deps import get_store
from services.ledger.src.ledger.schemas.responses import PositionResponse, UserResponse

router = APIRouter(prefix="/users", tags=["users"])


def position_to_response(position: UserPosition) -> PositionResponse:
    return PositionResponse(
        market=position.market,
        a_token_balance=Decimal(position.a_token_balance),
        variable_debt_balance=Decimal(position.variable_debt_balance),
        stable_debt_balance=Decimal(position.stable_debt_balance),
        principal=Decimal(position.principal),
        total_deposited=Decimal(position.total_deposited),
        total_withdrawn=Decimal(position.total_withdrawn),
        realized_pnl=position.realized_pnl,
        unrealized_pnl=position.unrealized_pnl,
        is_collateral=position.is_collateral,
        last_update_timestamp=position.last_update_timestamp,
    )


@router.get("/{address}", response_model=UserResponse)
def get_user(address: str, store: EntityStore = Depends(get_store)) -> UserResponse:
    """Get a user's USD totals and per-market positions."""
    user = store.load(User, address.lower())
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    positions = store.find(UserPosition, order_by="market", user=user.id)
    return UserResponse(
        id=user.id,
        total_supply_usd=user.total_supply_usd,
        total_borrow_usd=user.total_borrow_usd,
        transaction_count=user.transaction_count,
        positions=[position_to_response(p) for p in positions],
    )
