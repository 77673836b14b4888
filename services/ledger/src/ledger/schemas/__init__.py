from services.ledger.src.ledger.schemas.responses import (
    DailySnapshotResponse,
    HourlySnapshotResponse,
    MarketHistory,
    MarketResponse,
    PositionResponse,
    ProtocolResponse,
    RevenueSummaryResponse,
    TokenResponse,
    UserResponse,
)

__all__ = [
    "DailySnapshotResponse",
    "HourlySnapshotResponse",
    "MarketHistory",
    "MarketResponse",
    "PositionResponse",
    "ProtocolResponse",
    "RevenueSummaryResponse",
    "TokenResponse",
    "UserResponse",
]
