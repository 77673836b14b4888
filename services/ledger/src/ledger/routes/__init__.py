from fastapi import APIRouter

from services.ledger.src.ledger.routes.markets import router as markets_router
from services.ledger.src.ledger.routes.protocol import router as protocol_router
from services.ledger.src.ledger.routes.users import router as users_router

api_router = APIRouter(prefix="/api")
api_router.include_router(protocol_router)
api_router.include_router(markets_router)
api_router.include_router(users_router)

__all__ = ["api_router"]
