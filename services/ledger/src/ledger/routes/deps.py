from services.ledger.src.ledger.db.engine import get_engine
from services.ledger.src.ledger.db.store import EntityStore


def get_store() -> EntityStore:
    return EntityStore(get_engine())
