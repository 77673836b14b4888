from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from services.ledger.src.ledger.config import settings


def get_engine(database_url: str | None = None) -> Engine:
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        # Scheduler thread and request threads share the file database
        return create_engine(url, echo=False, connect_args={"check_same_thread": False})
    return create_engine(url, echo=False)


def init_db(engine: Engine) -> None:
    from services.ledger.src.ledger.db.models import metadata

    metadata.create_all(engine)
