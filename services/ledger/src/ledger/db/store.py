"""Keyed load/save of ledger entities."""

from dataclasses import asdict
from typing import Any, TypeVar

from sqlalchemy import Table, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine

from services.ledger.src.ledger.db.models import (
    daily_active_users,
    daily_snapshots,
    hourly_snapshots,
    markets,
    protocols,
    tokens,
    transactions,
    user_positions,
    users,
)
from services.ledger.src.ledger.domain.models import (
    DailyActiveUser,
    DailySnapshot,
    HourlySnapshot,
    Market,
    Protocol,
    Token,
    Transaction,
    User,
    UserPosition,
)

E = TypeVar("E")

ENTITY_TABLES: dict[type, Table] = {
    Protocol: protocols,
    Token: tokens,
    Market: markets,
    User: users,
    UserPosition: user_positions,
    Transaction: transactions,
    HourlySnapshot: hourly_snapshots,
    DailySnapshot: daily_snapshots,
    DailyActiveUser: daily_active_users,
}

# Written once, never updated afterwards
APPEND_ONLY = (Transaction, DailyActiveUser)


def _table_for(entity_cls: type) -> Table:
    try:
        return ENTITY_TABLES[entity_cls]
    except KeyError:
        raise ValueError(f"Not a stored entity type: {entity_cls.__name__}") from None


class EntityStore:
    """Entity persistence over SQLAlchemy tables.

    Every `save` runs in its own transaction and is durable on return. Loaded
    entities are fresh copies; mutating one has no effect until it is saved.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._is_sqlite = "sqlite" in str(engine.url)

    def load(self, entity_cls: type[E], entity_id: str) -> E | None:
        table = _table_for(entity_cls)
        stmt = select(table).where(table.c.id == entity_id)

        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
        if row is None:
            return None
        return entity_cls(**row._mapping)

    def save(self, entity: Any) -> None:
        table = _table_for(type(entity))
        row = asdict(entity)

        with self.engine.begin() as conn:
            if isinstance(entity, APPEND_ONLY):
                self._insert_ignore(conn, table, row)
            else:
                self._upsert(conn, table, row)

    def _insert(self, table: Table):
        return sqlite_insert(table) if self._is_sqlite else pg_insert(table)

    def _insert_ignore(self, conn: Connection, table: Table, row: dict) -> None:
        stmt = self._insert(table).values([row])
        stmt = stmt.on_conflict_do_nothing(index_elements=["id"])
        conn.execute(stmt)

    def _upsert(self, conn: Connection, table: Table, row: dict) -> None:
        stmt = self._insert(table).values([row])
        stmt = stmt.on_conflict_do_update(
            index_elements=["id"],
            set_={key: stmt.excluded[key] for key in row if key != "id"},
        )
        conn.execute(stmt)

    def find(
        self,
        entity_cls: type[E],
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        **filters: Any,
    ) -> list[E]:
        """Load all entities whose columns equal the given filters."""
        table = _table_for(entity_cls)
        stmt = select(table)
        for column, value in filters.items():
            stmt = stmt.where(table.c[column] == value)
        if order_by:
            column = table.c[order_by]
            stmt = stmt.order_by(column.desc() if descending else column)
        if limit is not None:
            stmt = stmt.limit(limit)

        with self.engine.connect() as conn:
            result = conn.execute(stmt)
            return [entity_cls(**row._mapping) for row in result]

    def max_transaction_timestamp(self) -> int | None:
        """Latest stored transaction timestamp, used as the ingestion cursor."""
        stmt = select(func.max(transactions.c.timestamp))

        with self.engine.connect() as conn:
            row = conn.execute(stmt).fetchone()
            if row is None or row[0] is None:
                return None
            return int(row[0])
