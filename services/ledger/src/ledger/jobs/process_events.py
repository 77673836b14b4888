"""
Aave V3 ledger processing job.

Fetches supply, withdraw, borrow, repay and rate-update events from the subgraph,
replays them in chain order through the ledger processor, then runs a time tick
at the latest block. Resumes from the latest stored transaction timestamp.

Usage:
    python -m services.ledger.src.ledger.jobs.process_events
    python -m services.ledger.src.ledger.jobs.process_events --from-timestamp 1700000000 --no-tick
"""
import argparse
import logging
import sys

from services.ledger.src.ledger.adapters.aave_v3.config import (
    EVENT_TYPES,
    get_default_config,
    require_api_key,
)
from services.ledger.src.ledger.adapters.aave_v3.contracts import AaveV3Reader
from services.ledger.src.ledger.adapters.aave_v3.events_fetcher import EventsFetcher
from services.ledger.src.ledger.adapters.aave_v3.rpc import JsonRpcClient
from services.ledger.src.ledger.adapters.aave_v3.transformer import transform_event
from services.ledger.src.ledger.config import settings
from services.ledger.src.ledger.db.engine import get_engine, init_db
from services.ledger.src.ledger.db.store import EntityStore
from services.ledger.src.ledger.domain.models import BlockTick, LendingEvent, RateUpdateEvent
from services.ledger.src.ledger.engine.processor import LedgerProcessor

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

LedgerEvent = LendingEvent | RateUpdateEvent


def fetch_event_type(
    fetcher: EventsFetcher, event_type: str, from_timestamp: int
) -> list[LedgerEvent]:
    """Fetch and transform every event of one type newer than `from_timestamp`."""
    events: list[LedgerEvent] = []
    page_num = 0

    for page in fetcher.fetch_events(event_type, from_timestamp):
        page_num += 1
        events.extend(transform_event(raw, event_type) for raw in page)
        logger.info(f"Page {page_num}: fetched {len(page)} {event_type} events")

    return events


def resolve_cursor(store: EntityStore, from_timestamp: int | None = None) -> int:
    """Exclusive lower bound for the next fetch.

    Starts one second before the latest stored transaction so events sharing
    that second are refetched; already stored transactions are skipped by the
    processor.
    """
    if from_timestamp is not None:
        return from_timestamp
    max_ts = store.max_transaction_timestamp()
    return max_ts - 1 if max_ts is not None else settings.first_event_time


def process_events(
    fetcher: EventsFetcher,
    processor: LedgerProcessor,
    from_timestamp: int,
) -> dict[str, int]:
    """
    Fetch all pending events and apply them in (timestamp, log index) order.

    Events are applied only when every type was fetched. A failed type holds
    back the whole run, so the stored transactions (and with them the next
    cursor) never move past events that were not seen.

    Args:
        fetcher: EventsFetcher instance
        processor: LedgerProcessor to apply events with
        from_timestamp: Exclusive lower bound on event timestamps

    Returns:
        Dict mapping event_type to number of events applied (-1 on fetch failure)
    """
    results: dict[str, int] = {}
    pending: list[LedgerEvent] = []

    for event_type in EVENT_TYPES:
        logger.info(f"Fetching {event_type} events, starting from timestamp {from_timestamp}")
        try:
            events = fetch_event_type(fetcher, event_type, from_timestamp)
        except Exception as e:
            logger.error(f"Failed to fetch {event_type}: {e}", exc_info=True)
            results[event_type] = -1
            continue
        results[event_type] = len(events)
        pending.extend(events)

    failed = [event_type for event_type, count in results.items() if count < 0]
    if failed:
        logger.error(
            f"Holding back {len(pending)} events: failed to fetch {', '.join(failed)}; "
            f"cursor stays at {from_timestamp}"
        )
        return {event_type: min(count, 0) for event_type, count in results.items()}

    pending.sort(key=lambda e: (e.timestamp, e.log_index))
    for event in pending:
        processor.dispatch(event)

    logger.info(f"Applied {len(pending)} events")
    return results


def run_time_tick(rpc: JsonRpcClient, processor: LedgerProcessor) -> bool:
    """Run the periodic market pass at the latest chain block."""
    latest = rpc.get_latest_block()
    if latest is None:
        logger.warning("Could not read latest block, skipping time tick")
        return False
    number, timestamp = latest
    logger.info(f"Running time tick at block {number} ({timestamp})")
    processor.handle_block(BlockTick(number=number, timestamp=timestamp))
    return True


def process_all_events(
    database_url: str | None = None,
    from_timestamp: int | None = None,
    tick: bool = True,
) -> dict[str, int]:
    """
    Bring the ledger up to date with the chain.

    The time tick is skipped when any event type failed to fetch, so the held
    back events are still applied before the ledger moves to the chain head.

    Args:
        database_url: Optional database URL override
        from_timestamp: Optional cursor override (exclusive)
        tick: Whether to run a time tick after the events

    Returns:
        Dict mapping event_type to count of events applied
    """
    require_api_key()

    deployment = get_default_config()
    engine = get_engine(database_url)
    init_db(engine)

    store = EntityStore(engine)
    rpc = JsonRpcClient(settings.rpc_url)
    reader = AaveV3Reader(rpc, deployment)
    processor = LedgerProcessor(store, reader, deployment.protocol_id)
    fetcher = EventsFetcher(deployment.get_url())

    cursor = resolve_cursor(store, from_timestamp)
    results = process_events(fetcher, processor, cursor)

    if tick and all(count >= 0 for count in results.values()):
        run_time_tick(rpc, processor)

    return results


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Apply Aave V3 pool events to the ledger"
    )
    parser.add_argument(
        "--from-timestamp",
        type=int,
        default=None,
        help="Exclusive start timestamp (default: resume from stored transactions)",
    )
    parser.add_argument(
        "--no-tick",
        action="store_true",
        help="Skip the time tick after processing events",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Database URL (default: from settings)",
    )

    args = parser.parse_args()

    try:
        results = process_all_events(
            database_url=args.database_url,
            from_timestamp=args.from_timestamp,
            tick=not args.no_tick,
        )
        logger.info("Processing complete:")
        for event_type, count in results.items():
            status = f"{count} events" if count >= 0 else "FAILED"
            logger.info(f"  {event_type}: {status}")
        return 0 if all(c >= 0 for c in results.values()) else 1
    except Exception as e:
        logger.error(f"Processing failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
