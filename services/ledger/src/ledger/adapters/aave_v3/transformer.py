"""Subgraph payloads -> typed ledger events."""

from typing import Any

from services.ledger.src.ledger.domain.models import ActionType, LendingEvent, RateUpdateEvent

ACTION_BY_EVENT_TYPE = {
    "supply": ActionType.SUPPLY,
    "withdraw": ActionType.WITHDRAW,
    "borrow": ActionType.BORROW,
    "repay": ActionType.REPAY,
}


class TransformationError(Exception):
    """Raised when required fields are missing during transformation."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required field: {field}")


def _get_field(data: dict[str, Any], key: str, required: bool = True, default: Any = None) -> Any:
    """Get a field from dict, optionally raising if missing."""
    if key not in data or data[key] is None:
        if required:
            raise TransformationError(key)
        return default
    return data[key]


def _entity_id(data: dict[str, Any], key: str) -> str:
    """Id of a nested entity reference, which may be an object or a bare string."""
    value = _get_field(data, key)
    if isinstance(value, dict):
        value = _get_field(value, "id")
    return str(value).lower()


def split_event_id(event_id: str) -> tuple[str, int]:
    """Split a subgraph event id into (tx hash, log index).

    Ids look like '{txHash}-{logIndex}' or '{txHash}:{logIndex}'; ids with
    no recognizable log index get 0.
    """
    for sep in ["-", ":"]:
        head, found, tail = event_id.rpartition(sep)
        if found and tail.isdigit():
            return head, int(tail)
    if event_id.startswith("0x") and len(event_id) >= 66:
        return event_id[:66], 0
    return event_id, 0


def get_tx_hash(raw: dict[str, Any]) -> str:
    """Prefer the direct txHash field, fall back to the event id."""
    if raw.get("txHash"):
        return raw["txHash"].lower()
    tx_hash, _ = split_event_id(_get_field(raw, "id"))
    return tx_hash.lower()


def transform_lending_event(raw: dict[str, Any], event_type: str) -> LendingEvent:
    """Transform a raw supply/withdraw/borrow/repay event.

    Raises:
        TransformationError: If required fields are missing.
    """
    action = ACTION_BY_EVENT_TYPE[event_type]
    _, log_index = split_event_id(_get_field(raw, "id"))
    reserve = _get_field(raw, "reserve")

    return LendingEvent(
        action=action,
        tx_hash=get_tx_hash(raw),
        log_index=log_index,
        # The subgraph does not expose block numbers on pool events
        block_number=int(_get_field(raw, "blockNumber", required=False, default=0)),
        timestamp=int(_get_field(raw, "timestamp")),
        reserve=str(_get_field(reserve, "underlyingAsset")).lower(),
        user=_entity_id(raw, "user"),
        amount=int(_get_field(raw, "amount")),
    )


def transform_rate_update(raw: dict[str, Any]) -> RateUpdateEvent:
    """Transform a reserveParamsHistoryItem (emitted on ReserveDataUpdated).

    Raises:
        TransformationError: If required fields are missing.
    """
    tx_hash, log_index = split_event_id(_get_field(raw, "id"))
    reserve = _get_field(raw, "reserve")

    return RateUpdateEvent(
        tx_hash=tx_hash.lower(),
        log_index=log_index,
        block_number=int(_get_field(raw, "blockNumber", required=False, default=0)),
        timestamp=int(_get_field(raw, "timestamp")),
        reserve=str(_get_field(reserve, "underlyingAsset")).lower(),
        liquidity_rate=int(_get_field(raw, "liquidityRate")),
        stable_borrow_rate=int(_get_field(raw, "stableBorrowRate", required=False, default=0)),
        variable_borrow_rate=int(_get_field(raw, "variableBorrowRate")),
    )


def transform_event(raw: dict[str, Any], event_type: str) -> LendingEvent | RateUpdateEvent:
    if event_type == "rate_update":
        return transform_rate_update(raw)
    if event_type not in ACTION_BY_EVENT_TYPE:
        raise ValueError(f"Unknown event type: {event_type}")
    return transform_lending_event(raw, event_type)
