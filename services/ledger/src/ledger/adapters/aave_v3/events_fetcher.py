"""Event fetcher for Aave V3 pool events via subgraph."""

from typing import Any, Iterator

import httpx

# GraphQL queries for each event type
# All use timestamp_gt (not gte) and order by timestamp ASC for predictable pagination
EVENT_QUERIES = {
    "supply": """
query GetSupplies($from: Int!, $skip: Int!) {
  supplies(
    where: { timestamp_gt: $from }
    orderBy: timestamp
    orderDirection: asc
    first: 1000
    skip: $skip
  ) {
    id
    txHash
    timestamp
    amount
    user { id }
    reserve { underlyingAsset }
  }
}
""",
    "withdraw": """
query GetWithdraws($from: Int!, $skip: Int!) {
  redeemUnderlyings(
    where: { timestamp_gt: $from }
    orderBy: timestamp
    orderDirection: asc
    first: 1000
    skip: $skip
  ) {
    id
    txHash
    timestamp
    amount
    user { id }
    reserve { underlyingAsset }
  }
}
""",
    "borrow": """
query GetBorrows($from: Int!, $skip: Int!) {
  borrows(
    where: { timestamp_gt: $from }
    orderBy: timestamp
    orderDirection: asc
    first: 1000
    skip: $skip
  ) {
    id
    txHash
    timestamp
    amount
    user { id }
    reserve { underlyingAsset }
  }
}
""",
    "repay": """
query GetRepays($from: Int!, $skip: Int!) {
  repays(
    where: { timestamp_gt: $from }
    orderBy: timestamp
    orderDirection: asc
    first: 1000
    skip: $skip
  ) {
    id
    txHash
    timestamp
    amount
    user { id }
    reserve { underlyingAsset }
  }
}
""",
    "rate_update": """
query GetRateUpdates($from: Int!, $skip: Int!) {
  reserveParamsHistoryItems(
    where: { timestamp_gt: $from }
    orderBy: timestamp
    orderDirection: asc
    first: 1000
    skip: $skip
  ) {
    id
    timestamp
    liquidityRate
    variableBorrowRate
    stableBorrowRate
    reserve { underlyingAsset }
  }
}
""",
}

# Map event type to the response field name in GraphQL
EVENT_RESPONSE_FIELDS = {
    "supply": "supplies",
    "withdraw": "redeemUnderlyings",
    "borrow": "borrows",
    "repay": "repays",
    "rate_update": "reserveParamsHistoryItems",
}


class EventsFetcher:
    """Fetches pool events from the Aave V3 subgraph."""

    def __init__(self, subgraph_url: str, timeout: float = 30.0):
        self.subgraph_url = subgraph_url
        self.timeout = timeout

    def fetch_events(
        self, event_type: str, from_timestamp: int
    ) -> Iterator[list[dict[str, Any]]]:
        """
        Yield pages of events, oldest first. Paginate until exhausted.

        Args:
            event_type: One of EVENT_QUERIES' keys
            from_timestamp: Unix timestamp to start from (exclusive - uses timestamp_gt)

        Yields:
            Pages of event dictionaries from the subgraph
        """
        if event_type not in EVENT_QUERIES:
            raise ValueError(f"Unknown event type: {event_type}")

        query = EVENT_QUERIES[event_type]
        response_field = EVENT_RESPONSE_FIELDS[event_type]
        skip = 0
        page_size = 1000

        with httpx.Client(timeout=self.timeout) as client:
            while True:
                response = client.post(
                    self.subgraph_url,
                    json={
                        "query": query,
                        "variables": {"from": from_timestamp, "skip": skip},
                    },
                )
                response.raise_for_status()
                data = response.json()

                if "errors" in data:
                    raise RuntimeError(f"GraphQL errors: {data['errors']}")

                page = data.get("data", {}).get(response_field, [])
                if not page:
                    break

                yield page
                skip += page_size

                # If we got fewer than page_size, we've reached the end
                if len(page) < page_size:
                    break


class MockEventsFetcher(EventsFetcher):
    """Mock fetcher for testing without network calls."""

    def __init__(self) -> None:
        super().__init__("http://mock")
        self._mock_pages: dict[str, list[list[dict[str, Any]]]] = {}
        self.call_history: list[tuple[str, int]] = []

    def set_mock_pages(
        self, event_type: str, pages: list[list[dict[str, Any]]]
    ) -> None:
        """Set mock pages to return for an event type."""
        self._mock_pages[event_type] = pages

    def fetch_events(
        self, event_type: str, from_timestamp: int
    ) -> Iterator[list[dict[str, Any]]]:
        """Return mock pages."""
        self.call_history.append((event_type, from_timestamp))
        pages = self._mock_pages.get(event_type, [])
        for page in pages:
            yield page
