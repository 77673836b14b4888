from services.ledger.src.ledger.adapters.aave_v3.contracts import AaveV3Reader
from services.ledger.src.ledger.db.store import EntityStore
from services.ledger.src.ledger.domain.models import Token
from services.ledger.src.ledger.engine.pricing import PriceOracleAdapter


class TokenRegistry:
    """Creates Token entities on first sight and caches their ERC20 metadata."""

    def __init__(self, store: EntityStore, reader: AaveV3Reader, pricing: PriceOracleAdapter):
        self.store = store
        self.reader = reader
        self.pricing = pricing

    def get_or_create(self, address: str) -> Token:
        token_id = address.lower()
        token = self.store.load(Token, token_id)
        if token is not None:
            return token

        symbol = self.reader.get_token_symbol(token_id)
        name = self.reader.get_token_name(token_id)
        decimals = self.reader.get_token_decimals(token_id)
        total_supply = self.reader.get_token_total_supply(token_id)

        token = Token(
            id=token_id,
            symbol=symbol if symbol is not None else "unknown",
            name=name if name is not None else "unknown",
            decimals=decimals if decimals is not None else self.pricing.units.default_token_decimals,
            total_supply=total_supply if total_supply is not None else 0,
            last_price_usd=self.pricing.get_price_usd(token_id),
            last_price_timestamp=0,
        )
        self.store.save(token)
        return token

    def refresh_price(self, token: Token, timestamp: int | None = None) -> Token:
        """Overwrite the cached price with a fresh quote and persist it."""
        token.last_price_usd = self.pricing.get_price_usd(token.id)
        if timestamp is not None:
            token.last_price_timestamp = timestamp
        self.store.save(token)
        return token
