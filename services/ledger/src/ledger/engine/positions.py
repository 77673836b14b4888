from services.ledger.src.ledger.adapters.aave_v3.contracts import AaveV3Reader
from services.ledger.src.ledger.db.store import EntityStore
from services.ledger.src.ledger.domain.models import Market, UserPosition
from services.ledger.src.ledger.domain.units import convert_token_to_decimal


def position_id(user_id: str, market_id: str) -> str:
    return f"{user_id}-{market_id}"


class PositionLedger:
    """Per-user, per-market balances.

    Balances come from two separate paths: `sync_position` overwrites them
    with on-chain truth, while `apply_deposit` / `apply_withdrawal` accumulate
    locally derived cash-flow history (principal, totals, realized P&L).
    """

    def __init__(self, store: EntityStore, reader: AaveV3Reader):
        self.store = store
        self.reader = reader

    def get_or_create(self, user_id: str, market_id: str) -> UserPosition:
        pid = position_id(user_id, market_id)
        position = self.store.load(UserPosition, pid)
        if position is None:
            position = UserPosition(id=pid, user=user_id, market=market_id)
            self.store.save(position)
        return position

    def sync_position(self, position: UserPosition, user_address: str, market: Market) -> bool:
        """Overwrite balances and collateral flag from the user's reserve data."""
        data = self.reader.get_user_reserve_data(market.asset, user_address)
        if data is None:
            return False

        position.a_token_balance = data.current_a_token_balance
        position.variable_debt_balance = data.current_variable_debt
        position.stable_debt_balance = data.current_stable_debt
        position.is_collateral = data.usage_as_collateral_enabled
        return True

    @staticmethod
    def apply_deposit(position: UserPosition, amount: int) -> None:
        position.principal += amount
        position.total_deposited += amount

    @staticmethod
    def apply_withdrawal(position: UserPosition, amount: int, decimals: int | None) -> None:
        """Record a withdrawal; principal floors at zero.

        Once cumulative withdrawals reach deposits, realized P&L is the excess
        in token units. Skipped when the token's decimals are unknown.
        """
        position.total_withdrawn += amount

        if position.total_withdrawn >= position.total_deposited and decimals is not None:
            position.realized_pnl = convert_token_to_decimal(
                position.total_withdrawn - position.total_deposited, decimals
            )

        if position.principal >= amount:
            position.principal -= amount
        else:
            position.principal = 0
