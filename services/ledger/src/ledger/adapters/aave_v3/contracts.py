"""Typed reads from the Aave V3 Pool, PoolDataProvider, AaveOracle and ERC20 contracts."""

import logging
from dataclasses import dataclass

from services.ledger.src.ledger.adapters.aave_v3.config import DeploymentConfig
from services.ledger.src.ledger.adapters.aave_v3.rpc import (
    JsonRpcClient,
    decode_address,
    decode_address_array,
    decode_string,
    decode_words,
    encode_call,
)

logger = logging.getLogger(__name__)

# Function selectors (first 4 bytes of keccak256 of the signature)
GET_RESERVES_LIST = "0xd1946dbc"  # getReservesList()
GET_RESERVE_DATA = "0x35ea6a75"  # getReserveData(address)
GET_USER_RESERVE_DATA = "0x28dd2d01"  # getUserReserveData(address,address)
GET_RESERVE_CONFIGURATION_DATA = "0x3e150141"  # getReserveConfigurationData(address)
GET_RESERVE_TOKENS_ADDRESSES = "0xd2493b6c"  # getReserveTokensAddresses(address)
GET_ASSET_PRICE = "0xb3596f07"  # getAssetPrice(address)
BASE_CURRENCY_UNIT = "0x8c89b64f"  # BASE_CURRENCY_UNIT()
ERC20_SYMBOL = "0x95d89b41"
ERC20_NAME = "0x06fdde03"
ERC20_DECIMALS = "0x313ce567"
ERC20_TOTAL_SUPPLY = "0x18160ddd"


@dataclass(frozen=True)
class ReserveData:
    total_a_token: int
    total_stable_debt: int
    total_variable_debt: int
    liquidity_rate: int
    variable_borrow_rate: int
    stable_borrow_rate: int


@dataclass(frozen=True)
class UserReserveData:
    current_a_token_balance: int
    current_stable_debt: int
    current_variable_debt: int
    usage_as_collateral_enabled: bool


@dataclass(frozen=True)
class ReserveConfiguration:
    decimals: int
    ltv: int
    liquidation_threshold: int
    liquidation_bonus: int
    reserve_factor: int


@dataclass(frozen=True)
class ReserveTokens:
    a_token: str
    stable_debt_token: str
    variable_debt_token: str


class AaveV3Reader:
    """Contract reads for one deployment. Every method returns None on failure."""

    def __init__(self, rpc: JsonRpcClient, deployment: DeploymentConfig):
        self.rpc = rpc
        self.deployment = deployment

    def _words(self, to: str, data: str, expected: int) -> list[int] | None:
        hex_result = self.rpc.call(to, data)
        if hex_result is None:
            return None
        words = decode_words(hex_result)
        if words is None:
            logger.debug(f"Malformed return data from {to}")
            return None
        if len(words) < expected:
            logger.debug(f"Short return data from {to}: {len(words)} < {expected} words")
            return None
        return words

    def get_reserves_list(self) -> list[str] | None:
        """Market discovery: underlying asset of every listed reserve, lowercase."""
        hex_result = self.rpc.call(self.deployment.pool_address, GET_RESERVES_LIST)
        if hex_result is None:
            return None
        reserves = decode_address_array(hex_result)
        if reserves is None:
            return None
        return [r.lower() for r in reserves]

    def get_reserve_data(self, asset: str) -> ReserveData | None:
        # (unbacked, accruedToTreasuryScaled, totalAToken, totalStableDebt,
        #  totalVariableDebt, liquidityRate, variableBorrowRate, stableBorrowRate,
        #  averageStableBorrowRate, liquidityIndex, variableBorrowIndex, lastUpdateTimestamp)
        words = self._words(
            self.deployment.pool_data_provider, encode_call(GET_RESERVE_DATA, asset), 12
        )
        if words is None:
            return None
        return ReserveData(
            total_a_token=words[2],
            total_stable_debt=words[3],
            total_variable_debt=words[4],
            liquidity_rate=words[5],
            variable_borrow_rate=words[6],
            stable_borrow_rate=words[7],
        )

    def get_user_reserve_data(self, asset: str, user: str) -> UserReserveData | None:
        # (currentATokenBalance, currentStableDebt, currentVariableDebt,
        #  principalStableDebt, scaledVariableDebt, stableBorrowRate, liquidityRate,
        #  stableRateLastUpdated, usageAsCollateralEnabled)
        words = self._words(
            self.deployment.pool_data_provider,
            encode_call(GET_USER_RESERVE_DATA, asset, user),
            9,
        )
        if words is None:
            return None
        return UserReserveData(
            current_a_token_balance=words[0],
            current_stable_debt=words[1],
            current_variable_debt=words[2],
            usage_as_collateral_enabled=bool(words[8]),
        )

    def get_reserve_configuration(self, asset: str) -> ReserveConfiguration | None:
        # (decimals, ltv, liquidationThreshold, liquidationBonus, reserveFactor,
        #  usageAsCollateralEnabled, borrowingEnabled, stableBorrowRateEnabled,
        #  isActive, isFrozen)
        words = self._words(
            self.deployment.pool_data_provider,
            encode_call(GET_RESERVE_CONFIGURATION_DATA, asset),
            10,
        )
        if words is None:
            return None
        return ReserveConfiguration(
            decimals=words[0],
            ltv=words[1],
            liquidation_threshold=words[2],
            liquidation_bonus=words[3],
            reserve_factor=words[4],
        )

    def get_reserve_tokens(self, asset: str) -> ReserveTokens | None:
        words = self._words(
            self.deployment.pool_data_provider,
            encode_call(GET_RESERVE_TOKENS_ADDRESSES, asset),
            3,
        )
        if words is None:
            return None
        return ReserveTokens(
            a_token=decode_address(words[0]),
            stable_debt_token=decode_address(words[1]),
            variable_debt_token=decode_address(words[2]),
        )

    def get_asset_price(self, asset: str) -> int | None:
        """Raw oracle price, scaled by the base currency unit."""
        words = self._words(
            self.deployment.oracle_address, encode_call(GET_ASSET_PRICE, asset), 1
        )
        return words[0] if words else None

    def get_base_currency_unit(self) -> int | None:
        words = self._words(self.deployment.oracle_address, BASE_CURRENCY_UNIT, 1)
        if not words or words[0] == 0:
            return None
        return words[0]

    def get_token_symbol(self, token: str) -> str | None:
        hex_result = self.rpc.call(token, ERC20_SYMBOL)
        return decode_string(hex_result) if hex_result else None

    def get_token_name(self, token: str) -> str | None:
        hex_result = self.rpc.call(token, ERC20_NAME)
        return decode_string(hex_result) if hex_result else None

    def get_token_decimals(self, token: str) -> int | None:
        words = self._words(token, ERC20_DECIMALS, 1)
        return words[0] if words else None

    def get_token_total_supply(self, token: str) -> int | None:
        words = self._words(token, ERC20_TOTAL_SUPPLY, 1)
        return words[0] if words else None


@dataclass(frozen=True)
class TokenMetadata:
    symbol: str
    name: str
    decimals: int
    total_supply: int


class MockAaveV3Reader(AaveV3Reader):
    """In-memory reader for tests. Anything not registered reads as a failed call."""

    def __init__(self) -> None:
        self.reserves: list[str] | None = []
        self.reserve_data: dict[str, ReserveData] = {}
        self.user_reserve_data: dict[tuple[str, str], UserReserveData] = {}
        self.configurations: dict[str, ReserveConfiguration] = {}
        self.reserve_tokens: dict[str, ReserveTokens] = {}
        self.prices: dict[str, int] = {}
        self.base_currency_unit: int | None = 10**8
        self.tokens: dict[str, TokenMetadata] = {}
        self.call_history: list[tuple[str, tuple]] = []

    def _record(self, name: str, *args: str) -> None:
        self.call_history.append((name, args))

    def get_reserves_list(self) -> list[str] | None:
        self._record("get_reserves_list")
        return list(self.reserves) if self.reserves is not None else None

    def get_reserve_data(self, asset: str) -> ReserveData | None:
        self._record("get_reserve_data", asset)
        return self.reserve_data.get(asset.lower())

    def get_user_reserve_data(self, asset: str, user: str) -> UserReserveData | None:
        self._record("get_user_reserve_data", asset, user)
        return self.user_reserve_data.get((asset.lower(), user.lower()))

    def get_reserve_configuration(self, asset: str) -> ReserveConfiguration | None:
        self._record("get_reserve_configuration", asset)
        return self.configurations.get(asset.lower())

    def get_reserve_tokens(self, asset: str) -> ReserveTokens | None:
        self._record("get_reserve_tokens", asset)
        return self.reserve_tokens.get(asset.lower())

    def get_asset_price(self, asset: str) -> int | None:
        self._record("get_asset_price", asset)
        return self.prices.get(asset.lower())

    def get_base_currency_unit(self) -> int | None:
        self._record("get_base_currency_unit")
        return self.base_currency_unit

    def get_token_symbol(self, token: str) -> str | None:
        meta = self.tokens.get(token.lower())
        return meta.symbol if meta else None

    def get_token_name(self, token: str) -> str | None:
        meta = self.tokens.get(token.lower())
        return meta.name if meta else None

    def get_token_decimals(self, token: str) -> int | None:
        meta = self.tokens.get(token.lower())
        return meta.decimals if meta else None

    def get_token_total_supply(self, token: str) -> int | None:
        meta = self.tokens.get(token.lower())
        return meta.total_supply if meta else None
