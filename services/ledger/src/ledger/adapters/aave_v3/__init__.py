from services.ledger.src.ledger.adapters.aave_v3.config import (
    DeploymentConfig,
    get_default_config,
)
from services.ledger.src.ledger.adapters.aave_v3.contracts import AaveV3Reader
from services.ledger.src.ledger.adapters.aave_v3.rpc import JsonRpcClient
from services.ledger.src.ledger.adapters.aave_v3.transformer import TransformationError

__all__ = [
    "AaveV3Reader",
    "DeploymentConfig",
    "JsonRpcClient",
    "get_default_config",
    "TransformationError",
]
