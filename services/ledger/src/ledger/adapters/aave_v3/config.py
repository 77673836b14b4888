import os

from pydantic import BaseModel, Field

SUBGRAPH_API_KEY = os.environ.get("SUBGRAPH_API_KEY", "")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Event types delivered by the subgraph, in the order they are fetched
EVENT_TYPES = ["supply", "withdraw", "borrow", "repay", "rate_update"]


def require_api_key() -> None:
    """Validate SUBGRAPH_API_KEY is set. Call at app/job startup."""
    if not SUBGRAPH_API_KEY:
        raise RuntimeError(
            "SUBGRAPH_API_KEY environment variable is required. "
            "Get a free key at https://thegraph.com/studio/"
        )


class DeploymentConfig(BaseModel):
    """Contract addresses and identifiers for one Aave V3 deployment."""

    chain_id: str
    name: str
    protocol_id: str = Field(..., description="Id of the singleton Protocol entity")
    pool_address: str
    pool_addresses_provider: str
    pool_data_provider: str
    oracle_address: str
    subgraph_url: str

    def get_url(self) -> str:
        """Return subgraph URL with API key substituted."""
        return self.subgraph_url.format(api_key=SUBGRAPH_API_KEY)


def get_default_config() -> DeploymentConfig:
    """Default configuration for Aave V3 on Base."""
    return DeploymentConfig(
        chain_id="base",
        name="Aave V3 Base",
        protocol_id="aave-v3-base",
        pool_address="0xa238dd80c259a72e81d7e4664a9801593f98d1c5",
        pool_addresses_provider="0xe20fcbdbffc4dd138ce8b2e6fbb6cb49777ad64d",
        pool_data_provider="0x2d8a3c5677189723c4cb8873cfc9c8976fdf38ac",
        oracle_address="0x2cc0fc26ed4563a5ce5e8bdcfe1a2878676ae156",
        subgraph_url="https://gateway.thegraph.com/api/{api_key}/subgraphs/id/GQFbb95cE6d8mV989mL5figjaGaKCQB3xqYrr1bRyXqF",
    )
