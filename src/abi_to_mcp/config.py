"""Runtime configuration read from the environment via pydantic-settings.

Environment variables:
    MAINNET_RPC_URL, GOERLI_RPC_URL, SEPOLIA_RPC_URL   RPC endpoint per network
    DEFAULT_NETWORK                                    network used for unknown identifiers
    CALL_TIMEOUT_SECONDS                               bound on one remote read call
    STRICT_ARGUMENT_VALIDATION                         validate argument shapes before calling
    CONTRACT_STORE_PATH                                JSON/YAML file of contract records
    CORS_ALLOW_ORIGINS                                 csv or JSON list, default ``*``
    LOG_LEVEL, HOST, PORT                              launcher settings
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
import json
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEMO_ENDPOINT_TEMPLATE = "https://eth-{network}.g.alchemy.com/v2/demo"


@dataclass(frozen=True)
class NetworkEndpoints:
    """RPC endpoint per network identifier with a fallback network."""

    endpoints: Mapping[str, str] = field(default_factory=dict)
    default_network: str = "mainnet"

    def endpoint_for(self, network: Optional[str]) -> str:
        """Return the endpoint for ``network``; unknown identifiers use the default network."""
        key = (network or "").strip().lower()
        if key in self.endpoints:
            return self.endpoints[key]
        if self.default_network in self.endpoints:
            return self.endpoints[self.default_network]
        return DEMO_ENDPOINT_TEMPLATE.format(network=self.default_network)


class Settings(BaseSettings):
    """Service settings read from the environment or a ``.env`` file."""

    mainnet_rpc_url: str = Field(DEMO_ENDPOINT_TEMPLATE.format(network="mainnet"))
    goerli_rpc_url: str = Field(DEMO_ENDPOINT_TEMPLATE.format(network="goerli"))
    sepolia_rpc_url: str = Field(DEMO_ENDPOINT_TEMPLATE.format(network="sepolia"))
    default_network: str = Field("mainnet", description="Network used for unknown identifiers")
    call_timeout_seconds: float = Field(10.0, gt=0, description="Bound on one remote read call")
    strict_argument_validation: bool = False
    contract_store_path: Optional[Path] = None
    cors_allow_origins: str = Field("*", description="Comma-separated or JSON list of origins")
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", case_sensitive=False, extra="ignore"
    )

    def network_endpoints(self) -> NetworkEndpoints:
        """Build the endpoint table passed to the dispatcher."""
        return NetworkEndpoints(
            endpoints={
                "mainnet": self.mainnet_rpc_url,
                "goerli": self.goerli_rpc_url,
                "sepolia": self.sepolia_rpc_url,
            },
            default_network=self.default_network.lower(),
        )

    def cors_origins(self) -> list[str]:
        """Return the allowed CORS origins as a list."""
        return parse_list(self.cors_allow_origins)


def parse_list(value: str) -> list[str]:
    """Parse a comma-separated string or a JSON array into a list of strings."""
    text = value.strip()
    if not text:
        return []
    if text.startswith("[") and text.endswith("]"):
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON list: {text}") from exc
        return [str(item) for item in parsed]
    return [item.strip() for item in text.split(",") if item.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
