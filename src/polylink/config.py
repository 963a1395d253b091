"""Configuration for the polylink SDK.

Configs are plain TypedDicts so callers can pass dict literals; the router
resolves them into dataclasses with every default applied.
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional, TypedDict

from dotenv import load_dotenv

from .errors import ConfigurationError


POLYGON_CHAIN_ID = 137
AMOY_CHAIN_ID = 80002

DEFAULT_API_ENDPOINT = "https://api.domeapi.io/v1"
DEFAULT_CLOB_ENDPOINT = "https://clob.polymarket.com"
DEFAULT_RELAYER_ENDPOINT = "https://relayer-v2.polymarket.com"
DEFAULT_RPC_URL = "https://polygon-rpc.com"
DEFAULT_PRIVY_ENDPOINT = "https://api.privy.io"
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class ContractConfig:
    """Exchange contract addresses for one chain."""

    collateral: str
    """USDC.e collateral token."""
    conditional_tokens: str
    exchange: str
    neg_risk_exchange: str
    neg_risk_adapter: str
    safe_factory: str
    safe_init_code_hash: str


_CONTRACTS: Dict[int, ContractConfig] = {
    POLYGON_CHAIN_ID: ContractConfig(
        collateral="0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
        conditional_tokens="0x4D97DCd97eC945f40cF65F87097ACe5EA0476045",
        exchange="0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8B8982E",
        neg_risk_exchange="0xC5d563A36AE78145C45a50134d48A1215220f80a",
        neg_risk_adapter="0xd91E80cF2E7be2e162c6513ceD06f1dD0dA35296",
        safe_factory="0xaacFeEa03eb1561C4e67d661e40682Bd20E3541b",
        safe_init_code_hash="0x2bce2127ff07fb632d16c8347c4ebf501f4841168bed00d9e6ef715ddb6fcecf",
    ),
    AMOY_CHAIN_ID: ContractConfig(
        collateral="0x9c4e1703476e875070ee25b56a58b008cfb8fa78",
        conditional_tokens="0x69308FB512518e39F9b16112fA8d994F4e2Bf8bB",
        exchange="0xdFE02Eb6733538f8Ea35D585af8DE5958AD99E40",
        neg_risk_exchange="0xC5d563A36AE78145C45a50134d48A1215220f80a",
        neg_risk_adapter="0xd91E80cF2E7be2e162c6513ceD06f1dD0dA35296",
        safe_factory="0xaacFeEa03eb1561C4e67d661e40682Bd20E3541b",
        safe_init_code_hash="0x2bce2127ff07fb632d16c8347c4ebf501f4841168bed00d9e6ef715ddb6fcecf",
    ),
}


def get_contract_config(chain_id: int) -> ContractConfig:
    """Get exchange contract addresses for a chain.

    Raises:
        ConfigurationError: If the chain is not supported
    """
    try:
        return _CONTRACTS[chain_id]
    except KeyError:
        raise ConfigurationError(
            f"Unsupported chain_id: {chain_id}. Supported: {sorted(_CONTRACTS)}"
        ) from None


class PrivyConfig(TypedDict, total=False):
    """Privy credentials for custodial wallets."""

    app_id: str
    app_secret: str
    authorization_key: str
    """Authorization private key (wallet-auth:...)."""
    endpoint: str


class RouterConfig(TypedDict, total=False):
    """Configuration for the Polymarket router."""

    api_key: str
    """Dome API key (required for order placement, cancel and claims)."""

    chain_id: int
    """Chain ID. Default: 137 (Polygon)"""

    api_endpoint: str
    """Execution service endpoint. Default: https://api.domeapi.io/v1"""

    clob_endpoint: str
    """Exchange CLOB endpoint. Default: https://clob.polymarket.com"""

    relayer_endpoint: str
    """Safe relayer endpoint. Default: https://relayer-v2.polymarket.com"""

    rpc_url: str
    """Polygon RPC URL. Default: https://polygon-rpc.com"""

    timeout: float
    """HTTP timeout in seconds for every collaborator. Default: 30"""

    privy: PrivyConfig


@dataclass
class ResolvedRouterConfig:
    """Router configuration with all defaults applied."""

    api_key: Optional[str]
    chain_id: int
    api_endpoint: str
    clob_endpoint: str
    relayer_endpoint: str
    rpc_url: str
    timeout: float
    privy: Optional[PrivyConfig]

    @property
    def contracts(self) -> ContractConfig:
        return get_contract_config(self.chain_id)


def resolve_router_config(config: Optional[RouterConfig] = None) -> ResolvedRouterConfig:
    """Apply defaults to a router config.

    Raises:
        ConfigurationError: If the chain is unsupported or Privy config is incomplete
    """
    config = config or {}
    chain_id = int(config.get("chain_id") or POLYGON_CHAIN_ID)
    get_contract_config(chain_id)

    privy = config.get("privy")
    if privy:
        missing = [k for k in ("app_id", "app_secret") if not privy.get(k)]
        if missing:
            raise ConfigurationError(
                f"Incomplete Privy config, missing: {', '.join(missing)}"
            )

    return ResolvedRouterConfig(
        api_key=config.get("api_key") or None,
        chain_id=chain_id,
        api_endpoint=(config.get("api_endpoint") or DEFAULT_API_ENDPOINT).rstrip("/"),
        clob_endpoint=(config.get("clob_endpoint") or DEFAULT_CLOB_ENDPOINT).rstrip("/"),
        relayer_endpoint=(
            config.get("relayer_endpoint") or DEFAULT_RELAYER_ENDPOINT
        ).rstrip("/"),
        rpc_url=config.get("rpc_url") or DEFAULT_RPC_URL,
        timeout=float(config.get("timeout") or DEFAULT_TIMEOUT_SECONDS),
        privy=privy or None,
    )


def config_from_env(dotenv_path: Optional[str] = None) -> RouterConfig:
    """Build a router config from environment variables (and an optional .env file).

    Reads DOME_API_KEY, POLYLINK_CHAIN_ID, POLYLINK_API_ENDPOINT,
    POLYLINK_CLOB_ENDPOINT, POLYLINK_RELAYER_ENDPOINT, POLYLINK_RPC_URL and
    PRIVY_APP_ID / PRIVY_APP_SECRET / PRIVY_AUTHORIZATION_KEY.
    """
    load_dotenv(dotenv_path)

    config: RouterConfig = {}
    env_map = {
        "api_key": "DOME_API_KEY",
        "api_endpoint": "POLYLINK_API_ENDPOINT",
        "clob_endpoint": "POLYLINK_CLOB_ENDPOINT",
        "relayer_endpoint": "POLYLINK_RELAYER_ENDPOINT",
        "rpc_url": "POLYLINK_RPC_URL",
    }
    for key, var in env_map.items():
        value = os.environ.get(var)
        if value:
            config[key] = value

    chain_id = os.environ.get("POLYLINK_CHAIN_ID")
    if chain_id:
        try:
            config["chain_id"] = int(chain_id)
        except ValueError:
            raise ConfigurationError(f"Invalid POLYLINK_CHAIN_ID: {chain_id}") from None

    if os.environ.get("PRIVY_APP_ID"):
        privy: PrivyConfig = {
            "app_id": os.environ["PRIVY_APP_ID"],
            "app_secret": os.environ.get("PRIVY_APP_SECRET", ""),
        }
        if os.environ.get("PRIVY_AUTHORIZATION_KEY"):
            privy["authorization_key"] = os.environ["PRIVY_AUTHORIZATION_KEY"]
        config["privy"] = privy

    return config


__all__ = [
    "POLYGON_CHAIN_ID",
    "AMOY_CHAIN_ID",
    "DEFAULT_API_ENDPOINT",
    "DEFAULT_CLOB_ENDPOINT",
    "DEFAULT_RELAYER_ENDPOINT",
    "DEFAULT_RPC_URL",
    "DEFAULT_PRIVY_ENDPOINT",
    "ContractConfig",
    "get_contract_config",
    "PrivyConfig",
    "RouterConfig",
    "ResolvedRouterConfig",
    "resolve_router_config",
    "config_from_env",
]
