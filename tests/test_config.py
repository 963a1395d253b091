"""Tests for configuration resolution."""

import pytest

from polylink.config import (
    DEFAULT_API_ENDPOINT,
    POLYGON_CHAIN_ID,
    config_from_env,
    get_contract_config,
    resolve_router_config,
)
from polylink.errors import ConfigurationError
from polylink.types import WalletTopology

ENV_VARS = [
    "DOME_API_KEY",
    "POLYLINK_CHAIN_ID",
    "POLYLINK_API_ENDPOINT",
    "POLYLINK_CLOB_ENDPOINT",
    "POLYLINK_RELAYER_ENDPOINT",
    "POLYLINK_RPC_URL",
    "PRIVY_APP_ID",
    "PRIVY_APP_SECRET",
    "PRIVY_AUTHORIZATION_KEY",
]


@pytest.fixture
def clean_env(monkeypatch):
    # setenv first so teardown also removes values loaded from .env files
    for var in ENV_VARS:
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    return monkeypatch


class TestResolveRouterConfig:
    """Tests for defaults and validation."""

    def test_defaults(self):
        config = resolve_router_config()

        assert config.api_key is None
        assert config.chain_id == POLYGON_CHAIN_ID
        assert config.api_endpoint == DEFAULT_API_ENDPOINT
        assert config.timeout == 30.0
        assert config.privy is None
        assert config.contracts == get_contract_config(POLYGON_CHAIN_ID)

    def test_trailing_slashes_are_stripped(self):
        config = resolve_router_config({"api_endpoint": "https://api.test/v1/"})

        assert config.api_endpoint == "https://api.test/v1"

    def test_unsupported_chain(self):
        with pytest.raises(ConfigurationError, match="Unsupported chain_id"):
            resolve_router_config({"chain_id": 1})

    def test_incomplete_privy_config(self):
        with pytest.raises(ConfigurationError, match="app_secret"):
            resolve_router_config({"privy": {"app_id": "app"}})


class TestConfigFromEnv:
    """Tests for environment loading."""

    def test_reads_environment(self, clean_env, tmp_path):
        clean_env.setenv("DOME_API_KEY", "dome-key")
        clean_env.setenv("POLYLINK_CHAIN_ID", "80002")
        clean_env.setenv("PRIVY_APP_ID", "app")
        clean_env.setenv("PRIVY_APP_SECRET", "secret")

        config = config_from_env(str(tmp_path / ".env"))

        assert config["api_key"] == "dome-key"
        assert config["chain_id"] == 80002
        assert config["privy"] == {"app_id": "app", "app_secret": "secret"}

    def test_reads_dotenv_file(self, clean_env, tmp_path):
        dotenv = tmp_path / ".env"
        dotenv.write_text("DOME_API_KEY=from-file\nPOLYLINK_RPC_URL=https://rpc.test\n")

        config = config_from_env(str(dotenv))

        assert config["api_key"] == "from-file"
        assert config["rpc_url"] == "https://rpc.test"

    def test_invalid_chain_id(self, clean_env, tmp_path):
        clean_env.setenv("POLYLINK_CHAIN_ID", "polygon")

        with pytest.raises(ConfigurationError, match="Invalid POLYLINK_CHAIN_ID"):
            config_from_env(str(tmp_path / ".env"))


class TestWalletTopology:
    """Tests for wallet type parsing."""

    def test_parse(self):
        assert WalletTopology.parse(None) is WalletTopology.DIRECT
        assert WalletTopology.parse("SAFE") is WalletTopology.SMART_ACCOUNT
        assert WalletTopology.SMART_ACCOUNT.signature_type == 2
        assert WalletTopology.DIRECT.signature_type == 0

    def test_parse_invalid(self):
        with pytest.raises(ConfigurationError, match="Invalid wallet type"):
            WalletTopology.parse("proxy")
