import os

import pytest

from precompile_client.config import ClientConfig, load_config
from precompile_client.constants import DEFAULT_GAS_LIMIT, DEFAULT_NETWORK_ID, DEFAULT_RPC_URL
from precompile_client.errors import InputEncodingError
from precompile_client.models import SimulationPolicy

ENV_VARS = [
    "PRECOMPILE_RPC_URL",
    "PRECOMPILE_PRIVATE_KEY",
    "PRECOMPILE_DEFAULT_ASSET_ID",
    "PRECOMPILE_NETWORK_ID",
    "PRECOMPILE_GAS_LIMIT",
    "PRECOMPILE_CONFIRMATION_TIMEOUT",
    "PRECOMPILE_POLL_INTERVAL",
    "PRECOMPILE_REQUEST_TIMEOUT",
    "PRECOMPILE_SIMULATION_POLICY",
    "PRECOMPILE_ASSET_SCHEMA",
    "PRECOMPILE_DELEGATION_SCHEMA",
    "PRECOMPILE_REWARD_SCHEMA",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # keep load_dotenv from discovering a developer's .env
    monkeypatch.chdir(tmp_path)
    yield
    # load_dotenv writes straight into os.environ
    for name in ENV_VARS:
        os.environ.pop(name, None)


def test_defaults():
    config = load_config("missing.env")
    assert config.rpc_url == DEFAULT_RPC_URL
    assert config.network_id == DEFAULT_NETWORK_ID
    assert config.gas_limit == DEFAULT_GAS_LIMIT
    assert config.simulation_policy is SimulationPolicy.WARN
    assert config.private_key is None


def test_environment_and_overrides(monkeypatch):
    monkeypatch.setenv("PRECOMPILE_RPC_URL", "http://env:8545")
    monkeypatch.setenv("PRECOMPILE_NETWORK_ID", "40161")
    monkeypatch.setenv("PRECOMPILE_GAS_LIMIT", "600000")
    monkeypatch.setenv("PRECOMPILE_SIMULATION_POLICY", "abort")
    monkeypatch.setenv("PRECOMPILE_DELEGATION_SCHEMA", "v1")

    config = load_config("missing.env", rpc_url="http://flag:8545", gas_limit=None)
    assert config.rpc_url == "http://flag:8545"
    assert config.network_id == 40161
    assert config.gas_limit == 600_000
    assert config.simulation_policy is SimulationPolicy.ABORT
    assert config.schema_versions == {"delegation": "v1"}


def test_env_file_is_loaded(tmp_path):
    env_file = tmp_path / "node.env"
    env_file.write_text("PRECOMPILE_DEFAULT_ASSET_ID=0xdac17f958d2ee523a2206206994597c13d831ec7\n")
    config = load_config(str(env_file))
    assert config.default_asset_id == "0xdac17f958d2ee523a2206206994597c13d831ec7"


@pytest.mark.parametrize(
    "name,value",
    [
        ("PRECOMPILE_NETWORK_ID", "abc"),
        ("PRECOMPILE_GAS_LIMIT", "20000000"),
        ("PRECOMPILE_CONFIRMATION_TIMEOUT", "0"),
        ("PRECOMPILE_SIMULATION_POLICY", "sometimes"),
    ],
)
def test_invalid_environment_is_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(InputEncodingError):
        load_config("missing.env")


def test_private_key_not_in_repr():
    config = ClientConfig(private_key="0x" + "11" * 32)
    assert "11111111" not in repr(config)


def test_validate_bounds():
    with pytest.raises(InputEncodingError):
        ClientConfig(network_id=2**32).validate()
    with pytest.raises(InputEncodingError):
        ClientConfig(gas_limit=0).validate()
    assert ClientConfig().validate() == ClientConfig()


def test_with_overrides_ignores_none():
    config = ClientConfig(gas_limit=700_000).with_overrides(gas_limit=None, network_id=5)
    assert config.gas_limit == 700_000
    assert config.network_id == 5
